# src/dropline/api/v1/endpoints/files.py
"""Upload endpoints: presign, complete, legacy multipart and sender views."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, File, UploadFile, status

from dropline.api.v1.dependencies import (
    CurrentUserDep,
    OptionalCallerDep,
    OrchestratorDep,
    RegistryDep,
)
from dropline.core.errors import ForbiddenError
from dropline.db.time import ensure_utc
from dropline.models import Transfer
from dropline.schemas.files import (
    CompleteUploadRequest,
    PresignedFile,
    PresignFileRequest,
    PresignResponse,
    TransferCreatedResponse,
    TransferSummary,
)
from dropline.schemas.user import MessageResponse
from dropline.services.uploads import (
    DeclaredFile,
    LocalUpload,
    RecipientRequest,
    ReportedFile,
    UploadOrchestrator,
    format_ttl,
)

router = APIRouter(prefix="/files", tags=["files"])


def _created(transfer: Transfer, orchestrator: UploadOrchestrator) -> TransferCreatedResponse:
    ttl = orchestrator.ttl_for(gated=not transfer.is_anonymous)
    return TransferCreatedResponse(
        share_code=transfer.token,
        expires_in=format_ttl(ttl),
        expires_at=ensure_utc(transfer.expires_at),
    )


@router.post("/presign", response_model=PresignResponse)
async def presign_upload(
    files: list[PresignFileRequest],
    orchestrator: OrchestratorDep,
) -> PresignResponse:
    """Issue a transfer token and one presigned upload URL per declared file."""
    result = orchestrator.presign([DeclaredFile(f.filename, f.size) for f in files])
    return PresignResponse(
        token=result.token,
        urls=[
            PresignedFile(filename=u.filename, upload_url=u.upload_url, key=u.key)
            for u in result.uploads
        ],
    )


@router.post("/complete", response_model=TransferCreatedResponse)
async def complete_upload(
    payload: CompleteUploadRequest,
    orchestrator: OrchestratorDep,
    caller_id: OptionalCallerDep,
) -> TransferCreatedResponse:
    """Verify the reported uploads and commit them as one transfer.

    Returns:
        The share code (the transfer token) and the transfer lifetime.
    """
    transfer = await orchestrator.complete(
        payload.token,
        [
            ReportedFile(
                filename=f.filename,
                size=f.size,
                key=f.key,
                content_type=f.content_type,
                index=f.index,
            )
            for f in payload.files
        ],
        caller_id=caller_id,
        recipients=[RecipientRequest(r.username, r.encrypted_key) for r in payload.recipients],
    )
    return _created(transfer, orchestrator)


@router.post("/upload", response_model=TransferCreatedResponse)
async def upload_files(
    files: Annotated[list[UploadFile], File(description="Files of the transfer")],
    orchestrator: OrchestratorDep,
    caller_id: OptionalCallerDep,
) -> TransferCreatedResponse:
    """Single-phase upload: the server stores each part on local disk."""
    uploads = [
        LocalUpload(
            filename=f.filename or "file",
            content_type=f.content_type,
            stream=f.file,
            size=f.size,
        )
        for f in files
    ]
    try:
        transfer = await orchestrator.upload_direct(uploads, caller_id=caller_id)
    finally:
        for f in files:
            await f.close()
    return _created(transfer, orchestrator)


@router.get("/transfers", response_model=list[TransferSummary])
async def list_sent_transfers(
    current_user: CurrentUserDep,
    registry: RegistryDep,
) -> list[TransferSummary]:
    """List the live transfers sent by the caller, newest first."""
    return [
        TransferSummary(
            token=t.token,
            created_at=ensure_utc(t.created_at),
            expires_at=ensure_utc(t.expires_at),
            total_size=t.total_size,
            is_anonymous=t.is_anonymous,
            file_count=sum(1 for f in t.files if not f.deleted),
        )
        for t in registry.list_sent(current_user.id)
    ]


@router.delete(
    "/transfers/{token}",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
)
async def delete_transfer(
    token: str,
    current_user: CurrentUserDep,
    registry: RegistryDep,
) -> MessageResponse:
    """Revoke a transfer before it expires. Only its sender may do this."""
    transfer = registry.find_by_token(token)
    if transfer.sender_id != current_user.id:
        raise ForbiddenError("Only the sender can delete this transfer")
    registry.soft_delete(transfer)
    return MessageResponse(message="Transfer deleted")
