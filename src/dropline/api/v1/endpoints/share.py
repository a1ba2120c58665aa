# src/dropline/api/v1/endpoints/share.py
"""Share resolution endpoints used by recipients."""

from __future__ import annotations

from fastapi import APIRouter, status
from fastapi.responses import FileResponse, RedirectResponse, Response

from dropline.api.v1.dependencies import OptionalCallerDep, ResolverDep
from dropline.schemas.share import (
    DownloadLinkResponse,
    SenderInfo,
    SharedFile,
    ShareListingResponse,
)

router = APIRouter(prefix="/share", tags=["share"])


@router.get("/{token}", response_model=ShareListingResponse)
async def get_shared_files(
    token: str,
    resolver: ResolverDep,
    caller_id: OptionalCallerDep,
) -> ShareListingResponse:
    """List the files of a transfer.

    Recipient-gated transfers also return the caller's encrypted content key
    and the sender's public identity so the client can decrypt locally.
    """
    listing = resolver.list_files(token, caller_id)
    return ShareListingResponse(
        expires_at=listing.expires_at,
        is_anonymous=listing.transfer.is_anonymous,
        files=[SharedFile.model_validate(f) for f in listing.files],
        encrypted_key=listing.recipient.encrypted_key if listing.recipient else None,
        sender=SenderInfo.model_validate(listing.sender) if listing.sender else None,
    )


@router.get("/{token}/presign-download/{index}", response_model=DownloadLinkResponse)
async def presign_download(
    token: str,
    index: int,
    resolver: ResolverDep,
    caller_id: OptionalCallerDep,
) -> DownloadLinkResponse:
    """Return a short-lived download link for one file."""
    download = resolver.fetch_one(token, index, caller_id)
    return DownloadLinkResponse(
        url=download.url,
        content_type=download.content_type,
        filename=download.filename,
    )


@router.get("/{token}/download/{index}", name="download_shared_file")
async def download_file(
    token: str,
    index: int,
    resolver: ResolverDep,
    caller_id: OptionalCallerDep,
) -> Response:
    """Stream a disk-backed file, or redirect to object storage."""
    file, path = resolver.open_local(token, index, caller_id)
    if path is None:
        return RedirectResponse(
            resolver.link_for(token, file),
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )
    return FileResponse(
        path,
        media_type=file.content_type,
        filename=file.filename,
        headers={"Access-Control-Expose-Headers": "Content-Disposition"},
    )
