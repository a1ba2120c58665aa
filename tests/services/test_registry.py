# tests/services/test_registry.py
"""Tests for the transfer registry."""

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from dropline.core.errors import ConflictError, InvalidInputError, NotFoundError
from dropline.db.time import ensure_utc, utcnow
from dropline.models import File, Recipient, Transfer
from dropline.services.registry import FileDescriptor, RecipientGrant


def _count(db_session, model) -> int:
    return db_session.scalar(select(func.count()).select_from(model))


def test_register_transfer_persists_files_in_order(registry, make_object_files) -> None:
    transfer = registry.register_transfer(
        token="tok-1",
        expires_at=utcnow() + timedelta(hours=1),
        files=make_object_files("tok-1", "a.txt", "b.txt", "c.txt", size=7),
        is_anonymous=True,
    )

    assert transfer.total_size == 21
    assert transfer.deleted is False
    files = registry.list_files(transfer.id)
    assert [f.filename for f in files] == ["a.txt", "b.txt", "c.txt"]
    assert [f.index for f in files] == [0, 1, 2]
    assert all(f.content_type == "text/plain" for f in files)


def test_find_by_token_returns_committed_transfer(registry, anonymous_transfer) -> None:
    assert registry.find_by_token("anon-token").id == anonymous_transfer.id


def test_find_by_token_unknown(registry) -> None:
    with pytest.raises(NotFoundError):
        registry.find_by_token("missing")


def test_duplicate_token_conflicts(registry, anonymous_transfer, make_object_files, db_session) -> None:
    with pytest.raises(ConflictError):
        registry.register_transfer(
            token="anon-token",
            expires_at=utcnow() + timedelta(hours=1),
            files=make_object_files("anon-token", "other.txt"),
            is_anonymous=True,
        )
    # The first transfer is untouched and no orphan files were written
    assert registry.find_by_token("anon-token").id == anonymous_transfer.id
    assert _count(db_session, Transfer) == 1
    assert _count(db_session, File) == 2


def test_duplicate_index_rejected_before_commit(registry, db_session) -> None:
    files = [
        FileDescriptor("a.txt", 1, "uploads/t/a", "text/plain", 0),
        FileDescriptor("b.txt", 1, "uploads/t/b", "text/plain", 0),
    ]
    with pytest.raises(InvalidInputError):
        registry.register_transfer(
            token="t",
            expires_at=utcnow() + timedelta(hours=1),
            files=files,
            is_anonymous=True,
        )
    assert _count(db_session, Transfer) == 0
    assert _count(db_session, File) == 0


def test_empty_file_set_rejected(registry) -> None:
    with pytest.raises(InvalidInputError):
        registry.register_transfer(
            token="t",
            expires_at=utcnow() + timedelta(hours=1),
            files=[],
            is_anonymous=True,
        )


def test_expiry_must_be_in_future(registry, make_object_files, db_session) -> None:
    with pytest.raises(InvalidInputError):
        registry.register_transfer(
            token="t",
            expires_at=utcnow() - timedelta(seconds=1),
            files=make_object_files("t", "a.txt"),
            is_anonymous=True,
        )
    assert _count(db_session, Transfer) == 0


def test_recipients_written_with_transfer(registry, gated_transfer, other_user, test_user) -> None:
    assert registry.is_authorized_recipient(gated_transfer.id, other_user.id)
    assert not registry.is_authorized_recipient(gated_transfer.id, test_user.id)
    grant = registry.get_recipient(gated_transfer.id, other_user.id)
    assert grant.encrypted_key == "wrapped-for-bob"


def test_duplicate_recipient_rolls_back_everything(
    registry, test_user, other_user, make_object_files, db_session
) -> None:
    grant = RecipientGrant(receiver_id=other_user.id, encrypted_key="k")
    with pytest.raises(ConflictError):
        registry.register_transfer(
            token="dup-grant",
            expires_at=utcnow() + timedelta(hours=1),
            files=make_object_files("dup-grant", "a.txt"),
            is_anonymous=False,
            sender_id=test_user.id,
            recipients=[grant, grant],
        )
    assert _count(db_session, Transfer) == 0
    assert _count(db_session, Recipient) == 0


def test_find_file(registry, anonymous_transfer) -> None:
    assert registry.find_file(anonymous_transfer.id, 1).filename == "b.txt"
    with pytest.raises(NotFoundError):
        registry.find_file(anonymous_transfer.id, 2)


def test_soft_delete_hides_transfer_and_files(registry, anonymous_transfer) -> None:
    registry.soft_delete(anonymous_transfer)

    with pytest.raises(NotFoundError):
        registry.find_by_token("anon-token")
    assert registry.list_files(anonymous_transfer.id) == []
    with pytest.raises(NotFoundError):
        registry.find_file(anonymous_transfer.id, 0)


def test_list_sent_only_returns_senders_live_transfers(
    registry, gated_transfer, anonymous_transfer, test_user, other_user
) -> None:
    assert [t.token for t in registry.list_sent(test_user.id)] == ["gated-token"]
    assert registry.list_sent(other_user.id) == []


def test_find_expired(registry, anonymous_transfer, gated_transfer) -> None:
    assert registry.find_expired(utcnow()) == []

    # One hour and one minute later only the anonymous transfer has lapsed
    later = ensure_utc(anonymous_transfer.expires_at) + timedelta(minutes=1)
    assert [t.token for t in registry.find_expired(later)] == ["anon-token"]
