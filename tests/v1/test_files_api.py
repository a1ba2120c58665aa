# tests/v1/test_files_api.py
"""Tests for the upload endpoints."""

from fastapi import status
from sqlalchemy import func, select

from dropline.models import Transfer

MIB = 1024 * 1024


def _presign(client, *files, headers=None):
    response = client.post(
        "/api/v1/files/presign",
        json=[{"filename": name, "size": size} for name, size in files],
        headers=headers,
    )
    assert response.status_code == status.HTTP_200_OK, response.text
    return response.json()


def _complete_body(presigned, sizes, recipients=None):
    body = {
        "token": presigned["token"],
        "files": [
            {
                "filename": item["filename"],
                "size": size,
                "key": item["key"],
                "contentType": "text/plain",
            }
            for item, size in zip(presigned["urls"], sizes)
        ],
    }
    if recipients is not None:
        body["recipients"] = recipients
    return body


def test_presign_returns_upload_urls(client) -> None:
    data = _presign(client, ("a.txt", 5), ("b.txt", 7))

    assert data["token"]
    assert [u["filename"] for u in data["urls"]] == ["a.txt", "b.txt"]
    assert all(u["uploadURL"].startswith("https://storage.test/") for u in data["urls"])
    assert len({u["key"] for u in data["urls"]}) == 2


def test_presign_rejects_over_cap(client) -> None:
    response = client.post(
        "/api/v1/files/presign",
        json=[{"filename": "big", "size": 100 * MIB + 1}],
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Total file size exceeds 100 MB limit"


def test_presign_rejects_empty_list(client) -> None:
    response = client.post("/api/v1/files/presign", json=[])
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_presign_rejects_unknown_fields(client) -> None:
    response = client.post(
        "/api/v1/files/presign",
        json=[{"filename": "a", "size": 1, "path": "/etc/passwd"}],
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST


def test_complete_anonymous_transfer(client, fake_storage) -> None:
    presigned = _presign(client, ("a.txt", 5))
    fake_storage.put(presigned["urls"][0]["key"], b"hello")

    response = client.post("/api/v1/files/complete", json=_complete_body(presigned, [5]))

    assert response.status_code == status.HTTP_200_OK, response.text
    data = response.json()
    assert data["share_code"] == presigned["token"]
    assert data["expires_in"] == "1h"


def test_complete_with_missing_object_creates_nothing(client, fake_storage, db_session) -> None:
    presigned = _presign(client, ("a.txt", 5), ("b.txt", 5))
    fake_storage.put(presigned["urls"][0]["key"])

    response = client.post("/api/v1/files/complete", json=_complete_body(presigned, [5, 5]))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "File not found in storage: b.txt"
    assert db_session.scalar(select(func.count()).select_from(Transfer)) == 0
    share = client.get(f"/api/v1/share/{presigned['token']}")
    assert share.status_code == status.HTTP_404_NOT_FOUND


def test_complete_twice_conflicts(client, fake_storage) -> None:
    presigned = _presign(client, ("a.txt", 5))
    fake_storage.put(presigned["urls"][0]["key"])
    body = _complete_body(presigned, [5])

    assert client.post("/api/v1/files/complete", json=body).status_code == status.HTTP_200_OK
    second = client.post("/api/v1/files/complete", json=body)
    assert second.status_code == status.HTTP_409_CONFLICT


def test_complete_storage_outage_is_500(client, fake_storage, caplog) -> None:
    presigned = _presign(client, ("a.txt", 5))
    key = presigned["urls"][0]["key"]
    fake_storage.put(key)
    fake_storage.failing.add(key)

    response = client.post("/api/v1/files/complete", json=_complete_body(presigned, [5]))

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["detail"] == "Internal server error"
    assert "Failed to verify a.txt" in caplog.text


def test_complete_with_recipients(client, fake_storage, auth_token, other_user) -> None:
    presigned = _presign(client, ("a.txt", 5), headers=auth_token)
    fake_storage.put(presigned["urls"][0]["key"])
    body = _complete_body(
        presigned, [5], recipients=[{"username": "bob", "encryptedKey": "wrapped"}]
    )

    response = client.post("/api/v1/files/complete", json=body, headers=auth_token)

    assert response.status_code == status.HTTP_200_OK, response.text
    assert response.json()["expires_in"] == "24h"


def test_complete_with_recipients_requires_login(client, fake_storage, other_user) -> None:
    presigned = _presign(client, ("a.txt", 5))
    fake_storage.put(presigned["urls"][0]["key"])
    body = _complete_body(presigned, [5], recipients=[{"username": "bob", "encryptedKey": "k"}])

    response = client.post("/api/v1/files/complete", json=body)

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_invalid_credential_rejected_even_on_optional_routes(client, fake_storage) -> None:
    presigned = _presign(client, ("a.txt", 5))
    fake_storage.put(presigned["urls"][0]["key"])

    response = client.post(
        "/api/v1/files/complete",
        json=_complete_body(presigned, [5]),
        headers={"Authorization": "Bearer not-a-jwt"},
    )

    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_recipients_required_when_configured(client, fake_storage, app_settings) -> None:
    app_settings["allow_anonymous_transfers"] = False
    presigned = _presign(client, ("a.txt", 5))
    fake_storage.put(presigned["urls"][0]["key"])

    response = client.post("/api/v1/files/complete", json=_complete_body(presigned, [5]))

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "At least one recipient is required"


class TestSenderTransfers:
    def test_list_requires_auth(self, client) -> None:
        assert client.get("/api/v1/files/transfers").status_code == status.HTTP_401_UNAUTHORIZED

    def test_list_own_transfers(self, client, gated_transfer, anonymous_transfer, auth_token) -> None:
        response = client.get("/api/v1/files/transfers", headers=auth_token)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [t["token"] for t in data] == ["gated-token"]
        assert data[0]["file_count"] == 2
        assert data[0]["is_anonymous"] is False

    def test_owner_can_delete(self, client, gated_transfer, auth_token, other_auth_token) -> None:
        response = client.delete("/api/v1/files/transfers/gated-token", headers=auth_token)
        assert response.status_code == status.HTTP_200_OK

        share = client.get("/api/v1/share/gated-token", headers=other_auth_token)
        assert share.status_code == status.HTTP_404_NOT_FOUND

    def test_others_cannot_delete(self, client, gated_transfer, other_auth_token) -> None:
        response = client.delete("/api/v1/files/transfers/gated-token", headers=other_auth_token)
        assert response.status_code == status.HTTP_403_FORBIDDEN
