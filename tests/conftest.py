# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from collections.abc import Generator, Iterator
from datetime import timedelta
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("LOCAL_STORAGE_DIR", tempfile.mkdtemp(prefix="dropline-tests-"))

from dropline.api.v1.dependencies import (  # noqa: E402
    get_local_store,
    get_settings,
    get_storage_gateway,
)
from dropline.core.errors import StorageError  # noqa: E402
from dropline.core.security import create_access_token, hash_password  # noqa: E402
from dropline.core.settings import Settings, settings  # noqa: E402
from dropline.db.session import Base, build_engine  # noqa: E402
from dropline.db.session import get_db as app_get_session  # noqa: E402
from dropline.db.time import utcnow  # noqa: E402
from dropline.main import app as fastapi_app  # noqa: E402
from dropline.models import Transfer, User  # noqa: E402
from dropline.services.registry import FileDescriptor, RecipientGrant, TransferRegistry  # noqa: E402
from dropline.services.shares import ShareResolver  # noqa: E402
from dropline.services.storage import LocalDiskStore  # noqa: E402
from dropline.services.uploads import UploadOrchestrator  # noqa: E402

TEST_DB_URL = "sqlite://"


class FakeStorage:
    """In-memory stand-in for the S3 gateway.

    Keys "uploaded" by a test live in ``objects``; ``failing`` keys raise on
    existence checks to simulate an unreachable bucket.
    """

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.failing: set[str] = set()
        self.exists_calls: list[str] = []
        self.deleted: list[str] = []

    def put(self, key: str, data: bytes = b"") -> None:
        self.objects[key] = data

    def presign_put(self, key: str, ttl_seconds: int) -> str:
        return f"https://storage.test/bucket/{key}?X-Amz-Expires={ttl_seconds}&op=put"

    def presign_get(self, key: str, ttl_seconds: int, filename: str | None = None) -> str:
        url = f"https://storage.test/bucket/{key}?X-Amz-Expires={ttl_seconds}&op=get"
        if filename:
            url += f"&filename={filename}"
        return url

    def exists(self, key: str) -> bool:
        self.exists_calls.append(key)
        if key in self.failing:
            raise StorageError("Object storage request failed")
        return key in self.objects

    def delete(self, key: str) -> None:
        if key in self.failing:
            raise StorageError(f"Failed to delete object {key}")
        self.deleted.append(key)
        self.objects.pop(key, None)


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = build_engine(TEST_DB_URL, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Iterator[Session]:
    # Services commit and roll back for real, so each test gets empty tables
    # instead of an outer transaction.
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide the Settings instance the application was configured with."""
    return settings


@pytest.fixture()
def fake_storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def local_store(tmp_path) -> LocalDiskStore:
    return LocalDiskStore(tmp_path / "uploads")


@pytest.fixture()
def registry(db_session: Session) -> TransferRegistry:
    return TransferRegistry(db_session)


@pytest.fixture()
def orchestrator(
    registry: TransferRegistry,
    fake_storage: FakeStorage,
    local_store: LocalDiskStore,
    test_settings: Settings,
) -> UploadOrchestrator:
    return UploadOrchestrator(registry, fake_storage, local_store, test_settings)


@pytest.fixture()
def resolver(
    registry: TransferRegistry,
    fake_storage: FakeStorage,
    local_store: LocalDiskStore,
    test_settings: Settings,
) -> ShareResolver:
    return ShareResolver(registry, fake_storage, local_store, test_settings)


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(app: FastAPI, db_session: Session) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture()
def app_settings(app: FastAPI, test_settings: Settings) -> Iterator[dict[str, Any]]:
    """Per-test settings overrides for the API, e.g. ``app_settings["x"] = y``."""
    overrides: dict[str, Any] = {}
    app.dependency_overrides[get_settings] = lambda: test_settings.model_copy(update=overrides)
    try:
        yield overrides
    finally:
        app.dependency_overrides.pop(get_settings, None)


@pytest.fixture()
def client(
    app: FastAPI,
    fake_storage: FakeStorage,
    local_store: LocalDiskStore,
) -> Iterator[TestClient]:
    # Installed before startup so no real S3 client is built.
    app.state.storage = fake_storage
    app.state.local_store = local_store
    app.dependency_overrides[get_storage_gateway] = lambda: fake_storage
    app.dependency_overrides[get_local_store] = lambda: local_store
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_storage_gateway, None)
        app.dependency_overrides.pop(get_local_store, None)


def _make_user(db_session: Session, username: str, public_key: str | None = None) -> User:
    user = User(
        username=username,
        email=f"{username}@example.com",
        password_hash=hash_password("correct horse"),
        public_key=public_key,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture()
def test_user(db_session: Session) -> User:
    """Create and return a persisted sender."""
    return _make_user(db_session, "alice", public_key="alice-public-key")


@pytest.fixture()
def other_user(db_session: Session) -> User:
    """Create and return a persisted recipient."""
    return _make_user(db_session, "bob", public_key="bob-public-key")


@pytest.fixture()
def third_user(db_session: Session) -> User:
    """Create and return a user who is nobody's recipient."""
    return _make_user(db_session, "carol")


@pytest.fixture()
def auth_token(test_user: User) -> dict[str, str]:
    """Return authorization headers for the primary test user."""
    return {"Authorization": f"Bearer {create_access_token(test_user.id)}"}


@pytest.fixture()
def other_auth_token(other_user: User) -> dict[str, str]:
    """Return authorization headers for the recipient."""
    return {"Authorization": f"Bearer {create_access_token(other_user.id)}"}


@pytest.fixture()
def third_auth_token(third_user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(third_user.id)}"}


def object_files(token: str, *names: str, size: int = 5) -> list[FileDescriptor]:
    """Descriptors for object-backed files namespaced under ``token``."""
    return [
        FileDescriptor(
            filename=name,
            size=size,
            key=f"uploads/{token}/{i:02d}_{name}",
            content_type="text/plain",
            index=i,
        )
        for i, name in enumerate(names)
    ]


@pytest.fixture()
def anonymous_transfer(registry: TransferRegistry) -> Transfer:
    """A live anonymous transfer with a.txt and b.txt."""
    return registry.register_transfer(
        token="anon-token",
        expires_at=utcnow() + timedelta(hours=1),
        files=object_files("anon-token", "a.txt", "b.txt"),
        is_anonymous=True,
    )


@pytest.fixture()
def gated_transfer(registry: TransferRegistry, test_user: User, other_user: User) -> Transfer:
    """A live transfer from alice that only bob may open."""
    return registry.register_transfer(
        token="gated-token",
        expires_at=utcnow() + timedelta(hours=24),
        files=object_files("gated-token", "a.txt", "b.txt"),
        is_anonymous=False,
        sender_id=test_user.id,
        recipients=[RecipientGrant(receiver_id=other_user.id, encrypted_key="wrapped-for-bob")],
    )


@pytest.fixture()
def make_object_files():
    """Expose :func:`object_files` to test modules."""
    return object_files
