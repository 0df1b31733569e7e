import os

# Configure before any vidhub import reads the environment
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ACCESS_TOKEN_SECRET"] = "test-access-secret"
os.environ["REFRESH_TOKEN_SECRET"] = "test-refresh-secret"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["COOKIE_SECURE"] = "false"

import itertools  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from vidhub.database import get_session, import_models  # noqa: E402
from vidhub.main import app  # noqa: E402
from vidhub.models.identity import Identity  # noqa: E402
from vidhub.services.media_storage import MediaStorage, UploadResult, get_media_storage  # noqa: E402

from tests.helpers import make_identity  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share one DB
# 2. check_same_thread=False required for TestClient/threaded access
# 3. Tables dropped and recreated per test (see session_fixture)
# 4. get_session and get_media_storage overridden (see client_fixture)
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


class FakeMediaStorage(MediaStorage):
    """Records uploads and hands back predictable URLs"""

    def __init__(self):
        self.uploads = []
        self._counter = itertools.count(1)

    def upload(self, local_path: str) -> UploadResult:
        n = next(self._counter)
        with open(local_path, "rb") as fh:
            self.uploads.append(fh.read())
        return UploadResult(url=f"https://media.test/{n}", duration=12.5)


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    import_models()
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="media_storage")
def media_storage_fixture():
    return FakeMediaStorage()


@pytest.fixture(name="client")
def client_fixture(session: Session, media_storage: FakeMediaStorage):
    """Provide a test client with overridden database session and media storage"""
    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_media_storage] = lambda: media_storage

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def alice(session: Session) -> Identity:
    return make_identity(session, "alice")


@pytest.fixture
def bob(session: Session) -> Identity:
    return make_identity(session, "bob")
