import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PASSWORD_HASH_ITERATIONS", "1000")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tunedeck import api
from tunedeck.auth import get_audio_storage, get_db
from tunedeck.database import init_db
from tunedeck.repository import SqlAlchemyRepository
from tunedeck.security import hash_password
from tunedeck.services import MusicService
from tunedeck.storage import AudioStorage
from tunedeck.tokens import TokenService


@pytest.fixture
def session_local():
    """Provide an isolated in-memory database for each test."""
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    init_db(bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture
def repo(session_local):
    session = session_local()
    yield SqlAlchemyRepository(session)
    session.close()


@pytest.fixture
def tokens(repo):
    return TokenService(repo, secret="tunedeck-test-secret-0123456789abcdef")


@pytest.fixture
def service(repo, tokens):
    return MusicService(repo, tokens)


@pytest.fixture
def alice(repo):
    return repo.add_new_user("alice@example.com", "alice", hash_password("secret"), "user")


@pytest.fixture
def bob(repo):
    return repo.add_new_user("bob@example.com", "bob", hash_password("secret"), "user")


@pytest.fixture
def artist(repo):
    return repo.add_artist("Artist X")


@pytest.fixture
def genre(repo):
    return repo.add_genre("Synthpop")


@pytest.fixture
def audio_storage(tmp_path):
    return AudioStorage(tmp_path / "audio")


@pytest.fixture
def client(session_local, audio_storage, monkeypatch):
    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    api.app.dependency_overrides[get_db] = override_get_db
    api.app.dependency_overrides[get_audio_storage] = lambda: audio_storage
    monkeypatch.setattr(api.limiter, "enabled", False)
    api.limiter.reset()
    with TestClient(api.app) as test_client:
        yield test_client
    api.app.dependency_overrides.clear()
