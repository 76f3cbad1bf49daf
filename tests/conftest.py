import os

# Settings are cached on first import: cheap hashing, no bulk-import pacing
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("BULK_IMPORT_ROW_DELAY_SECONDS", "0")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("TIMEZONE", "UTC")

import pytest

from learnchat.application.services.auth_service import SessionManager, hash_password
from learnchat.application.services.credential_service import CredentialIssuer
from learnchat.domain.schemas.user import UserDraft
from learnchat.infrastructure.database import build_engine, build_session_factory, init_db
from learnchat.infrastructure.repositories.entity_repository import StoreEntityRepository
from learnchat.infrastructure.store import PersistentStore


def make_store(url: str, **kwargs) -> PersistentStore:
    engine = build_engine(url)
    init_db(engine)
    return PersistentStore(build_session_factory(engine), **kwargs)


def make_draft(n: int = 1, **overrides) -> UserDraft:
    data = {
        "email": f"user{n}@company.com",
        "name": f"User {n}",
        "phone": f"+1555000{n:04d}",
        "employee_id": f"EMP{n:03d}",
        "location": "Lisbon",
        "password_hash": hash_password(f"secret{n}"),
        "created_by": "tests",
    }
    data.update(overrides)
    return UserDraft(**data)


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'learnchat.db'}"


@pytest.fixture
def store(db_url):
    return make_store(db_url)


@pytest.fixture
def repo(store):
    return StoreEntityRepository(store)


@pytest.fixture
def other_repo(db_url):
    """A second actor: its own engine and snapshots over the same database file."""
    return StoreEntityRepository(make_store(db_url))


@pytest.fixture
def sessions(repo):
    manager = SessionManager(repo)
    manager.bootstrap()
    return manager


@pytest.fixture
def issuer():
    return CredentialIssuer()
