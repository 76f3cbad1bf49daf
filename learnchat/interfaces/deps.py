"""
API Dependencies.

The services are built once per process and hung on `app.state.services`;
routes receive them through these dependencies instead of module globals.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from learnchat.application.services.auth_service import SessionManager
from learnchat.application.services.bulk_import_service import BulkImportPipeline
from learnchat.application.services.credential_service import CredentialIssuer
from learnchat.config import get_settings
from learnchat.domain.repositories.entity_repository import EntityRepository
from learnchat.infrastructure.database import build_engine, build_session_factory, init_db
from learnchat.infrastructure.repositories.entity_repository import StoreEntityRepository
from learnchat.infrastructure.store import PersistentStore
from learnchat.scheduler.jobs import ActorRole, SyncReconciler

settings = get_settings()


@dataclass
class Services:
    repo: EntityRepository
    sessions: SessionManager
    issuer: CredentialIssuer
    importer: BulkImportPipeline
    reconciler: SyncReconciler


def build_services(
    database_url: Optional[str] = None,
    role: Optional[str] = None,
    row_delay: Optional[float] = None,
) -> Services:
    """Wire one actor's services over the shared store."""
    engine = build_engine(database_url or settings.DATABASE_URL)
    init_db(engine)
    store = PersistentStore(build_session_factory(engine))
    repo = StoreEntityRepository(store)
    issuer = CredentialIssuer()
    return Services(
        repo=repo,
        sessions=SessionManager(repo),
        issuer=issuer,
        importer=BulkImportPipeline(repo, issuer, row_delay=row_delay),
        reconciler=SyncReconciler.for_role(repo, ActorRole(role or settings.ACTOR_ROLE)),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_repository(request: Request) -> EntityRepository:
    return get_services(request).repo
