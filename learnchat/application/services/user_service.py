"""Creating users with issued credentials and rotating passwords."""

from datetime import datetime, timezone
from typing import Tuple

import structlog

from learnchat.application.services.auth_service import hash_password
from learnchat.application.services.credential_service import CredentialIssuer, PasswordStrategy
from learnchat.core.exceptions import EntityNotFoundException
from learnchat.domain.repositories.entity_repository import EntityRepository
from learnchat.domain.schemas.user import GeneratedPassword, User, UserCreate, UserDraft

logger = structlog.get_logger(__name__)


def create_user_with_password(
    repo: EntityRepository,
    issuer: CredentialIssuer,
    body: UserCreate,
    strategy: PasswordStrategy | str,
    created_by: str,
) -> Tuple[User, GeneratedPassword]:
    """Create one user and return the cleartext password exactly once."""
    password = issuer.generate(strategy)
    draft = UserDraft(
        **body.model_dump(),
        password_hash=hash_password(password),
        password_generated_at=datetime.now(timezone.utc),
        created_by=created_by,
    )
    user = repo.create_user(draft)
    return user, GeneratedPassword(
        user_id=user.id, user_name=user.name, email=user.email, password=password
    )


def regenerate_password(
    repo: EntityRepository,
    issuer: CredentialIssuer,
    user_id: str,
    strategy: PasswordStrategy | str,
) -> GeneratedPassword:
    if repo.get_user(user_id, fresh=True) is None:
        raise EntityNotFoundException("User not found", {"user_id": user_id})
    password = issuer.generate(strategy)
    user = repo.set_password(user_id, hash_password(password))
    return GeneratedPassword(
        user_id=user.id, user_name=user.name, email=user.email, password=password
    )
