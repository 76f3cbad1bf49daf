"""Auth service — password hashing, JWT tokens and the actor's login session."""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import structlog
from jose import JWTError, jwt
from passlib.context import CryptContext

from learnchat.config import get_settings
from learnchat.core.exceptions import DuplicateIdentityException, StorageFailureException
from learnchat.domain.repositories.entity_repository import EntityRepository
from learnchat.domain.schemas.user import UserDraft, UserRead

settings = get_settings()
logger = structlog.get_logger(__name__)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Malformed hash in storage
        return False


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[dict]:
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM]
        )
        return payload
    except JWTError:
        return None


class SessionState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class SessionManager:
    """Owns the actor's current session.

    The session is kept in memory and mirrored to the `session` partition so
    it survives a restart. Anything handed out is a UserRead, which has no
    password field.
    """

    def __init__(self, repo: EntityRepository):
        self.repo = repo
        self.state = SessionState.ANONYMOUS
        self._user: Optional[UserRead] = None
        repo.add_user_deleted_listener(self._on_user_deleted)

    def bootstrap(self) -> None:
        """Seed the admin on an empty store, then restore a persisted session."""
        self.seed_admin()
        self.restore()

    def seed_admin(self) -> None:
        if self.repo.list_users(fresh=True):
            return
        draft = UserDraft(
            email=settings.SEED_ADMIN_EMAIL,
            name="System Admin",
            phone="+1234567890",
            employee_id="ADMIN001",
            location="Head Office",
            is_admin=True,
            password_hash=hash_password(settings.SEED_ADMIN_PASSWORD),
            password_generated_at=datetime.now(timezone.utc),
            created_by="system",
        )
        try:
            self.repo.create_user(draft)
        except DuplicateIdentityException:
            # Another actor seeded the store first
            return
        logger.info("Default admin user created", email=settings.SEED_ADMIN_EMAIL)

    def restore(self) -> None:
        try:
            saved = self.repo.load_session()
        except StorageFailureException as e:
            logger.warning("Could not read persisted session", reason=e.message)
            saved = None
        if saved is None:
            return

        user = self.repo.get_user(saved.id, fresh=True)
        if user is None:
            logger.info("Discarding session of deleted user", user_id=saved.id)
            self._drop_persisted()
            return
        self._user = user.public()
        self.state = SessionState.AUTHENTICATED
        logger.info("Session restored", user_id=user.id)

    def login(self, email: str, password: str) -> bool:
        self.state = SessionState.AUTHENTICATING
        user = self.repo.find_user_by_email(email, fresh=True)
        if user is None or not verify_password(password, user.password_hash):
            # Same outcome whether or not the email exists
            self.state = SessionState.AUTHENTICATED if self._user else SessionState.ANONYMOUS
            logger.info("Login failed")
            return False

        public = user.public()
        try:
            self.repo.save_session(public)
        except StorageFailureException as e:
            logger.warning("Session not persisted", reason=e.message)
        self._user = public
        self.state = SessionState.AUTHENTICATED
        logger.info("Login successful", user_id=user.id)
        return True

    def logout(self) -> None:
        user_id = self._user.id if self._user else None
        self._user = None
        self.state = SessionState.ANONYMOUS
        self._drop_persisted()
        logger.info("Logged out", user_id=user_id)

    def current_user(self) -> Optional[UserRead]:
        return self._user

    def reset(self) -> None:
        """Wipe every partition and start over with only the seed admin."""
        self.repo.reset()
        self._user = None
        self.state = SessionState.ANONYMOUS
        self.seed_admin()

    def _drop_persisted(self) -> None:
        try:
            self.repo.clear_session()
        except StorageFailureException as e:
            logger.warning("Could not clear persisted session", reason=e.message)

    def _on_user_deleted(self, user_id: str) -> None:
        if self._user and self._user.id == user_id:
            self._user = None
            self.state = SessionState.ANONYMOUS
            logger.info("Session ended, user deleted", user_id=user_id)
