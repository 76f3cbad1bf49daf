"""
PersistentStore implementation of the Entity Repository.

Reads are served from a per-process snapshot of each partition; the
SyncReconciler refreshes those snapshots. Writes always re-read the partition
from the store, apply the change and write it back, so a write never builds
on a stale snapshot. Across processes the last write of a partition wins.
"""

import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import structlog
from pydantic import BaseModel, ValidationError

from learnchat.core.exceptions import (
    DuplicateIdentityException,
    DuplicateResponseException,
    EntityNotFoundException,
    StorageFailureException,
)
from learnchat.domain.repositories.entity_repository import EntityRepository
from learnchat.domain.schemas.group import Group, GroupCreate
from learnchat.domain.schemas.message import MCQResponse, Message, MessageDraft
from learnchat.domain.schemas.user import (
    BulkCreateResult,
    User,
    UserDraft,
    UserRead,
    UserUpdate,
    normalize_email,
)
from learnchat.infrastructure.store import (
    GROUPS,
    MESSAGES,
    RESPONSES,
    SESSION,
    USERS,
    PARTITIONS,
    PersistentStore,
)

logger = structlog.get_logger(__name__)

ENTITY_PARTITIONS = (USERS, GROUPS, MESSAGES, RESPONSES)

_MODELS: Dict[str, type] = {
    USERS: User,
    GROUPS: Group,
    MESSAGES: Message,
    RESPONSES: MCQResponse,
}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


def _collides(users: Iterable[User], email: str, employee_id: str, exclude_id: Optional[str] = None) -> bool:
    email = normalize_email(email)
    for u in users:
        if u.id == exclude_id:
            continue
        if normalize_email(u.email) == email or u.employee_id == employee_id:
            return True
    return False


class StoreEntityRepository(EntityRepository):
    """Entity repository backed by a PersistentStore."""

    def __init__(self, store: PersistentStore):
        self.store = store
        self._lock = threading.RLock()
        self._snapshots: Dict[str, List[BaseModel]] = {name: [] for name in ENTITY_PARTITIONS}
        self._user_deleted_listeners: List[Callable[[str], None]] = []
        self.reload(ENTITY_PARTITIONS)

    # ── Snapshot plumbing ────────────────────────────────────────────

    def _fetch(self, name: str) -> List[Any]:
        """Fresh typed read of a partition. Raises StorageFailureException."""
        records = self.store.read(name)
        model = _MODELS[name]
        try:
            return [model.model_validate(r) for r in records]
        except ValidationError as e:
            logger.error("Partition holds invalid records", partition=name, errors=e.error_count())
            raise StorageFailureException(f"Corrupt records in partition '{name}'", {"partition": name})

    def _load(self, name: str) -> List[Any]:
        """Fresh read that falls back to the last good snapshot on failure."""
        with self._lock:
            try:
                items = self._fetch(name)
            except StorageFailureException as e:
                logger.warning("Using last known snapshot", partition=name, reason=e.message)
                return list(self._snapshots[name])
            self._snapshots[name] = items
            return list(items)

    def _snapshot(self, name: str) -> List[Any]:
        with self._lock:
            return list(self._snapshots[name])

    def _commit(self, changes: Dict[str, Sequence[BaseModel]], session: Optional[list] = None) -> None:
        """Write the given partitions atomically, then adopt them as snapshots."""
        payload: Dict[str, list] = {
            name: [item.model_dump(mode="json") for item in items] for name, items in changes.items()
        }
        if session is not None:
            payload[SESSION] = session
        self.store.write_many(payload)
        for name, items in changes.items():
            self._snapshots[name] = list(items)

    def reload(self, partitions: Iterable[str]) -> bool:
        ok = True
        with self._lock:
            for name in partitions:
                if name not in _MODELS:
                    raise ValueError(f"Cannot reload partition: {name}")
                try:
                    self._snapshots[name] = self._fetch(name)
                except StorageFailureException as e:
                    ok = False
                    logger.warning("Reload failed, keeping snapshot", partition=name, reason=e.message)
        return ok

    def reset(self) -> None:
        with self._lock:
            self.store.write_many({name: [] for name in PARTITIONS})
            self._snapshots = {name: [] for name in ENTITY_PARTITIONS}
        logger.info("All partitions cleared")

    def partition_versions(self) -> Dict[str, int]:
        return {name: self.store.version(name) for name in PARTITIONS}

    # ── Users ────────────────────────────────────────────────────────

    def _build_user(self, draft: UserDraft) -> User:
        data = draft.model_dump()
        data["email"] = normalize_email(draft.email)
        data["employee_id"] = draft.employee_id.strip()
        return User(**data, id=_new_id(), groups=[], created_at=_now())

    def create_user(self, draft: UserDraft) -> User:
        with self._lock:
            users = self._fetch(USERS)
            if _collides(users, draft.email, draft.employee_id.strip()):
                logger.warning("Duplicate user rejected", email=normalize_email(draft.email))
                raise DuplicateIdentityException(
                    details={"email": normalize_email(draft.email), "employee_id": draft.employee_id}
                )
            user = self._build_user(draft)
            self._commit({USERS: users + [user]})
        logger.info("User created", user_id=user.id, email=user.email)
        return user

    def create_users_bulk(self, drafts: List[UserDraft]) -> BulkCreateResult:
        created: List[User] = []
        skipped: List[UserDraft] = []
        with self._lock:
            users = self._fetch(USERS)
            for draft in drafts:
                if _collides(users + created, draft.email, draft.employee_id.strip()):
                    skipped.append(draft)
                    continue
                created.append(self._build_user(draft))
            if created:
                self._commit({USERS: users + created})
        logger.info("Bulk users created", created=len(created), skipped=len(skipped))
        return BulkCreateResult(created=created, skipped=skipped)

    def _replace_user(self, user_id: str, **changes: Any) -> User:
        with self._lock:
            users = self._fetch(USERS)
            for i, u in enumerate(users):
                if u.id == user_id:
                    users[i] = u.model_copy(update=changes)
                    self._commit({USERS: users})
                    return users[i]
        raise EntityNotFoundException("User not found", {"user_id": user_id})

    def update_user(self, user_id: str, updates: Union[UserUpdate, Dict[str, Any]]) -> User:
        if not isinstance(updates, UserUpdate):
            updates = UserUpdate.model_validate(updates)
        changes = updates.model_dump(exclude_unset=True, exclude_none=True)
        if "email" in changes:
            changes["email"] = normalize_email(changes["email"])
        if "employee_id" in changes:
            changes["employee_id"] = changes["employee_id"].strip()

        with self._lock:
            users = self._fetch(USERS)
            idx = next((i for i, u in enumerate(users) if u.id == user_id), None)
            if idx is None:
                raise EntityNotFoundException("User not found", {"user_id": user_id})
            current = users[idx]
            if ("email" in changes or "employee_id" in changes) and _collides(
                users,
                changes.get("email", current.email),
                changes.get("employee_id", current.employee_id),
                exclude_id=user_id,
            ):
                raise DuplicateIdentityException(details={"user_id": user_id})
            user = users[idx] = current.model_copy(update=changes)
            self._commit({USERS: users})
        logger.info("User updated", user_id=user_id, fields=sorted(changes))
        return user

    def set_password(self, user_id: str, password_hash: str) -> User:
        user = self._replace_user(user_id, password_hash=password_hash, password_generated_at=_now())
        logger.info("Password rotated", user_id=user_id)
        return user

    def delete_user(self, user_id: str) -> None:
        with self._lock:
            users = self._fetch(USERS)
            remaining = [u for u in users if u.id != user_id]
            if len(remaining) == len(users):
                raise EntityNotFoundException("User not found", {"user_id": user_id})

            groups = self._fetch(GROUPS)
            touched = []
            for i, g in enumerate(groups):
                if user_id in g.members:
                    groups[i] = g.model_copy(update={"members": [m for m in g.members if m != user_id]})
                    touched.append(g.id)

            session = self.store.read(SESSION)
            ends_session = any(r.get("id") == user_id for r in session)
            self._commit({USERS: remaining, GROUPS: groups}, session=[] if ends_session else None)

        logger.info("User deleted", user_id=user_id, groups=touched, ended_session=ends_session)
        for listener in list(self._user_deleted_listeners):
            listener(user_id)

    def add_user_deleted_listener(self, listener: Callable[[str], None]) -> None:
        self._user_deleted_listeners.append(listener)

    def list_users(self, fresh: bool = False) -> List[User]:
        return self._load(USERS) if fresh else self._snapshot(USERS)

    def get_user(self, user_id: str, fresh: bool = False) -> Optional[User]:
        return next((u for u in self.list_users(fresh) if u.id == user_id), None)

    def find_user_by_email(self, email: str, fresh: bool = False) -> Optional[User]:
        email = normalize_email(email)
        return next((u for u in self.list_users(fresh) if normalize_email(u.email) == email), None)

    def find_user_by_employee_id(self, employee_id: str, fresh: bool = False) -> Optional[User]:
        return next((u for u in self.list_users(fresh) if u.employee_id == employee_id), None)

    # ── Groups ───────────────────────────────────────────────────────

    def create_group(self, draft: GroupCreate, created_by: str) -> Group:
        group = Group(
            id=_new_id(),
            name=draft.name,
            description=draft.description,
            members=[],
            created_by=created_by,
            created_at=_now(),
        )
        with self._lock:
            groups = self._fetch(GROUPS)
            self._commit({GROUPS: groups + [group]})
        logger.info("Group created", group_id=group.id, name=group.name)
        return group

    def get_group(self, group_id: str, fresh: bool = False) -> Optional[Group]:
        return next((g for g in self.list_groups(fresh) if g.id == group_id), None)

    def list_groups(self, fresh: bool = False) -> List[Group]:
        return self._load(GROUPS) if fresh else self._snapshot(GROUPS)

    def groups_for_user(self, user_id: str) -> List[Group]:
        return [g for g in self._snapshot(GROUPS) if g.is_visible_to(user_id)]

    def _membership(self, group_id: str, user_id: str, add: bool) -> Group:
        with self._lock:
            groups = self._fetch(GROUPS)
            users = self._fetch(USERS)
            gi = next((i for i, g in enumerate(groups) if g.id == group_id), None)
            if gi is None:
                raise EntityNotFoundException("Group not found", {"group_id": group_id})
            ui = next((i for i, u in enumerate(users) if u.id == user_id), None)
            if ui is None and add:
                raise EntityNotFoundException("User not found", {"user_id": user_id})

            group = groups[gi]
            if add:
                members = group.members if user_id in group.members else group.members + [user_id]
            else:
                members = [m for m in group.members if m != user_id]
            groups[gi] = group.model_copy(update={"members": members})

            if ui is not None:
                user = users[ui]
                if add:
                    user_groups = user.groups if group_id in user.groups else user.groups + [group_id]
                else:
                    user_groups = [g for g in user.groups if g != group_id]
                users[ui] = user.model_copy(update={"groups": user_groups})

            self._commit({GROUPS: groups, USERS: users})
            return groups[gi]

    def add_member(self, group_id: str, user_id: str) -> Group:
        group = self._membership(group_id, user_id, add=True)
        logger.info("Member added", group_id=group_id, user_id=user_id)
        return group

    def remove_member(self, group_id: str, user_id: str) -> Group:
        group = self._membership(group_id, user_id, add=False)
        logger.info("Member removed", group_id=group_id, user_id=user_id)
        return group

    # ── Messages ─────────────────────────────────────────────────────

    def append_message(self, draft: MessageDraft) -> Message:
        with self._lock:
            if not any(g.id == draft.group_id for g in self._fetch(GROUPS)):
                raise EntityNotFoundException("Group not found", {"group_id": draft.group_id})
            message = Message(**draft.model_dump(), id=_new_id(), timestamp=_now())
            messages = self._fetch(MESSAGES)
            self._commit({MESSAGES: messages + [message]})
        logger.info("Message appended", message_id=message.id, group_id=message.group_id, type=message.type)
        return message

    def get_message(self, message_id: str, fresh: bool = False) -> Optional[Message]:
        messages = self._load(MESSAGES) if fresh else self._snapshot(MESSAGES)
        return next((m for m in messages if m.id == message_id), None)

    def list_messages(self) -> List[Message]:
        return self._snapshot(MESSAGES)

    def list_messages_for_group(self, group_id: str) -> List[Message]:
        return [m for m in self._snapshot(MESSAGES) if m.group_id == group_id]

    # ── Responses ────────────────────────────────────────────────────

    def append_response(self, response: MCQResponse) -> MCQResponse:
        with self._lock:
            responses = self._fetch(RESPONSES)
            if any(r.message_id == response.message_id and r.user_id == response.user_id for r in responses):
                logger.info("Duplicate answer ignored", message_id=response.message_id, user_id=response.user_id)
                raise DuplicateResponseException(
                    details={"message_id": response.message_id, "user_id": response.user_id}
                )
            self._commit({RESPONSES: responses + [response]})
        logger.info("Answer recorded", message_id=response.message_id, user_id=response.user_id)
        return response

    def list_responses(self) -> List[MCQResponse]:
        return self._snapshot(RESPONSES)

    def responses_for_message(self, message_id: str) -> List[MCQResponse]:
        return [r for r in self._snapshot(RESPONSES) if r.message_id == message_id]

    def responses_for_group(self, group_id: str) -> List[MCQResponse]:
        return [r for r in self._snapshot(RESPONSES) if r.group_id == group_id]

    def find_response(self, message_id: str, user_id: str) -> Optional[MCQResponse]:
        return next(
            (r for r in self._snapshot(RESPONSES) if r.message_id == message_id and r.user_id == user_id),
            None,
        )

    # ── Session ──────────────────────────────────────────────────────

    def load_session(self) -> Optional[UserRead]:
        records = self.store.read(SESSION)
        if not records:
            return None
        try:
            return UserRead.model_validate(records[0])
        except ValidationError:
            logger.warning("Discarding unreadable session record")
            return None

    def save_session(self, user: UserRead) -> None:
        self.store.write(SESSION, [user.model_dump(mode="json")])

    def clear_session(self) -> None:
        self.store.clear(SESSION)
