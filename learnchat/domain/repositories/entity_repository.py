"""
Entity Repository Interface.
Defines the data access contract for Users, Groups, Messages, MCQ responses
and the persisted session record.
"""

from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Union

from learnchat.domain.schemas.group import Group, GroupCreate
from learnchat.domain.schemas.message import MCQResponse, Message, MessageDraft
from learnchat.domain.schemas.user import BulkCreateResult, User, UserDraft, UserRead, UserUpdate


class EntityRepository(Protocol):
    """Interface for the shared entity store."""

    # Users

    def create_user(self, draft: UserDraft) -> User:
        """Persist a new user. Raises DuplicateIdentityException on email/employee id collision."""
        ...

    def create_users_bulk(self, drafts: List[UserDraft]) -> BulkCreateResult:
        """Persist every non-colliding draft, in input order; colliding drafts are skipped."""
        ...

    def update_user(self, user_id: str, updates: Union[UserUpdate, Dict[str, Any]]) -> User:
        """Apply a partial update. Raises EntityNotFoundException."""
        ...

    def set_password(self, user_id: str, password_hash: str) -> User:
        """Rotate a user's credential."""
        ...

    def delete_user(self, user_id: str) -> None:
        """Delete a user, removing them from every group and ending their session."""
        ...

    def get_user(self, user_id: str, fresh: bool = False) -> Optional[User]:
        ...

    def list_users(self, fresh: bool = False) -> List[User]:
        ...

    def find_user_by_email(self, email: str, fresh: bool = False) -> Optional[User]:
        ...

    def find_user_by_employee_id(self, employee_id: str, fresh: bool = False) -> Optional[User]:
        ...

    def add_user_deleted_listener(self, listener: Callable[[str], None]) -> None:
        ...

    # Groups

    def create_group(self, draft: GroupCreate, created_by: str) -> Group:
        ...

    def get_group(self, group_id: str, fresh: bool = False) -> Optional[Group]:
        ...

    def list_groups(self, fresh: bool = False) -> List[Group]:
        ...

    def groups_for_user(self, user_id: str) -> List[Group]:
        """Groups the user is a member or the creator of."""
        ...

    def add_member(self, group_id: str, user_id: str) -> Group:
        ...

    def remove_member(self, group_id: str, user_id: str) -> Group:
        ...

    # Messages

    def append_message(self, draft: MessageDraft) -> Message:
        ...

    def get_message(self, message_id: str, fresh: bool = False) -> Optional[Message]:
        ...

    def list_messages(self) -> List[Message]:
        ...

    def list_messages_for_group(self, group_id: str) -> List[Message]:
        ...

    # Responses

    def append_response(self, response: MCQResponse) -> MCQResponse:
        """Raises DuplicateResponseException when (message_id, user_id) already answered."""
        ...

    def list_responses(self) -> List[MCQResponse]:
        ...

    def responses_for_message(self, message_id: str) -> List[MCQResponse]:
        ...

    def responses_for_group(self, group_id: str) -> List[MCQResponse]:
        ...

    def find_response(self, message_id: str, user_id: str) -> Optional[MCQResponse]:
        ...

    # Session

    def load_session(self) -> Optional[UserRead]:
        ...

    def save_session(self, user: UserRead) -> None:
        ...

    def clear_session(self) -> None:
        ...

    # Reconciliation / maintenance

    def reload(self, partitions: Iterable[str]) -> bool:
        """Replace the named in-memory snapshots with a fresh read."""
        ...

    def reset(self) -> None:
        """Wipe every partition."""
        ...

    def partition_versions(self) -> Dict[str, int]:
        """Write counter per partition, for sync diagnostics."""
        ...
