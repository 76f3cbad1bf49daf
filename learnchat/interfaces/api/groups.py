"""Group routes: creation, membership and the caller's own groups."""

from typing import List

from fastapi import APIRouter, Depends, status

from learnchat.domain.schemas.group import Group, GroupCreate
from learnchat.domain.schemas.user import UserRead
from learnchat.interfaces.api.deps import get_current_user, require_admin
from learnchat.interfaces.deps import Services, get_services

router = APIRouter(prefix="/api/groups", tags=["Groups"])


@router.get("", response_model=List[Group])
def list_groups(
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return services.repo.list_groups(fresh=True)


@router.get("/mine", response_model=List[Group])
def my_groups(
    services: Services = Depends(get_services),
    user: UserRead = Depends(get_current_user),
):
    # Refresh the snapshot first: membership is written by the admin process
    services.repo.list_groups(fresh=True)
    return services.repo.groups_for_user(user.id)


@router.post("", response_model=Group, status_code=status.HTTP_201_CREATED)
def create_group(
    body: GroupCreate,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return services.repo.create_group(body, created_by=admin.id)


@router.post("/{group_id}/members/{user_id}", response_model=Group)
def add_member(
    group_id: str,
    user_id: str,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return services.repo.add_member(group_id, user_id)


@router.delete("/{group_id}/members/{user_id}", response_model=Group)
def remove_member(
    group_id: str,
    user_id: str,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return services.repo.remove_member(group_id, user_id)
