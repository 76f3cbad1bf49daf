"""Routes for user administration: CRUD, password rotation and spreadsheet import."""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from learnchat.application.services.credential_service import PasswordStrategy
from learnchat.application.services.tabular_codec import build_user_template
from learnchat.application.services.user_service import create_user_with_password, regenerate_password
from learnchat.config import get_settings
from learnchat.domain.schemas.analytics import BulkImportReport
from learnchat.domain.schemas.user import GeneratedPassword, UserCreate, UserRead, UserUpdate
from learnchat.interfaces.api.deps import require_admin
from learnchat.interfaces.deps import Services, get_services

settings = get_settings()
router = APIRouter(prefix="/api/users", tags=["Users"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class UserCreated(BaseModel):
    user: UserRead
    password: GeneratedPassword


@router.get("", response_model=List[UserRead])
def list_users(
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    # The acting admin is not listed
    return [u.public() for u in services.repo.list_users(fresh=True) if u.id != admin.id]


@router.post("", response_model=UserCreated, status_code=status.HTTP_201_CREATED)
def create_user(
    body: UserCreate,
    strategy: PasswordStrategy = Query(PasswordStrategy(settings.DEFAULT_PASSWORD_STRATEGY)),
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    user, password = create_user_with_password(services.repo, services.issuer, body, strategy, admin.id)
    return UserCreated(user=user.public(), password=password)


@router.get("/template")
def download_template(admin: UserRead = Depends(require_admin)):
    return Response(
        content=build_user_template(),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="users_template.xlsx"'},
    )


@router.post("/bulk", response_model=BulkImportReport)
async def bulk_upload(
    file: UploadFile = File(...),
    strategy: PasswordStrategy = Query(PasswordStrategy(settings.DEFAULT_PASSWORD_STRATEGY)),
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file provided")
    content = await file.read()
    # The pipeline sleeps between rows, keep it off the event loop
    return await run_in_threadpool(
        services.importer.import_file, content, file.filename, strategy, admin.id
    )


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    body: UserUpdate,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return services.repo.update_user(user_id, body).public()


@router.post("/{user_id}/password", response_model=GeneratedPassword)
def reset_password(
    user_id: str,
    strategy: Optional[PasswordStrategy] = None,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    return regenerate_password(
        services.repo, services.issuer, user_id, strategy or settings.DEFAULT_PASSWORD_STRATEGY
    )


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: str,
    services: Services = Depends(get_services),
    admin: UserRead = Depends(require_admin),
):
    services.repo.delete_user(user_id)
