"""
/users/me: the signed-in account's own profile, password and deletion.
"""
from __future__ import annotations

from fastapi import APIRouter, status

from nexushub.core.dependencies import CurrentUser, DBSession
from nexushub.core.exceptions import BadRequestException
from nexushub.schemas.user import AccountDelete, PasswordChange, UserRead, UserUpdate
from nexushub.services.auth_service import auth_service

router = APIRouter(prefix="/users/me", tags=["Users"])

NO_CONTENT = status.HTTP_204_NO_CONTENT


@router.get("", response_model=UserRead)
async def read_profile(current_user: CurrentUser) -> UserRead:
    return UserRead.model_validate(current_user)


@router.put("", response_model=UserRead)
async def edit_profile(body: UserUpdate, current_user: CurrentUser, db: DBSession) -> UserRead:
    user = await auth_service.update_profile(db, user=current_user, user_in=body)
    return UserRead.model_validate(user)


@router.put("/password", status_code=NO_CONTENT)
async def change_password(body: PasswordChange, current_user: CurrentUser, db: DBSession) -> None:
    """Requires the current password; reusing it as the new one is refused."""
    if body.new_password == body.current_password:
        raise BadRequestException("New password must differ from current password")
    await auth_service.change_password(
        db,
        user=current_user,
        current_password=body.current_password,
        new_password=body.new_password,
    )


@router.delete("", status_code=NO_CONTENT)
async def delete_account(body: AccountDelete, current_user: CurrentUser, db: DBSession) -> None:
    await auth_service.delete_account(db, user=current_user, password=body.password)
