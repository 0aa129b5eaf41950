"""Current-user endpoints."""

from fastapi import APIRouter

from rethoric.api.deps import CurrentUser, SessionDep
from rethoric.api.schemas import UpdateProfileRequest, UserOut, user_out
from rethoric.auth.users import update_display_name

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def me(user: CurrentUser) -> UserOut:
    return user_out(user)


@router.patch("/me", response_model=UserOut)
async def update_me(
    request: UpdateProfileRequest, user: CurrentUser, session: SessionDep
) -> UserOut:
    user = await update_display_name(session, user, request.name)
    return user_out(user)


@router.get("/me/admin")
async def is_admin(user: CurrentUser) -> dict[str, bool]:
    return {"is_admin": user.is_admin}
