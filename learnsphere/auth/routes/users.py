from fastapi import APIRouter, Depends

from learnsphere.auth.dependencies import get_current_user
from learnsphere.auth.models.user import User
from learnsphere.auth.schemas.user import UserResponse

router = APIRouter()


@router.get("/users/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse(
        id=str(current_user.id),
        email=current_user.email,
        name=current_user.name,
        avatar_url=current_user.avatar_url,
        role=current_user.role.value,
        total_points=current_user.total_points,
        badge_level=current_user.badge_level.value,
        created_at=current_user.created_at,
    )
