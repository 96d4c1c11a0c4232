from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.auth.service import ClerkIdentityProvider
from app.modules.users.schemas import (
    ProfileUpdate, RoleSwitchRequest, RoleSwitchResponse, UserResponse
)
from app.modules.users.service import UserService
from app.core.dependencies import get_current_user_id, get_identity_provider
from supabase import Client

router = APIRouter(tags=["users"])


def get_user_service(
    supabase: Client = Depends(get_supabase),
    identity: ClerkIdentityProvider = Depends(get_identity_provider),
) -> UserService:
    return UserService(supabase, identity)


@router.get("/profile", response_model=UserResponse)
def get_profile(
    user_id: str = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Get the caller's profile, creating it on first use"""
    return service.get_profile(user_id)


@router.put("/profile", response_model=UserResponse)
def update_profile(
    profile_data: ProfileUpdate,
    user_id: str = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    return service.update_profile(user_id, profile_data)


@router.post("/switch-role", response_model=RoleSwitchResponse)
def switch_role(
    request: RoleSwitchRequest,
    user_id: str = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service)
):
    """Switch between rider and driver; updates Clerk metadata and the users row"""
    user = service.ensure_user_exists(user_id, request.role.value)
    return RoleSwitchResponse(
        success=True,
        message=f"Role switched to {request.role.value}",
        user=user,
    )
