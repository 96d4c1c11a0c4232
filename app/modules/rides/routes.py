from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.rides.schemas import RideCreate, RideResponse
from app.modules.rides.service import RideService
from app.modules.users.routes import get_user_service
from app.modules.users.service import UserService
from app.core.dependencies import get_current_user_id
from supabase import Client
from typing import List

router = APIRouter(tags=["rides"])


def get_ride_service(supabase: Client = Depends(get_supabase)) -> RideService:
    return RideService(supabase)


@router.get("/", response_model=List[RideResponse])
def list_all_rides(service: RideService = Depends(get_ride_service)):
    """Diagnostic listing of every ride"""
    return service.list_rides()


@router.get("/rides", response_model=List[RideResponse])
def list_my_rides(
    user_id: str = Depends(get_current_user_id),
    user_service: UserService = Depends(get_user_service),
    service: RideService = Depends(get_ride_service)
):
    user = user_service.ensure_user_exists(user_id)
    return service.list_rides_for_user(user.clerk_id, user.role)


@router.post("/book-ride", response_model=RideResponse, status_code=201)
def book_ride(
    ride_data: RideCreate,
    user_id: str = Depends(get_current_user_id),
    user_service: UserService = Depends(get_user_service),
    service: RideService = Depends(get_ride_service)
):
    # rides.user_id must point at an existing users row
    user_service.ensure_user_exists(user_id)
    return service.book_ride(user_id, ride_data)
