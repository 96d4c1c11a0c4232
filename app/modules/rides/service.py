from supabase import Client
from app.core.exceptions import RoleError, UpstreamError
from app.modules.rides.schemas import RIDE_STATUS_REQUESTED, RideCreate, RideResponse
from app.modules.users.schemas import Role
from typing import List
import logging

logger = logging.getLogger(__name__)

RIDES_TABLE = "rides"

# Which rides column identifies the caller, per stored role
_ROLE_COLUMNS = {
    Role.RIDER.value: "user_id",
    Role.DRIVER.value: "driver_id",
}


class RideService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def list_rides(self) -> List[RideResponse]:
        """All rides, newest first. Diagnostic only."""
        try:
            result = self.supabase.table(RIDES_TABLE)\
                .select("*")\
                .order("created_at", desc=True)\
                .execute()
        except Exception as e:
            raise UpstreamError(f"Failed to list rides: {e}") from e
        return [RideResponse(**ride) for ride in result.data or []]

    def list_rides_for_user(self, clerk_id: str, role: str) -> List[RideResponse]:
        """Riders see rides they booked, drivers see rides assigned to them"""
        column = _ROLE_COLUMNS.get(role)
        if column is None:
            logger.warning("User %s has unrecognised role %r", clerk_id, role)
            raise RoleError(f"Invalid role: {role}")
        try:
            result = self.supabase.table(RIDES_TABLE)\
                .select("*")\
                .eq(column, clerk_id)\
                .order("created_at", desc=True)\
                .execute()
        except Exception as e:
            raise UpstreamError(f"Failed to list rides for {clerk_id}: {e}") from e
        return [RideResponse(**ride) for ride in result.data or []]

    def book_ride(self, clerk_id: str, ride_data: RideCreate) -> RideResponse:
        try:
            result = self.supabase.table(RIDES_TABLE).insert({
                "user_id": clerk_id,
                "pickup_location": ride_data.pickup_location,
                "dropoff_location": ride_data.dropoff_location,
                "status": RIDE_STATUS_REQUESTED,
            }).execute()
        except Exception as e:
            raise UpstreamError(f"Failed to book ride: {e}") from e

        if not result.data:
            raise UpstreamError("Failed to book ride")

        ride = RideResponse(**result.data[0])
        logger.info("Ride %s booked by %s", ride.id, clerk_id)
        return ride
