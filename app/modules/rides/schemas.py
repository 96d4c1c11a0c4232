from pydantic import BaseModel, field_validator
from typing import Optional, Union
from datetime import datetime

RIDE_STATUS_REQUESTED = "requested"


class RideCreate(BaseModel):
    pickup_location: str
    dropoff_location: str

    @field_validator("pickup_location", "dropoff_location")
    @classmethod
    def location_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Pickup and dropoff locations are required")
        return v


class RideResponse(BaseModel):
    id: Union[int, str]
    user_id: str
    driver_id: Optional[str] = None
    pickup_location: str
    dropoff_location: str
    status: str = RIDE_STATUS_REQUESTED
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
