from enum import Enum
from pydantic import BaseModel, field_validator, model_validator
from typing import Optional
from datetime import datetime


class Role(str, Enum):
    RIDER = "rider"
    DRIVER = "driver"


ROLES = {r.value for r in Role}
DEFAULT_ROLE = Role.RIDER.value


class ProfileUpdate(BaseModel):
    name: str
    phone: Optional[str] = None
    role: Optional[Role] = None
    vehicle_number: Optional[str] = None
    license_number: Optional[str] = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v

    @model_validator(mode="after")
    def require_driver_details(self):
        if self.role == Role.DRIVER and not (self.vehicle_number and self.license_number):
            raise ValueError("Vehicle number and license number are required for drivers")
        return self


class RoleSwitchRequest(BaseModel):
    role: Role


class UserResponse(BaseModel):
    clerk_id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[str] = None  # not Role: a misconfigured row must still load so /rides can answer 403
    phone: Optional[str] = None
    vehicle_number: Optional[str] = None
    license_number: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RoleSwitchResponse(BaseModel):
    success: bool
    message: str
    user: UserResponse
