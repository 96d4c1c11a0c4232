from supabase import Client
from app.core.exceptions import NotFoundError, UpstreamError
from app.modules.auth.schemas import Principal
from app.modules.auth.service import ClerkIdentityProvider
from app.modules.users.schemas import DEFAULT_ROLE, ProfileUpdate, Role, UserResponse
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone
import logging

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
PLACEHOLDER_EMAIL = "unknown@example.com"
PLACEHOLDER_NAME = "Unknown"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class UserService:
    def __init__(self, supabase: Client, identity: ClerkIdentityProvider):
        self.supabase = supabase
        self.identity = identity

    def get_user_row(self, clerk_id: str) -> Optional[Dict[str, Any]]:
        """Get the users row for a Clerk id, or None"""
        try:
            result = self.supabase.table(USERS_TABLE)\
                .select("*")\
                .eq("clerk_id", clerk_id)\
                .maybe_single()\
                .execute()
        except Exception as e:
            raise UpstreamError(f"Failed to look up user {clerk_id}: {e}") from e
        # maybe_single() yields no response at all when nothing matched
        return result.data if result else None

    def ensure_user_exists(self, clerk_id: str, requested_role: Optional[str] = None) -> UserResponse:
        """
        Make sure a users row exists for clerk_id and, when requested_role is
        given, that both the row and Clerk metadata carry it.

        Clerk is written first. If the users write then fails, the Clerk role is
        put back; if that fails too, the drift is logged for resync_roles.
        """
        principal = self.identity.fetch_principal(clerk_id)
        return self._ensure_user_row(principal, requested_role)

    def _ensure_user_row(self, principal: Principal, requested_role: Optional[str] = None) -> UserResponse:
        clerk_id = principal.id
        provider_role = principal.role or DEFAULT_ROLE

        row = self.get_user_row(clerk_id)
        if row is None:
            role = requested_role or provider_role
            pushed = bool(requested_role) and requested_role != provider_role
            if pushed:
                self.identity.update_metadata(clerk_id, {"role": requested_role})
            try:
                row = self._create_user_row(principal, role)
            except UpstreamError:
                if pushed:
                    self._revert_provider_role(clerk_id, principal.role, requested_role)
                raise
            if requested_role and row.get("role") != requested_role:
                # another request created the row first, with a different role
                return self._switch_role(row, requested_role, principal.role)
            return UserResponse(**row)

        if not requested_role or requested_role == row.get("role"):
            return UserResponse(**row)
        return self._switch_role(row, requested_role, principal.role)

    def _create_user_row(self, principal: Principal, role: str) -> Dict[str, Any]:
        """Insert-or-return-existing on clerk_id, so concurrent first requests do not collide"""
        insert_data = {
            "clerk_id": principal.id,
            "email": principal.email or PLACEHOLDER_EMAIL,
            "name": principal.first_name or PLACEHOLDER_NAME,
            "role": role,
            "updated_at": _now(),
        }
        try:
            result = self.supabase.table(USERS_TABLE)\
                .upsert(insert_data, on_conflict="clerk_id", ignore_duplicates=True)\
                .execute()
        except Exception as e:
            raise UpstreamError(f"Failed to create user {principal.id}: {e}") from e

        if result.data:
            logger.info("Created user %s with role %s", principal.id, role)
            return result.data[0]

        existing = self.get_user_row(principal.id)
        if existing is None:
            raise UpstreamError(f"Failed to create user {principal.id}")
        logger.info("User %s was created concurrently; using existing row", principal.id)
        return existing

    def _switch_role(self, row: Dict[str, Any], new_role: str, provider_role: Optional[str]) -> UserResponse:
        clerk_id = row["clerk_id"]
        update_data = {"role": new_role, "updated_at": _now()}
        if new_role != Role.DRIVER.value:
            update_data["vehicle_number"] = None
            update_data["license_number"] = None

        rows = self._write_role_change(clerk_id, update_data, provider_role)
        if not rows:
            raise UpstreamError(f"Failed to update role for {clerk_id}")

        logger.info("Switched role for %s from %s to %s", clerk_id, row.get("role"), new_role)
        return UserResponse(**rows[0])

    def _write_role_change(
        self, clerk_id: str, update_data: Dict[str, Any], provider_role: Optional[str]
    ) -> List[Dict[str, Any]]:
        """
        Push update_data["role"] to Clerk, then write update_data to the users row
        in one update. Clerk is reverted when the row write fails or matches nothing.
        """
        new_role = update_data["role"]
        self.identity.update_metadata(clerk_id, {"role": new_role})
        try:
            result = self.supabase.table(USERS_TABLE)\
                .update(update_data)\
                .eq("clerk_id", clerk_id)\
                .execute()
        except Exception as e:
            self._revert_provider_role(clerk_id, provider_role, new_role)
            raise UpstreamError(f"Failed to update role for {clerk_id}: {e}") from e

        if not result.data:
            self._revert_provider_role(clerk_id, provider_role, new_role)
        return result.data or []

    def _revert_provider_role(self, clerk_id: str, previous_role: Optional[str], attempted_role: str) -> None:
        """Compensate a Clerk metadata write whose users-table counterpart failed"""
        try:
            self.identity.update_metadata(clerk_id, {"role": previous_role})
            logger.warning(
                "Reverted Clerk role for %s to %s after users write for %s failed",
                clerk_id, previous_role, attempted_role,
            )
        except UpstreamError as e:
            logger.error(
                "Role drift for %s: Clerk role is %s but users row was not updated (revert to %s failed: %s)",
                clerk_id, attempted_role, previous_role, e,
            )

    def get_profile(self, clerk_id: str) -> UserResponse:
        return self.ensure_user_exists(clerk_id)

    def update_profile(self, clerk_id: str, profile_data: ProfileUpdate) -> UserResponse:
        """
        Update profile fields. A role change goes into the same users write as
        the driver details, so the row never holds a driver without them.
        """
        principal = self.identity.fetch_principal(clerk_id)
        current = self._ensure_user_row(principal)

        role = profile_data.role.value if profile_data.role else current.role
        update_data = {"name": profile_data.name, "updated_at": _now()}
        if profile_data.phone is not None:
            update_data["phone"] = profile_data.phone
        if role == Role.DRIVER.value:
            if profile_data.vehicle_number is not None:
                update_data["vehicle_number"] = profile_data.vehicle_number
            if profile_data.license_number is not None:
                update_data["license_number"] = profile_data.license_number
        else:
            update_data["vehicle_number"] = None
            update_data["license_number"] = None

        if role != current.role:
            update_data["role"] = role
            rows = self._write_role_change(clerk_id, update_data, principal.role)
            if rows:
                logger.info("Switched role for %s from %s to %s", clerk_id, current.role, role)
        else:
            try:
                result = self.supabase.table(USERS_TABLE)\
                    .update(update_data)\
                    .eq("clerk_id", clerk_id)\
                    .execute()
            except Exception as e:
                raise UpstreamError(f"Failed to update profile for {clerk_id}: {e}") from e
            rows = result.data

        if not rows:
            raise NotFoundError("Profile not found")

        return UserResponse(**rows[0])
