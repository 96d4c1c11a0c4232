"""
Resync Roles Script
Repairs drift between Clerk public_metadata.role (authoritative) and users.role.
Drift appears when one half of a role switch fails and the revert fails too.
Can be run manually or as part of a nightly job.

Usage: python -m app.scripts.resync_roles [--dry-run]
"""

import argparse
import sys
import logging

from supabase import Client

from app.config import settings
from app.core.exceptions import UpstreamError
from app.database.supabase_client import create_supabase
from app.modules.auth.service import ClerkIdentityProvider
from app.modules.users.schemas import DEFAULT_ROLE, ROLES, Role
from app.modules.users.service import USERS_TABLE

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

PAGE_SIZE = 500


def iter_user_rows(supabase: Client):
    """Yield (clerk_id, role) for every users row, a page at a time"""
    offset = 0
    while True:
        result = supabase.table(USERS_TABLE)\
            .select("clerk_id, role")\
            .order("clerk_id")\
            .range(offset, offset + PAGE_SIZE - 1)\
            .execute()
        rows = result.data or []
        for row in rows:
            yield row["clerk_id"], row.get("role")
        if len(rows) < PAGE_SIZE:
            return
        offset += PAGE_SIZE


def resync_roles(supabase: Client, identity: ClerkIdentityProvider, dry_run: bool = False) -> dict:
    """Copy each principal's Clerk role onto its users row where they differ"""
    counts = {"checked": 0, "updated": 0, "skipped": 0, "failed": 0}

    for clerk_id, stored_role in iter_user_rows(supabase):
        counts["checked"] += 1
        try:
            principal = identity.fetch_principal(clerk_id)
        except UpstreamError as e:
            logger.error(f"Could not fetch Clerk user {clerk_id}: {e}")
            counts["failed"] += 1
            continue

        provider_role = principal.role or DEFAULT_ROLE
        if provider_role not in ROLES:
            logger.warning(f"Clerk role {provider_role!r} for {clerk_id} is not a known role, skipping")
            counts["skipped"] += 1
            continue
        if provider_role == stored_role:
            continue

        logger.info(f"{clerk_id}: users.role {stored_role!r} -> {provider_role!r}")
        if dry_run:
            counts["updated"] += 1
            continue

        update_data = {"role": provider_role}
        if provider_role != Role.DRIVER.value:
            update_data["vehicle_number"] = None
            update_data["license_number"] = None
        try:
            supabase.table(USERS_TABLE)\
                .update(update_data)\
                .eq("clerk_id", clerk_id)\
                .execute()
            counts["updated"] += 1
        except Exception as e:
            logger.error(f"Error updating role for {clerk_id}: {e}")
            counts["failed"] += 1

    return counts


def main(argv=None):
    """Main function to resync roles"""
    parser = argparse.ArgumentParser(description="Resync users.role from Clerk metadata")
    parser.add_argument("--dry-run", action="store_true", help="report drift without writing")
    args = parser.parse_args(argv)

    try:
        supabase = create_supabase(settings)
        identity = ClerkIdentityProvider.from_settings(settings)

        logger.info("Starting role resync...")
        counts = resync_roles(supabase, identity, dry_run=args.dry_run)
        logger.info(
            f"Resync completed: {counts['checked']} checked, {counts['updated']} updated, "
            f"{counts['skipped']} skipped, {counts['failed']} failed"
        )
        if counts["failed"]:
            sys.exit(1)
    except Exception as e:
        logger.error(f"Error during resync: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
