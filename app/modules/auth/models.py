# Clerk
# This module uses Clerk as the identity provider
# No custom tables are required - Clerk handles:
# - Sign-up, sign-in and session management
# - Session JWT issuance (RS256, verified locally with PyJWT)
# - Per-user metadata

"""
Clerk user fields read by this backend:
- id: text (the `sub` claim of the session token, stored as users.clerk_id)
- email_addresses / primary_email_address_id
- first_name
- public_metadata.role: "rider" | "driver" (authoritative; users.role caches it)

The Backend API is reached through the clerk-backend-api SDK:
- users.get() - read the principal
- users.update_metadata() - merge a public_metadata patch
"""
