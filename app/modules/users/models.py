# Supabase table: users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Clerk; rows are created lazily on first use

"""
Expected Supabase table structure:

users:
- clerk_id: text (primary key / unique, not null) - Clerk user id (token `sub`)
- name: text (not null, default: 'Unknown')
- email: text (not null, default: 'unknown@example.com')
- role: text (not null, default: 'rider') - values: rider, driver
- phone: text (nullable)
- vehicle_number: text (nullable) - set only when role = driver
- license_number: text (nullable) - set only when role = driver
- updated_at: timestamp (default: now())

The UNIQUE constraint on clerk_id backs the upsert used for first-time creation.
Note: users.role caches Clerk public_metadata.role; app/scripts/resync_roles.py
repairs any drift between the two.
"""
