# Supabase table: rides
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:
- id: uuid (primary key, default: gen_random_uuid())
- user_id: text (not null) - clerk_id of the rider who booked; the users row is ensured before insert
- driver_id: text (nullable) - clerk_id of the assigned driver
- pickup_location: text (not null)
- dropoff_location: text (not null)
- status: text (not null, default: 'requested') - only 'requested' is ever written
- created_at: timestamp (default: now())
"""
