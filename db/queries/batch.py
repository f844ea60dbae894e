"""
Batch SQL queries for executemany operations.

These use positional parameters ($1, $2, etc.) required by asyncpg executemany.
Kept separate from aiosql .sql files which use named parameters.
"""

# Batch insert meeting room bookings generated from a recurrence pattern
# Params: (space_id, tenant_id, external_customer_id, lease_id, booking_date,
#          start_minute, end_minute, status, rate_type, applied_rate, hourly_rate,
#          subtotal, discount_percentage, discount_amount, total_amount,
#          recurring_pattern_id, notes)
BATCH_INSERT_BOOKINGS = """
INSERT INTO officehub.bookings (
    space_id, tenant_id, external_customer_id, lease_id, booking_date,
    start_minute, end_minute, status, rate_type, applied_rate, hourly_rate,
    subtotal, discount_percentage, discount_amount, total_amount,
    recurring_pattern_id, is_exception, notes
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15, $16, FALSE, $17)
"""

# Batch insert flex desk days from a flex schedule fill
# Params: (lease_id, space_id, booking_date, is_half_day, half_day_period)
BATCH_INSERT_FLEX_DAY_BOOKINGS = """
INSERT INTO officehub.flex_day_bookings (lease_id, space_id, booking_date, is_half_day, half_day_period, status)
VALUES ($1, $2, $3, $4, $5, 'confirmed')
"""
