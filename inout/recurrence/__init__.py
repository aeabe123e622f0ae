"""Subscription recurrence."""

from inout.recurrence.engine import (
    MissingFieldsError,
    advance,
    describe_cycle,
    generate_due,
    is_expired,
    is_final_renewal,
    next_renewal_date,
)

__all__ = [
    "MissingFieldsError",
    "advance",
    "describe_cycle",
    "generate_due",
    "is_expired",
    "is_final_renewal",
    "next_renewal_date",
]
