"""
Transaction builders shared by the test modules.
"""
from datetime import datetime, timedelta
from itertools import count

from aml_engine.models import Transaction

# Wednesday, midday: neither off-hours nor weekend.
WEDNESDAY_NOON = datetime(2024, 1, 3, 12, 0, 0)
SATURDAY_3AM = datetime(2024, 1, 6, 3, 0, 0)

_ids = count(1)


def make_tx(from_acc, to_acc, amount, ts=WEDNESDAY_NOON, tx_id=None, **extra):
    """Build a valid Transaction with an auto-generated id."""
    return Transaction(
        id=tx_id or f"TX_{next(_ids):05d}",
        amount=amount,
        from_account_id=from_acc,
        to_account_id=to_acc,
        timestamp=ts,
        **extra,
    )


def minutes(n):
    return timedelta(minutes=n)


def hours(n):
    return timedelta(hours=n)
