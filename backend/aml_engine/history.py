"""
history.py – Read-only access to transaction history.

The engine never owns storage. Callers hand ``compute_risk_score`` an object
satisfying :class:`HistoryProvider`; it must give a consistent read for the
duration of one call. :class:`FrameHistoryProvider` is the in-memory
implementation used by the HTTP layer and the tests: an immutable pandas
snapshot of a list of transactions.
"""
from __future__ import annotations

import heapq
import logging
from bisect import bisect_left, bisect_right
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import pandas as pd

from .models import Transaction
from .parser import transactions_to_frame
from .utils import to_utc

log = logging.getLogger(__name__)


@runtime_checkable
class HistoryProvider(Protocol):
    """Protocol for the history lookups the risk scorer needs."""

    def recent_for_account(self, account_id: str, limit: int) -> List[Transaction]:
        """Up to ``limit`` most recent transactions where the account is either side."""
        ...

    def recent_in_window(self, duration: timedelta) -> List[Transaction]:
        """All transactions created within ``duration`` of the provider's "now"."""
        ...


class FrameHistoryProvider:
    """
    HistoryProvider over an in-memory snapshot.

    With ``as_of`` set, the provider behaves as if queried at that instant:
    only transactions strictly earlier than ``as_of`` are visible and the
    window lookup is anchored there instead of at the wall clock.
    """

    def __init__(
        self,
        transactions: Sequence[Transaction],
        as_of: Optional[datetime] = None,
        _frame: Optional[pd.DataFrame] = None,
    ):
        self._transactions = list(transactions)
        self._df = _frame if _frame is not None else transactions_to_frame(self._transactions)
        self.as_of = as_of

    def at(self, as_of: datetime) -> "FrameHistoryProvider":
        """Return a view of the same snapshot anchored at ``as_of``."""
        return FrameHistoryProvider(self._transactions, as_of=as_of, _frame=self._df)

    def __len__(self) -> int:
        return len(self._transactions)

    def _anchor(self) -> pd.Timestamp:
        ts = self.as_of or datetime.now(timezone.utc)
        ts = pd.Timestamp(ts)
        return ts.tz_localize("UTC") if ts.tzinfo is None else ts.tz_convert("UTC")

    def _visible(self) -> pd.DataFrame:
        if self.as_of is None:
            return self._df
        return self._df[self._df["timestamp"] < self._anchor()]

    def _materialise(self, df: pd.DataFrame) -> List[Transaction]:
        return [self._transactions[i] for i in df.index]

    def recent_for_account(self, account_id: str, limit: int) -> List[Transaction]:
        df = self._visible()
        mask = (df["from_account_id"] == account_id) | (df["to_account_id"] == account_id)
        recent = df[mask].sort_values("created_at", ascending=False, kind="stable").head(limit)
        return self._materialise(recent)

    def recent_in_window(self, duration: timedelta) -> List[Transaction]:
        df = self._visible()
        since = self._anchor() - pd.Timedelta(duration)
        return self._materialise(df[df["created_at"] >= since])


class AccountTimeline:
    """
    Per-account index over one batch, for scoring every transaction of the
    batch against the ones before it.

    Answers the same lookups as ``FrameHistoryProvider(batch).at(as_of)``,
    but each one bisects the account's own timestamp-ordered entries instead
    of scanning the whole batch.
    """

    def __init__(self, transactions: Sequence[Transaction]):
        entries: Dict[str, List[Tuple[datetime, datetime, int, Transaction]]] = defaultdict(list)
        for position, tx in enumerate(transactions):
            entry = (to_utc(tx.timestamp), to_utc(tx.created_at or tx.timestamp), -position, tx)
            entries[tx.from_account_id].append(entry)
            if tx.to_account_id != tx.from_account_id:
                entries[tx.to_account_id].append(entry)

        self._entries: Dict[str, List[Tuple[datetime, datetime, int, Transaction]]] = {}
        self._times: Dict[str, List[datetime]] = {}
        # Accounts whose creation order agrees with timestamp order.
        self._in_order: Dict[str, bool] = {}
        for account, rows in entries.items():
            rows.sort(key=lambda e: e[:3])
            self._entries[account] = rows
            self._times[account] = [e[0] for e in rows]
            self._in_order[account] = all(
                a[1:3] <= b[1:3] for a, b in zip(rows, rows[1:])
            )
        log.debug("Account timeline built: %d accounts, %d transactions",
                  len(self._entries), len(transactions))

    def recent_for_account(
        self, account_id: str, as_of: datetime, limit: int
    ) -> List[Transaction]:
        """Up to ``limit`` transactions before ``as_of``, most recently created first."""
        rows = self._entries.get(account_id)
        if not rows:
            return []
        visible = rows[:bisect_left(self._times[account_id], to_utc(as_of))]
        if self._in_order[account_id]:
            newest = visible[-limit:][::-1] if limit > 0 else []
        else:
            newest = heapq.nlargest(limit, visible, key=lambda e: e[1:3])
        return [e[3] for e in newest]

    def sender_window(
        self, account_id: str, as_of: datetime, duration: timedelta
    ) -> List[Transaction]:
        """
        The account's transactions timestamped within ``duration`` before
        ``as_of`` and created inside the window: the part of
        ``recent_in_window`` the frequency rules count for this sender.
        """
        rows = self._entries.get(account_id)
        if not rows:
            return []
        anchor = to_utc(as_of)
        since = anchor - duration
        times = self._times[account_id]
        lo, hi = bisect_right(times, since), bisect_left(times, anchor)
        return [e[3] for e in rows[lo:hi] if e[1] >= since]
