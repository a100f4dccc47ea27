"""
risk_scorer.py – Per-transaction risk scoring.

Scoring model
-------------
Four sub-scores, each clamped to [0, 100] before weighting:

1. Amount risk     (30 %) – size bands + deviation from the sender's history.
                            A sender with no history scores a flat 70.
2. Frequency risk  (25 %) – sender activity in the last hour / 24 hours.
3. Pattern risk    (25 %) – round amounts, the 9 000–9 999 structuring band,
                            rapid repeat transfers to the same receiver and
                            first-time counterparties.
4. Time risk       (20 %) – off-hours (before 06:00 / after 22:00) and weekends.

Final score = round(Σ weight × sub-score), clamped to [0, 100].

``compute_risk_score`` fails closed: any history lookup failure or timeout
yields DEFAULT_RISK_SCORE with ``degraded=True``. Only a malformed transaction
raises (InvalidTransactionError).
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import datetime, timedelta
from typing import Any, List, Optional, Sequence, Tuple

from .analytics import is_suspicious, risk_level
from .config import (
    AMOUNT_BANDS, AVG_DEVIATION_BANDS, MAX_EXCESS_RATIO, MAX_EXCESS_POINTS,
    NEW_ACCOUNT_AMOUNT_RISK,
    HOURLY_BANDS, DAILY_BANDS,
    ROUND_AMOUNT_MODULUS, ROUND_AMOUNT_CEILING, ROUND_AMOUNT_POINTS,
    STRUCTURING_BAND, STRUCTURING_POINTS,
    BACK_AND_FORTH_MINUTES, BACK_AND_FORTH_POINTS, NEW_RELATIONSHIP_POINTS,
    OFF_HOURS_BEFORE, OFF_HOURS_AFTER, OFF_HOURS_POINTS, WEEKEND_POINTS,
    WEIGHT_AMOUNT, WEIGHT_FREQUENCY, WEIGHT_PATTERN, WEIGHT_TIME,
    DEFAULT_RISK_SCORE, HISTORY_LIMIT, RECENT_WINDOW_HOURS, HISTORY_TIMEOUT_SECONDS,
)
from .errors import HistoryAccessError
from .history import AccountTimeline, HistoryProvider
from .models import RiskAssessment, RiskBreakdown, Transaction
from .parser import coerce_transaction
from .utils import clamp, round_half_up, to_utc

log = logging.getLogger(__name__)

_HOUR = timedelta(hours=1)
_DAY = timedelta(hours=24)


def _first_band(value: float, bands: list) -> float:
    """Points for the first band whose (exclusive) lower bound ``value`` exceeds."""
    for bound, points in bands:
        if value > bound:
            return points
    return 0.0


def _ratio(value: float, base: float) -> float:
    """value / base, treating any non-zero value over a zero base as unbounded."""
    if base > 0:
        return value / base
    return float("inf") if value > 0 else 0.0


# ---------------------------------------------------------------------------
# Sub-scores
# ---------------------------------------------------------------------------
def amount_risk(amount: float, from_history: Sequence[Transaction]) -> float:
    if not from_history:
        return NEW_ACCOUNT_AMOUNT_RISK

    amounts = [h.amount for h in from_history]
    avg_amount = sum(amounts) / len(amounts)
    max_amount = max(amounts)

    deviation_from_avg = _ratio(abs(amount - avg_amount), avg_amount)
    excess_over_max = _ratio(amount - max_amount, max_amount) if amount > max_amount else 0.0

    risk = _first_band(amount, AMOUNT_BANDS)
    risk += _first_band(deviation_from_avg, AVG_DEVIATION_BANDS)
    if excess_over_max > MAX_EXCESS_RATIO:
        risk += MAX_EXCESS_POINTS
    return clamp(risk)


def frequency_risk(tx: Transaction, recent_window: Sequence[Transaction]) -> float:
    """Sender activity counted backwards from the transaction's own timestamp."""
    now = to_utc(tx.timestamp)
    hourly = daily = 0
    for other in recent_window:
        if tx.from_account_id not in (other.from_account_id, other.to_account_id):
            continue
        age = now - to_utc(other.timestamp)
        if timedelta(0) <= age < _DAY:
            daily += 1
            if age < _HOUR:
                hourly += 1

    risk = _first_band(hourly, HOURLY_BANDS) + _first_band(daily, DAILY_BANDS)
    return clamp(risk)


def pattern_risk(tx: Transaction, from_history: Sequence[Transaction]) -> float:
    amount = tx.amount
    risk = 0.0

    # Round amounts and the sub-threshold band overlap at 9 000; both apply.
    if amount % ROUND_AMOUNT_MODULUS == 0 and amount < ROUND_AMOUNT_CEILING:
        risk += ROUND_AMOUNT_POINTS
    low, high = STRUCTURING_BAND
    if low <= amount < high:
        risk += STRUCTURING_POINTS

    ts = to_utc(tx.timestamp)
    window = timedelta(minutes=BACK_AND_FORTH_MINUTES)
    if any(
        h.to_account_id == tx.to_account_id and abs(to_utc(h.timestamp) - ts) < window
        for h in from_history
    ):
        risk += BACK_AND_FORTH_POINTS

    known_counterparty = any(
        tx.to_account_id in (h.to_account_id, h.from_account_id) for h in from_history
    )
    if not known_counterparty:
        risk += NEW_RELATIONSHIP_POINTS

    return clamp(risk)


def time_risk(timestamp: datetime) -> float:
    risk = 0.0
    if timestamp.hour < OFF_HOURS_BEFORE or timestamp.hour > OFF_HOURS_AFTER:
        risk += OFF_HOURS_POINTS
    if timestamp.weekday() >= 5:
        risk += WEEKEND_POINTS
    return clamp(risk)


def score_transaction(
    tx: Transaction,
    from_history: Sequence[Transaction],
    to_history: Sequence[Transaction],
    recent_window: Sequence[Transaction],
) -> RiskBreakdown:
    """
    Pure scoring over already-fetched history.

    ``to_history`` is accepted so callers fetch both sides once, but no rule
    currently reads the receiver's history.
    """
    amount = amount_risk(tx.amount, from_history)
    frequency = frequency_risk(tx, recent_window)
    pattern = pattern_risk(tx, from_history)
    timing = time_risk(tx.timestamp)

    weighted = (
        WEIGHT_AMOUNT * amount
        + WEIGHT_FREQUENCY * frequency
        + WEIGHT_PATTERN * pattern
        + WEIGHT_TIME * timing
    )
    score = int(clamp(round_half_up(weighted)))

    log.debug(
        "Scored %s: amount=%.0f frequency=%.0f pattern=%.0f time=%.0f → %d "
        "(history from=%d to=%d window=%d)",
        tx.id, amount, frequency, pattern, timing, score,
        len(from_history), len(to_history), len(recent_window),
    )
    return RiskBreakdown(
        amount_risk=amount,
        frequency_risk=frequency,
        pattern_risk=pattern,
        time_risk=timing,
        score=score,
    )


# ---------------------------------------------------------------------------
# History-backed entry point
# ---------------------------------------------------------------------------
def _fetch_history(
    tx: Transaction,
    history: HistoryProvider,
    timeout: float,
) -> Tuple[List[Transaction], List[Transaction], List[Transaction]]:
    """Run the three lookups in parallel; raise HistoryAccessError on any failure."""
    pool = ThreadPoolExecutor(max_workers=3, thread_name_prefix="history")
    try:
        futures = [
            pool.submit(history.recent_for_account, tx.from_account_id, HISTORY_LIMIT),
            pool.submit(history.recent_for_account, tx.to_account_id, HISTORY_LIMIT),
            pool.submit(history.recent_in_window, timedelta(hours=RECENT_WINDOW_HOURS)),
        ]
        _, pending = wait(futures, timeout=timeout)
        if pending:
            raise HistoryAccessError(f"History lookup timed out after {timeout:.1f}s")

        from_history, to_history, recent = (
            [coerce_transaction(t, HistoryAccessError) for t in f.result()]
            for f in futures
        )
        return from_history, to_history, recent
    except HistoryAccessError:
        raise
    except Exception as exc:
        raise HistoryAccessError(f"History lookup failed: {exc}") from exc
    finally:
        pool.shutdown(wait=False, cancel_futures=True)


def _assessment(tx_id: str, score: int, **extra: Any) -> RiskAssessment:
    return RiskAssessment(
        transaction_id=tx_id,
        score=score,
        risk_level=risk_level(score),
        is_suspicious=is_suspicious(score),
        **extra,
    )


def compute_risk_score(
    tx: Any,
    history: HistoryProvider,
    timeout: Optional[float] = None,
) -> RiskAssessment:
    """
    Score one transaction against the history supplied by ``history``.

    Raises
    ------
    InvalidTransactionError if ``tx`` is not a valid transaction.
    """
    tx = coerce_transaction(tx)
    timeout = HISTORY_TIMEOUT_SECONDS if timeout is None else timeout

    try:
        from_history, to_history, recent = _fetch_history(tx, history, timeout)
    except HistoryAccessError as exc:
        log.warning(
            "Risk scoring for %s degraded to default %d: %s",
            tx.id, DEFAULT_RISK_SCORE, exc,
        )
        return _assessment(tx.id, DEFAULT_RISK_SCORE, degraded=True, error=str(exc))

    breakdown = score_transaction(tx, from_history, to_history, recent)
    return _assessment(tx.id, breakdown.score, breakdown=breakdown)


def score_batch(batch: Sequence[Any]) -> List[Tuple[Transaction, RiskAssessment]]:
    """
    Score every transaction using the earlier transactions of the same batch
    as its history (each one sees only what happened strictly before it).

    The batch is indexed by account once and scored directly: the lookups are
    in memory, so they need neither the worker pool nor the timeout of
    ``compute_risk_score``.
    """
    transactions = [coerce_transaction(tx) for tx in batch]
    timeline = AccountTimeline(transactions)
    window = timedelta(hours=RECENT_WINDOW_HOURS)

    scored = []
    for tx in transactions:
        breakdown = score_transaction(
            tx,
            timeline.recent_for_account(tx.from_account_id, tx.timestamp, HISTORY_LIMIT),
            timeline.recent_for_account(tx.to_account_id, tx.timestamp, HISTORY_LIMIT),
            timeline.sender_window(tx.from_account_id, tx.timestamp, window),
        )
        scored.append((tx, _assessment(tx.id, breakdown.score, breakdown=breakdown)))

    log.info("Batch scoring complete: %d transactions scored", len(scored))
    return scored
