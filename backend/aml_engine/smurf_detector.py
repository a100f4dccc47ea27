"""
smurf_detector.py – Detect structuring between a fixed pair of accounts.

Smurfing (structuring)
-----------------------
  A launderer splits one transfer into several similar-sized transfers from
  the same sender to the same receiver in a short period.

  A (from_account_id, to_account_id) group is flagged when:
    • it has ≥ SMURF_MIN_GROUP transactions,
    • earliest → latest span ≤ SMURF_WINDOW_HOURS,
    • population variance of its amounts < SMURF_VARIANCE_RATIO × mean amount.

Output
------
  confidence : average per-pattern confidence (each flagged group contributes
               SMURF_CONFIDENCE), so several patterns never exceed 100
  count      : number of flagged groups
"""
from __future__ import annotations

import logging

import pandas as pd

from .config import (
    SMURF_MIN_GROUP,
    SMURF_WINDOW_HOURS,
    SMURF_VARIANCE_RATIO,
    SMURF_CONFIDENCE,
)
from .models import AnalyzerOutcome, ZERO_OUTCOME
from .utils import clamp, round_half_up

log = logging.getLogger(__name__)


def detect_smurfing(df: pd.DataFrame) -> AnalyzerOutcome:
    if df.empty:
        return ZERO_OUTCOME

    # One aggregation call per pair; variance is population (ddof=0).
    groups = df.groupby(["from_account_id", "to_account_id"]).agg(
        tx_count=("amount", "count"),
        mean_amt=("amount", "mean"),
        var_amt=("amount", lambda s: float(s.var(ddof=0))),
        first_ts=("timestamp", "min"),
        last_ts=("timestamp", "max"),
    )
    span = groups["last_ts"] - groups["first_ts"]

    flagged = groups[
        (groups["tx_count"] >= SMURF_MIN_GROUP)
        & (span <= pd.Timedelta(hours=SMURF_WINDOW_HOURS))
        & (groups["var_amt"] < SMURF_VARIANCE_RATIO * groups["mean_amt"])
    ]

    patterns = len(flagged)
    if patterns == 0:
        log.info("Smurfing detection: 0 patterns across %d account pairs", len(groups))
        return ZERO_OUTCOME

    contributions = pd.Series(SMURF_CONFIDENCE, index=flagged.index, dtype=float)
    confidence = round_half_up(clamp(float(contributions.mean())))

    log.info(
        "Smurfing detection: %d patterns across %d account pairs (confidence %d)",
        patterns, len(groups), confidence,
    )
    return AnalyzerOutcome(confidence, patterns)
