"""
network_analyzer.py – Flag hub accounts by transaction connectivity.

degree(account) = number of transactions the account appears in, as sender
or receiver. Accounts whose degree exceeds mean + HUB_STDDEV_MULTIPLIER × σ
(population σ over all accounts in the batch) are hubs.

hub_score = hubs / accounts × 100, rounded and capped at 100.
"""
from __future__ import annotations

import logging

import pandas as pd

from .config import HUB_STDDEV_MULTIPLIER
from .models import AnalyzerOutcome, ZERO_OUTCOME
from .utils import percentage

log = logging.getLogger(__name__)


def account_degrees(df: pd.DataFrame) -> pd.Series:
    """Transaction count per account; a self-transfer counts on both sides."""
    return (
        pd.concat([df["from_account_id"], df["to_account_id"]], ignore_index=True)
        .value_counts()
    )


def detect_hubs(df: pd.DataFrame) -> AnalyzerOutcome:
    if df.empty:
        return ZERO_OUTCOME

    degrees = account_degrees(df)
    if degrees.empty:
        return ZERO_OUTCOME

    mean = float(degrees.mean())
    std = float(degrees.std(ddof=0))
    threshold = mean + HUB_STDDEV_MULTIPLIER * std
    hubs = degrees[degrees > threshold]

    hub_score = percentage(len(hubs), len(degrees))
    log.info(
        "Network analysis: %d hubs / %d accounts (threshold %.2f, score %d)",
        len(hubs), len(degrees), threshold, hub_score,
    )
    return AnalyzerOutcome(hub_score, len(hubs))
