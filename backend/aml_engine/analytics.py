"""
analytics.py – Classification and summary statistics over risk scores.

Risk level      : low (< 60) / medium (60–79) / high (≥ 80)
Alert severity  : LOW / MEDIUM (≥ 60) / HIGH (≥ 80) / CRITICAL (≥ 90)
Suspicious      : score ≥ SUSPICIOUS_SCORE_THRESHOLD

No false-positive rate is reported: there is no labelled outcome data to
measure one against.
"""
from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

import pandas as pd

from .config import (
    ALERT_SEVERITY,
    RISK_LEVELS,
    SUSPICIOUS_SCORE_THRESHOLD,
    TOP_SUSPICIOUS_ACCOUNTS,
)
from .models import BatchStatistics, RiskAssessment, SuspiciousAccount, Transaction
from .utils import round_half_up

log = logging.getLogger(__name__)


def _band(score: float, bands: list) -> str:
    for lower, label in bands:
        if score >= lower:
            return label
    return bands[-1][1]


def risk_level(score: float) -> str:
    return _band(score, RISK_LEVELS)


def alert_severity(score: float) -> str:
    return _band(score, ALERT_SEVERITY)


def is_suspicious(score: float) -> bool:
    return score >= SUSPICIOUS_SCORE_THRESHOLD


def _scored_frame(scored: Sequence[Tuple[Transaction, RiskAssessment]]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "from_account_id": tx.from_account_id,
                "score":           assessment.score,
                "suspicious":      assessment.is_suspicious,
            }
            for tx, assessment in scored
        ],
        columns=["from_account_id", "score", "suspicious"],
    )


def batch_statistics(scored: Sequence[Tuple[Transaction, RiskAssessment]]) -> BatchStatistics:
    """Totals and average score for a scored batch."""
    df = _scored_frame(scored)
    total = len(df)
    suspicious = int(df["suspicious"].sum()) if total else 0
    average = round_half_up(float(df["score"].mean())) if total else 0
    return BatchStatistics(
        total_transactions=total,
        suspicious_transactions=suspicious,
        normal_transactions=total - suspicious,
        average_risk_score=average,
    )


def top_suspicious_accounts(
    scored: Sequence[Tuple[Transaction, RiskAssessment]],
    limit: int = TOP_SUSPICIOUS_ACCOUNTS,
) -> List[SuspiciousAccount]:
    """
    Sending accounts with the most suspicious transactions.

    Sorted by suspicious count descending, then by average score descending,
    then by account id for a stable order.
    """
    df = _scored_frame(scored)
    df = df[df["suspicious"].astype(bool)]
    if df.empty:
        return []

    grouped = df.groupby("from_account_id").agg(
        suspicious_count=("score", "count"),
        avg_score=("score", "mean"),
    ).reset_index()
    grouped = grouped.sort_values(
        ["suspicious_count", "avg_score", "from_account_id"],
        ascending=[False, False, True],
    ).head(limit)

    accounts = [
        SuspiciousAccount(
            account_id=row.from_account_id,
            suspicious_count=int(row.suspicious_count),
            risk_score=round_half_up(float(row.avg_score)),
        )
        for row in grouped.itertuples(index=False)
    ]
    log.info("Top suspicious accounts: %d of %d senders", len(accounts), df["from_account_id"].nunique())
    return accounts
