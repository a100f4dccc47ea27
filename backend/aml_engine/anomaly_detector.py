"""
anomaly_detector.py – Detect statistical and temporal outliers in a batch.

Two independent signals, unioned by transaction id:
  • amount outliers : |amount − mean| > AMOUNT_ANOMALY_STDDEV × σ, using the
                      batch-wide mean and population σ
  • off-hours       : recorded hour < OFF_HOURS_BEFORE or > OFF_HOURS_AFTER

score = anomalous / batch size × 100, rounded and capped at 100.
"""
from __future__ import annotations

import logging

import pandas as pd

from .config import AMOUNT_ANOMALY_STDDEV, OFF_HOURS_BEFORE, OFF_HOURS_AFTER
from .models import AnalyzerOutcome, ZERO_OUTCOME
from .utils import percentage

log = logging.getLogger(__name__)


def amount_outliers(df: pd.DataFrame) -> pd.Series:
    """Boolean mask of rows whose amount is a z-score outlier for the batch."""
    amounts = df["amount"]
    mean = amounts.mean()
    std = amounts.std(ddof=0)
    return (amounts - mean).abs() > AMOUNT_ANOMALY_STDDEV * std


def off_hours(df: pd.DataFrame) -> pd.Series:
    return (df["hour"] < OFF_HOURS_BEFORE) | (df["hour"] > OFF_HOURS_AFTER)


def detect_anomalies(df: pd.DataFrame) -> AnalyzerOutcome:
    if df.empty:
        return ZERO_OUTCOME

    by_amount = amount_outliers(df)
    by_time = off_hours(df)
    anomalous = int(df.loc[by_amount | by_time, "transaction_id"].nunique())

    score = percentage(anomalous, len(df))
    log.info(
        "Anomaly detection: %d anomalous / %d transactions (%d amount, %d off-hours)",
        anomalous, len(df), int(by_amount.sum()), int(by_time.sum()),
    )
    return AnalyzerOutcome(score, anomalous)
