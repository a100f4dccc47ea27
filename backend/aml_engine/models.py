"""
models.py – Pydantic models.
Defines the strict Transaction value shared by every analyzer and the exact
JSON contract the engine returns.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, List, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class TransactionType(str, Enum):
    TRANSFER = "TRANSFER"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    PAYMENT = "PAYMENT"
    EXCHANGE = "EXCHANGE"


class Transaction(BaseModel):
    """
    A ledger transaction as seen by the engine.

    Validated once on construction: amount must be a finite non-negative
    number and both account ids must be non-blank. ``created_at`` falls back
    to ``timestamp`` when the ledger did not supply one.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0.0, allow_inf_nan=False)
    from_account_id: str = Field(..., min_length=1)
    to_account_id: str = Field(..., min_length=1)
    timestamp: datetime
    created_at: Optional[datetime] = None
    currency: str = "USD"
    transaction_type: TransactionType = TransactionType.TRANSFER

    @model_validator(mode="before")
    @classmethod
    def _default_created_at(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("created_at") is None:
            data = dict(data)
            data["created_at"] = data.get("timestamp")
        return data


class AnalyzerOutcome(NamedTuple):
    """(score, count) pair produced by every batch analyzer."""
    score: int
    count: int


ZERO_OUTCOME = AnalyzerOutcome(0, 0)


class PatternAnalysisResult(BaseModel):
    """Flat record of the four analyzers' outputs. Serialises to camelCase."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    smurfing_confidence: int = Field(0, ge=0, le=100)
    smurfing_patterns: int = Field(0, ge=0)
    layering_complexity: int = Field(0, ge=0, le=100)
    layering_chains: int = Field(0, ge=0)
    network_hub_score: int = Field(0, ge=0, le=100)
    suspicious_nodes: int = Field(0, ge=0)
    anomaly_score: int = Field(0, ge=0, le=100)
    anomalous_transactions: int = Field(0, ge=0)
    analysis_timestamp: datetime


class RiskBreakdown(BaseModel):
    amount_risk: float = Field(..., ge=0.0, le=100.0)
    frequency_risk: float = Field(..., ge=0.0, le=100.0)
    pattern_risk: float = Field(..., ge=0.0, le=100.0)
    time_risk: float = Field(..., ge=0.0, le=100.0)
    score: int = Field(..., ge=0, le=100)


class RiskAssessment(BaseModel):
    """
    Outcome of scoring one transaction.

    ``degraded`` is True when history could not be read and ``score`` is the
    configured default; ``error`` then carries the reason for the caller's logs.
    """
    transaction_id: str
    score: int = Field(..., ge=0, le=100)
    risk_level: str
    is_suspicious: bool
    breakdown: Optional[RiskBreakdown] = None
    degraded: bool = False
    error: Optional[str] = None


class ScoreRequest(BaseModel):
    transaction: Transaction
    history: List[Transaction] = Field(default_factory=list)


class SuspiciousAccount(BaseModel):
    account_id: str
    suspicious_count: int
    risk_score: int = Field(..., ge=0, le=100)


class BatchStatistics(BaseModel):
    total_transactions: int
    suspicious_transactions: int
    normal_transactions: int
    average_risk_score: int = Field(..., ge=0, le=100)


class ParseStats(BaseModel):
    total_rows: int
    valid_rows: int
    dropped_rows: int
    duplicate_tx_ids: int
    negative_amounts: int
    warnings: List[str] = Field(default_factory=list)
