"""
aml_engine – transaction risk scoring and batch money-laundering pattern detection.
"""
__version__ = "1.0.0"

from .errors import (  # noqa: E402
    AMLEngineError,
    HistoryAccessError,
    InvalidBatchError,
    InvalidTransactionError,
)
from .history import FrameHistoryProvider, HistoryProvider  # noqa: E402
from .models import (  # noqa: E402
    PatternAnalysisResult,
    RiskAssessment,
    RiskBreakdown,
    Transaction,
    TransactionType,
)
from .pattern_detector import detect_patterns  # noqa: E402
from .risk_scorer import compute_risk_score, score_batch, score_transaction  # noqa: E402

__all__ = [
    "__version__",
    "AMLEngineError",
    "HistoryAccessError",
    "InvalidBatchError",
    "InvalidTransactionError",
    "FrameHistoryProvider",
    "HistoryProvider",
    "PatternAnalysisResult",
    "RiskAssessment",
    "RiskBreakdown",
    "Transaction",
    "TransactionType",
    "compute_risk_score",
    "detect_patterns",
    "score_batch",
    "score_transaction",
]
