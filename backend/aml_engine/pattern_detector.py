"""
pattern_detector.py – Run the four batch analyzers and assemble one result.

Each analyzer is a pure function of the same immutable DataFrame snapshot, so
they are submitted to a thread pool together and joined before the result is
built. A failing analyzer is logged and contributes its zero default; the
other three still report. Only a malformed batch entry raises
(InvalidBatchError); an empty batch yields an all-zero result.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Optional

import pandas as pd

from .anomaly_detector import detect_anomalies
from .errors import InvalidBatchError
from .layering_detector import detect_layering
from .models import AnalyzerOutcome, PatternAnalysisResult, Transaction, ZERO_OUTCOME
from .network_analyzer import detect_hubs
from .parser import coerce_transaction, transactions_to_frame
from .smurf_detector import detect_smurfing
from .utils import clamp

log = logging.getLogger(__name__)

Analyzer = Callable[[pd.DataFrame], AnalyzerOutcome]

ANALYZERS: Dict[str, Analyzer] = {
    "smurfing": detect_smurfing,
    "layering": detect_layering,
    "network":  detect_hubs,
    "anomaly":  detect_anomalies,
}


def _validate_batch(batch: Any) -> list:
    if batch is None:
        raise InvalidBatchError("Batch must be a sequence of transactions, got None")
    if isinstance(batch, (str, bytes, dict)):
        raise InvalidBatchError(f"Batch must be a sequence of transactions, got {type(batch).__name__}")
    try:
        entries = list(batch)
    except TypeError as exc:
        raise InvalidBatchError(f"Batch is not iterable: {exc}") from exc
    return [coerce_transaction(entry, InvalidBatchError) for entry in entries]


def _run_analyzers(df: pd.DataFrame, analyzers: Dict[str, Analyzer]) -> Dict[str, AnalyzerOutcome]:
    outcomes: Dict[str, AnalyzerOutcome] = {}
    with ThreadPoolExecutor(max_workers=max(len(analyzers), 1), thread_name_prefix="analyzer") as pool:
        futures = {name: pool.submit(fn, df) for name, fn in analyzers.items()}
        for name, future in futures.items():
            try:
                score, count = future.result()
                outcomes[name] = AnalyzerOutcome(int(clamp(score)), max(int(count), 0))
            except Exception as exc:
                log.error("%s analyzer failed; reporting zero: %s", name, exc, exc_info=True)
                outcomes[name] = ZERO_OUTCOME
    return outcomes


def detect_patterns(
    batch: Iterable[Any],
    now: Optional[datetime] = None,
    analyzers: Optional[Dict[str, Analyzer]] = None,
) -> PatternAnalysisResult:
    """
    Analyse a batch of transactions for smurfing, layering, hub and anomaly
    patterns.

    Parameters
    ----------
    batch     : Transactions (or dicts validated into Transactions)
    now       : analysis timestamp; defaults to the current UTC time
    analyzers : override the analyzer set (keys as in ANALYZERS)

    Raises
    ------
    InvalidBatchError if the batch or any entry in it is malformed.
    """
    transactions: list[Transaction] = _validate_batch(batch)
    analyzers = ANALYZERS if analyzers is None else analyzers
    timestamp = now or datetime.now(timezone.utc)

    if not transactions:
        log.info("Pattern detection: empty batch")
        return PatternAnalysisResult(analysis_timestamp=timestamp)

    df = transactions_to_frame(transactions)
    outcomes = _run_analyzers(df, analyzers)
    smurfing = outcomes.get("smurfing", ZERO_OUTCOME)
    layering = outcomes.get("layering", ZERO_OUTCOME)
    network = outcomes.get("network", ZERO_OUTCOME)
    anomaly = outcomes.get("anomaly", ZERO_OUTCOME)

    result = PatternAnalysisResult(
        smurfing_confidence=smurfing.score,
        smurfing_patterns=smurfing.count,
        layering_complexity=layering.score,
        layering_chains=layering.count,
        network_hub_score=network.score,
        suspicious_nodes=network.count,
        anomaly_score=anomaly.score,
        anomalous_transactions=anomaly.count,
        analysis_timestamp=timestamp,
    )
    log.info(
        "Pattern detection complete for %d transactions: smurfing=%d layering=%d hubs=%d anomalies=%d",
        len(transactions), smurfing.count, layering.count, network.count, anomaly.count,
    )
    return result
