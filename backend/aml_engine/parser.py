"""
parser.py – Boundary validation and the shared transaction frame.

Everything entering the engine passes through here exactly once:
  • CSV uploads are parsed, cleaned and turned into Transaction models
  • dict payloads are validated into Transaction models
  • a batch of Transactions becomes the single DataFrame every analyzer reads

CSV validation:
  • Required columns present
  • amount numeric, finite and ≥ 0
  • timestamp format YYYY-MM-DD HH:MM:SS (with fallbacks)
  • Duplicate transaction_id detection
  • Encoding auto-detection (UTF-8 / latin-1 fallback)
"""
from __future__ import annotations

import io
import logging
import warnings
from typing import Any, Iterable, List, Tuple, Type

import pandas as pd
from pydantic import ValidationError

from .config import MAX_ROWS
from .errors import AMLEngineError, InvalidTransactionError
from .models import ParseStats, Transaction, TransactionType
from .utils import to_utc

log = logging.getLogger(__name__)

REQUIRED_COLUMNS = frozenset(
    {"transaction_id", "from_account_id", "to_account_id", "amount", "timestamp"}
)
OPTIONAL_COLUMNS = ("created_at", "currency", "transaction_type")

FRAME_COLUMNS = [
    "transaction_id", "from_account_id", "to_account_id", "amount",
    "timestamp", "hour", "weekday", "created_at", "currency", "transaction_type",
]

_TS_FORMATS = ["%Y-%m-%d %H:%M:%S", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M"]


# ---------------------------------------------------------------------------
# Single-record validation
# ---------------------------------------------------------------------------
def coerce_transaction(
    obj: Any,
    error_cls: Type[AMLEngineError] = InvalidTransactionError,
) -> Transaction:
    """Return ``obj`` as a Transaction, raising ``error_cls`` if it is malformed."""
    if isinstance(obj, Transaction):
        return obj
    try:
        return Transaction.model_validate(obj)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'transaction'}: {err['msg']}"
            for err in exc.errors()
        )
        raise error_cls(f"Invalid transaction: {problems}") from exc


# ---------------------------------------------------------------------------
# Transactions → DataFrame
# ---------------------------------------------------------------------------
def transactions_to_frame(batch: Iterable[Transaction]) -> pd.DataFrame:
    """
    Build the analysis frame from validated transactions.

    ``timestamp`` / ``created_at`` are normalised to UTC for span arithmetic
    (naive values are read as UTC). ``hour`` and ``weekday`` keep the
    wall-clock values of the timestamp as it was recorded, which is what the
    off-hours rules look at.
    """
    rows = [
        {
            "transaction_id":   tx.id,
            "from_account_id":  tx.from_account_id,
            "to_account_id":    tx.to_account_id,
            "amount":           float(tx.amount),
            "timestamp":        to_utc(tx.timestamp),
            "hour":             tx.timestamp.hour,
            "weekday":          tx.timestamp.weekday(),
            "created_at":       to_utc(tx.created_at or tx.timestamp),
            "currency":         tx.currency,
            "transaction_type": tx.transaction_type.value,
        }
        for tx in batch
    ]
    df = pd.DataFrame(rows, columns=FRAME_COLUMNS)
    df["amount"] = df["amount"].astype(float)
    df["hour"] = df["hour"].astype(int)
    df["weekday"] = df["weekday"].astype(int)
    df["timestamp"] = pd.to_datetime(df["timestamp"], utc=True)
    df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
    return df


def frame_to_transactions(df: pd.DataFrame) -> List[Transaction]:
    """Rebuild Transaction models from a cleaned CSV frame."""
    records = df.to_dict(orient="records")
    out: List[Transaction] = []
    for rec in records:
        payload = {
            "id":              rec["transaction_id"],
            "amount":          rec["amount"],
            "from_account_id": rec["from_account_id"],
            "to_account_id":   rec["to_account_id"],
            "timestamp":       rec["timestamp"].to_pydatetime(),
        }
        created_at = rec.get("created_at")
        if created_at is not None and not pd.isna(created_at):
            payload["created_at"] = created_at.to_pydatetime()
        if rec.get("currency"):
            payload["currency"] = rec["currency"]
        if rec.get("transaction_type"):
            payload["transaction_type"] = rec["transaction_type"]
        out.append(coerce_transaction(payload))
    return out


# ---------------------------------------------------------------------------
# CSV upload
# ---------------------------------------------------------------------------
def _decode_bytes(raw: bytes) -> str:
    """Try UTF-8, then latin-1 fallback."""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1", errors="replace")


def _parse_timestamps(series: pd.Series) -> pd.Series:
    """
    Try each known format then fall back to pandas flexible inference.

    A column whose values carry different UTC offsets cannot be held as one
    datetime64 dtype; it is parsed value by value instead so every timestamp
    keeps its own offset (and its wall-clock hour).
    """
    for fmt in _TS_FORMATS:
        parsed = pd.to_datetime(series, format=fmt, errors="coerce")
        if parsed.notna().mean() >= 0.9:
            return parsed
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", FutureWarning)
            parsed = pd.to_datetime(series, errors="coerce")
    except ValueError:
        parsed = None
    if parsed is not None and pd.api.types.is_datetime64_any_dtype(parsed):
        return parsed
    return series.map(_parse_one_timestamp)


def _parse_one_timestamp(value: str) -> Any:
    try:
        return pd.Timestamp(value)
    except (ValueError, TypeError):
        return pd.NaT


def parse_csv(file_bytes: bytes) -> Tuple[List[Transaction], ParseStats]:
    """
    Parse and validate CSV bytes.

    Returns
    -------
    transactions : list[Transaction] – cleaned, ready for analysis
    stats        : ParseStats        – parse statistics and warnings

    Raises
    ------
    ValueError on fatal errors (missing columns, zero valid rows).
    """
    stats: dict = {
        "total_rows": 0,
        "valid_rows": 0,
        "dropped_rows": 0,
        "duplicate_tx_ids": 0,
        "negative_amounts": 0,
        "warnings": [],
    }

    # 1. Decode & read ─────────────────────────────────────────────────────────
    text = _decode_bytes(file_bytes)

    # Comment lines ('#') and blank lines are not rows.
    cleaned_lines = [
        line for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
    cleaned_text = "\n".join(cleaned_lines)

    try:
        df = pd.read_csv(io.StringIO(cleaned_text), dtype=str, keep_default_na=False)
    except Exception as exc:
        raise ValueError(f"CSV parse error: {exc}") from exc

    stats["total_rows"] = len(df)
    log.info("CSV loaded: %d raw rows", len(df))

    if df.empty:
        raise ValueError("CSV file is empty – no rows found.")

    # 2. Normalise column names ────────────────────────────────────────────────
    df.columns = [str(c).strip().lower().replace(" ", "_") for c in df.columns]
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(
            f"Missing required columns: {sorted(missing)}. "
            f"Found: {sorted(df.columns.tolist())}"
        )
    keep = sorted(REQUIRED_COLUMNS) + [c for c in OPTIONAL_COLUMNS if c in df.columns]
    df = df[keep].copy()

    # 3. Strip whitespace ──────────────────────────────────────────────────────
    for col in keep:
        df[col] = df[col].str.strip()

    # 4. Drop empty-field rows ─────────────────────────────────────────────────
    mask_empty = (
        df["transaction_id"].eq("") | df["from_account_id"].eq("") |
        df["to_account_id"].eq("") | df["amount"].eq("") | df["timestamp"].eq("")
    )
    n_empty = int(mask_empty.sum())
    if n_empty:
        stats["warnings"].append(f"Dropped {n_empty} rows with empty fields.")
    df = df[~mask_empty].copy()

    # 5. Parse & validate amount ───────────────────────────────────────────────
    df["amount"] = pd.to_numeric(df["amount"], errors="coerce")
    bad = df["amount"].isna()
    if bad.any():
        stats["warnings"].append(f"Dropped {int(bad.sum())} rows with non-numeric amount.")
        df = df[~bad].copy()

    # to_numeric accepts "inf" / "-inf"
    infinite = df["amount"].abs() == float("inf")
    if infinite.any():
        stats["warnings"].append(f"Dropped {int(infinite.sum())} rows with non-finite amount.")
        df = df[~infinite].copy()

    neg = df["amount"] < 0
    stats["negative_amounts"] = int(neg.sum())
    if stats["negative_amounts"]:
        stats["warnings"].append(
            f"Dropped {stats['negative_amounts']} rows with negative amount."
        )
        df = df[~neg].copy()
    df["amount"] = df["amount"].astype(float)

    # 6. Parse timestamps ──────────────────────────────────────────────────────
    df["timestamp"] = _parse_timestamps(df["timestamp"])
    bad_ts = df["timestamp"].isna()
    if bad_ts.any():
        stats["warnings"].append(
            f"Dropped {int(bad_ts.sum())} rows with unparseable timestamp."
        )
        df = df[~bad_ts].copy()

    if "created_at" in df.columns:
        # Optional column: unparseable values fall back to timestamp.
        df["created_at"] = _parse_timestamps(df["created_at"])

    # 7. Unknown transaction types ─────────────────────────────────────────────
    if "transaction_type" in df.columns:
        df["transaction_type"] = df["transaction_type"].str.upper()
        known = {t.value for t in TransactionType}
        bad_type = ~df["transaction_type"].isin(known) & df["transaction_type"].ne("")
        if bad_type.any():
            stats["warnings"].append(
                f"Dropped {int(bad_type.sum())} rows with unknown transaction_type."
            )
            df = df[~bad_type].copy()

    # 8. Deduplicate transaction_id ────────────────────────────────────────────
    dups = df.duplicated(subset=["transaction_id"], keep="first")
    stats["duplicate_tx_ids"] = int(dups.sum())
    if stats["duplicate_tx_ids"]:
        stats["warnings"].append(
            f"Dropped {stats['duplicate_tx_ids']} duplicate transaction_id rows."
        )
        df = df[~dups].copy()

    # 9. Row limit ─────────────────────────────────────────────────────────────
    if len(df) > MAX_ROWS:
        stats["warnings"].append(
            f"Dataset truncated from {len(df)} to {MAX_ROWS} rows."
        )
        df = df.head(MAX_ROWS).copy()

    if df.empty:
        raise ValueError(
            "No valid rows remain after validation. "
            f"Issues: {'; '.join(stats['warnings']) or 'unknown'}"
        )

    transactions = frame_to_transactions(df.reset_index(drop=True))
    stats["valid_rows"] = len(transactions)
    stats["dropped_rows"] = stats["total_rows"] - len(transactions)
    log.info("Parse complete: %d valid / %d total rows", stats["valid_rows"], stats["total_rows"])
    return transactions, ParseStats(**stats)
