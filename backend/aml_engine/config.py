"""
config.py – Centralised configuration via environment variables.
All tunable thresholds live here so nothing is scattered across modules.
"""
import os


# ── Upload limits ──────────────────────────────────────────────────────────────
MAX_FILE_SIZE_MB: int = int(os.getenv("MAX_FILE_SIZE_MB", "20"))
MAX_FILE_SIZE_BYTES: int = MAX_FILE_SIZE_MB * 1024 * 1024
MAX_ROWS: int = int(os.getenv("MAX_ROWS", "10000"))
CORS_ORIGINS: list = os.getenv("CORS_ORIGINS", "*").split(",")

# ── History lookups ────────────────────────────────────────────────────────────
HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "100"))
RECENT_WINDOW_HOURS: float = float(os.getenv("RECENT_WINDOW_HOURS", "24"))
HISTORY_TIMEOUT_SECONDS: float = float(os.getenv("HISTORY_TIMEOUT_SECONDS", "5.0"))

# ── Risk scoring ───────────────────────────────────────────────────────────────
# Returned whenever history cannot be read (failure or timeout).
DEFAULT_RISK_SCORE: int = int(os.getenv("DEFAULT_RISK_SCORE", "50"))

WEIGHT_AMOUNT: float = 0.30
WEIGHT_FREQUENCY: float = 0.25
WEIGHT_PATTERN: float = 0.25
WEIGHT_TIME: float = 0.20

# Amount risk
NEW_ACCOUNT_AMOUNT_RISK: float = 70.0
AMOUNT_BANDS: list = [          # (exclusive lower bound, points), first match wins
    (100_000.0, 40.0),
    (50_000.0, 25.0),
    (10_000.0, 10.0),
]
AVG_DEVIATION_BANDS: list = [   # (relative deviation from mean, points)
    (5.0, 30.0),
    (2.0, 15.0),
]
MAX_EXCESS_RATIO: float = 2.0
MAX_EXCESS_POINTS: float = 25.0

# Frequency risk
HOURLY_BANDS: list = [(10, 50.0), (5, 25.0)]
DAILY_BANDS: list = [(50, 40.0), (20, 20.0)]

# Pattern risk
ROUND_AMOUNT_MODULUS: float = 1000.0
ROUND_AMOUNT_CEILING: float = 10_000.0
ROUND_AMOUNT_POINTS: float = 20.0
STRUCTURING_BAND: tuple = (9_000.0, 10_000.0)    # [low, high)
STRUCTURING_POINTS: float = 30.0
BACK_AND_FORTH_MINUTES: float = 60.0
BACK_AND_FORTH_POINTS: float = 35.0
NEW_RELATIONSHIP_POINTS: float = 15.0

# Time risk
OFF_HOURS_BEFORE: int = 6       # hour <  6 is off-hours
OFF_HOURS_AFTER: int = 22       # hour > 22 is off-hours
OFF_HOURS_POINTS: float = 15.0
WEEKEND_POINTS: float = 10.0

# ── Smurfing detection ─────────────────────────────────────────────────────────
SMURF_MIN_GROUP: int = int(os.getenv("SMURF_MIN_GROUP", "3"))
SMURF_WINDOW_HOURS: float = float(os.getenv("SMURF_WINDOW_HOURS", "24"))
# Group is "similar-sized" when variance < ratio × mean.
SMURF_VARIANCE_RATIO: float = float(os.getenv("SMURF_VARIANCE_RATIO", "0.1"))
SMURF_CONFIDENCE: float = 70.0

# ── Layering detection ─────────────────────────────────────────────────────────
LAYERING_MAX_DEPTH: int = 5
LAYERING_MULTIPLIER: float = 10.0

# ── Network / anomaly statistics ──────────────────────────────────────────────
HUB_STDDEV_MULTIPLIER: float = float(os.getenv("HUB_STDDEV_MULTIPLIER", "2.0"))
AMOUNT_ANOMALY_STDDEV: float = float(os.getenv("AMOUNT_ANOMALY_STDDEV", "2.0"))

# ── Classification ────────────────────────────────────────────────────────────
SUSPICIOUS_SCORE_THRESHOLD: int = int(os.getenv("SUSPICIOUS_SCORE_THRESHOLD", "80"))
RISK_LEVELS: list = [           # (inclusive lower bound, level), first match wins
    (80, "high"),
    (60, "medium"),
    (0, "low"),
]
ALERT_SEVERITY: list = [
    (90, "CRITICAL"),
    (80, "HIGH"),
    (60, "MEDIUM"),
    (0, "LOW"),
]
TOP_SUSPICIOUS_ACCOUNTS: int = 5
