"""
Tests for boundary validation, the analysis frame and the in-memory history.
"""
from datetime import datetime, timedelta, timezone

import pytest

from aml_engine.errors import InvalidBatchError, InvalidTransactionError
from aml_engine.history import AccountTimeline, FrameHistoryProvider, HistoryProvider
from aml_engine.models import ParseStats, Transaction, TransactionType
from aml_engine.parser import coerce_transaction, parse_csv, transactions_to_frame

from .helpers import WEDNESDAY_NOON, hours, make_tx, minutes

HEADER = "transaction_id,from_account_id,to_account_id,amount,timestamp\n"


class TestTransactionModel:
    """Tests for the strict Transaction value."""

    def test_created_at_defaults_to_timestamp(self):
        tx = make_tx("A", "B", 10.0)
        assert tx.created_at == tx.timestamp
        assert tx.currency == "USD"
        assert tx.transaction_type is TransactionType.TRANSFER

    def test_is_immutable(self):
        tx = make_tx("A", "B", 10.0)
        with pytest.raises(Exception):
            tx.amount = 20.0

    def test_zero_amount_allowed(self):
        assert make_tx("A", "B", 0.0).amount == 0.0


class TestCoerceTransaction:
    """Tests for dict → Transaction validation."""

    def test_passthrough(self):
        tx = make_tx("A", "B", 10.0)
        assert coerce_transaction(tx) is tx

    def test_valid_dict(self):
        tx = coerce_transaction({
            "id": "T1", "amount": "12.5", "from_account_id": "A", "to_account_id": "B",
            "timestamp": "2024-01-03T12:00:00", "transaction_type": "PAYMENT",
        })
        assert isinstance(tx, Transaction)
        assert tx.amount == 12.5
        assert tx.transaction_type is TransactionType.PAYMENT

    @pytest.mark.parametrize(
        "override",
        [
            {"amount": -1},
            {"amount": float("nan")},
            {"from_account_id": ""},
            {"to_account_id": None},
            {"timestamp": "not a date"},
            {"transaction_type": "BRIBE"},
        ],
    )
    def test_invalid_fields(self, override):
        payload = {
            "id": "T1", "amount": 1, "from_account_id": "A", "to_account_id": "B",
            "timestamp": "2024-01-03T12:00:00",
        }
        payload.update(override)
        with pytest.raises(InvalidTransactionError):
            coerce_transaction(payload)

    def test_custom_error_class(self):
        with pytest.raises(InvalidBatchError):
            coerce_transaction({"id": "T1"}, InvalidBatchError)


class TestTransactionsToFrame:
    """Tests for the shared analysis frame."""

    def test_columns_and_dtypes(self):
        df = transactions_to_frame([make_tx("A", "B", 10.0)])
        assert list(df.columns) == [
            "transaction_id", "from_account_id", "to_account_id", "amount",
            "timestamp", "hour", "weekday", "created_at", "currency", "transaction_type",
        ]
        assert str(df["timestamp"].dt.tz) == "UTC"

    def test_hour_is_local_wall_clock(self):
        ts = datetime(2024, 1, 3, 2, 30, tzinfo=timezone(timedelta(hours=5)))
        df = transactions_to_frame([make_tx("A", "B", 10.0, ts=ts)])
        assert df.loc[0, "hour"] == 2
        assert df.loc[0, "timestamp"].hour == 21

    def test_empty(self):
        df = transactions_to_frame([])
        assert df.empty


class TestParseCsv:
    """Tests for CSV upload parsing."""

    def test_basic(self):
        csv = HEADER + (
            "T1,A,B,100.50,2024-01-03 12:00:00\n"
            "T2,B,C,99,2024-01-03 13:00:00\n"
        )
        transactions, stats = parse_csv(csv.encode())
        assert [t.id for t in transactions] == ["T1", "T2"]
        assert transactions[0].amount == 100.5
        assert stats.valid_rows == 2
        assert stats.dropped_rows == 0

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="Missing required columns"):
            parse_csv(b"transaction_id,amount\nT1,5\n")

    def test_drops_bad_rows(self):
        csv = HEADER + (
            "# comment line\n"
            "T1,A,B,100,2024-01-03 12:00:00\n"
            "T2,A,B,-5,2024-01-03 12:00:00\n"
            "T3,A,B,abc,2024-01-03 12:00:00\n"
            "T1,A,B,100,2024-01-03 12:00:00\n"
            "T4,,B,100,2024-01-03 12:00:00\n"
        )
        transactions, stats = parse_csv(csv.encode())
        assert [t.id for t in transactions] == ["T1"]
        assert stats.negative_amounts == 1
        assert stats.duplicate_tx_ids == 1
        assert stats.dropped_rows == 4
        assert len(stats.warnings) == 4

    def test_optional_columns(self):
        csv = (
            "transaction_id,from_account_id,to_account_id,amount,timestamp,currency,transaction_type\n"
            "T1,A,B,100,2024-01-03 12:00:00,EUR,deposit\n"
        )
        transactions, _ = parse_csv(csv.encode())
        assert transactions[0].currency == "EUR"
        assert transactions[0].transaction_type is TransactionType.DEPOSIT

    def test_returns_parse_stats_model(self):
        _, stats = parse_csv((HEADER + "T1,A,B,1,2024-01-03 12:00:00\n").encode())
        assert isinstance(stats, ParseStats)
        assert stats.model_dump()["total_rows"] == 1

    def test_drops_non_finite_amounts(self):
        csv = HEADER + (
            "T1,A,B,100,2024-01-03 12:00:00\n"
            "T2,A,B,inf,2024-01-03 12:00:00\n"
            "T3,A,B,-inf,2024-01-03 12:00:00\n"
        )
        transactions, stats = parse_csv(csv.encode())
        assert [t.id for t in transactions] == ["T1"]
        assert stats.dropped_rows == 2
        assert any("non-finite" in w for w in stats.warnings)

    def test_mixed_utc_offsets(self):
        csv = HEADER + (
            "T1,A,B,100,2024-01-03T12:00:00+07:00\n"
            "T2,A,B,200,2024-01-03T12:00:00+00:00\n"
        )
        transactions, stats = parse_csv(csv.encode())
        assert stats.valid_rows == 2
        first, second = transactions
        assert first.timestamp.utcoffset() == timedelta(hours=7)
        assert first.timestamp.hour == 12
        assert second.timestamp - first.timestamp == timedelta(hours=7)

    def test_mixed_offsets_with_bad_value(self):
        csv = HEADER + (
            "T1,A,B,100,2024-01-03T12:00:00+07:00\n"
            "T2,A,B,200,2024-01-03T12:00:00+00:00\n"
            "T3,A,B,300,not-a-time\n"
        )
        transactions, stats = parse_csv(csv.encode())
        assert [t.id for t in transactions] == ["T1", "T2"]
        assert any("unparseable timestamp" in w for w in stats.warnings)

    def test_nothing_valid(self):
        with pytest.raises(ValueError, match="No valid rows"):
            parse_csv((HEADER + "T1,A,B,-1,2024-01-03 12:00:00\n").encode())


class TestFrameHistoryProvider:
    """Tests for the in-memory history snapshot."""

    def _history(self):
        return FrameHistoryProvider([
            make_tx("A", "B", 1.0, ts=WEDNESDAY_NOON - hours(30), tx_id="OLD"),
            make_tx("C", "A", 2.0, ts=WEDNESDAY_NOON - hours(2), tx_id="MID"),
            make_tx("A", "D", 3.0, ts=WEDNESDAY_NOON - hours(1), tx_id="NEW"),
            make_tx("X", "Y", 4.0, ts=WEDNESDAY_NOON - hours(1), tx_id="OTHER"),
            make_tx("A", "B", 5.0, ts=WEDNESDAY_NOON + hours(1), tx_id="FUTURE"),
        ])

    def test_satisfies_protocol(self):
        assert isinstance(self._history(), HistoryProvider)

    def test_recent_for_account_both_sides_most_recent_first(self):
        provider = self._history().at(WEDNESDAY_NOON)
        assert [t.id for t in provider.recent_for_account("A", 10)] == ["NEW", "MID", "OLD"]

    def test_limit(self):
        provider = self._history().at(WEDNESDAY_NOON)
        assert [t.id for t in provider.recent_for_account("A", 2)] == ["NEW", "MID"]

    def test_without_anchor_sees_everything(self):
        ids = [t.id for t in self._history().recent_for_account("A", 10)]
        assert ids[0] == "FUTURE"

    def test_recent_in_window(self):
        provider = self._history().at(WEDNESDAY_NOON)
        ids = {t.id for t in provider.recent_in_window(timedelta(hours=24))}
        assert ids == {"MID", "NEW", "OTHER"}


class TestAccountTimeline:
    """Tests for the per-account batch index."""

    def _batch(self):
        return [
            make_tx("A", "B", 1.0, ts=WEDNESDAY_NOON - hours(30), tx_id="OLD"),
            make_tx("C", "A", 2.0, ts=WEDNESDAY_NOON - hours(2), tx_id="MID"),
            make_tx("A", "D", 3.0, ts=WEDNESDAY_NOON - hours(1), tx_id="NEW"),
            make_tx("A", "A", 4.0, ts=WEDNESDAY_NOON - minutes(30), tx_id="SELF"),
            make_tx("A", "B", 5.0, ts=WEDNESDAY_NOON, tx_id="NOW"),
        ]

    def test_recent_for_account_sees_only_earlier(self):
        timeline = AccountTimeline(self._batch())
        ids = [t.id for t in timeline.recent_for_account("A", WEDNESDAY_NOON, 10)]
        assert ids == ["SELF", "NEW", "MID", "OLD"]

    def test_limit(self):
        timeline = AccountTimeline(self._batch())
        assert [t.id for t in timeline.recent_for_account("A", WEDNESDAY_NOON, 2)] == ["SELF", "NEW"]
        assert timeline.recent_for_account("A", WEDNESDAY_NOON, 0) == []

    def test_unknown_account(self):
        assert AccountTimeline(self._batch()).recent_for_account("Z", WEDNESDAY_NOON, 10) == []

    def test_orders_by_created_at(self):
        batch = self._batch() + [
            make_tx("A", "E", 6.0, ts=WEDNESDAY_NOON - hours(5), tx_id="LATE_ENTRY",
                    created_at=WEDNESDAY_NOON - minutes(10)),
        ]
        timeline = AccountTimeline(batch)
        provider = FrameHistoryProvider(batch).at(WEDNESDAY_NOON)
        expected = [t.id for t in provider.recent_for_account("A", 3)]
        assert [t.id for t in timeline.recent_for_account("A", WEDNESDAY_NOON, 3)] == expected
        assert expected[0] == "LATE_ENTRY"

    def test_sender_window(self):
        timeline = AccountTimeline(self._batch())
        ids = {t.id for t in timeline.sender_window("A", WEDNESDAY_NOON, timedelta(hours=24))}
        assert ids == {"MID", "NEW", "SELF"}
