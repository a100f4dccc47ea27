"""
Tests for the HTTP surface.
"""
CSV_HEADER = "transaction_id,from_account_id,to_account_id,amount,timestamp\n"


def _csv(rows):
    return (CSV_HEADER + "".join(f"{','.join(map(str, r))}\n" for r in rows)).encode()


SMURF_ROWS = [
    (f"T{i}", "SENDER", "RECEIVER", 9500, f"2024-01-03 1{i}:00:00") for i in range(4)
]


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_request_id_echoed(self, client):
        response = client.get("/", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"


class TestAnalyze:
    """Tests for CSV upload analysis."""

    def test_patterns(self, client):
        response = client.post(
            "/analyze", files={"file": ("batch.csv", _csv(SMURF_ROWS), "text/csv")}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["patterns"]["smurfingPatterns"] == 1
        assert body["patterns"]["smurfingConfidence"] == 70
        assert body["parse_stats"]["valid_rows"] == 4
        assert "risk_scores" not in body

    def test_with_scores(self, client):
        response = client.post(
            "/analyze?score=true", files={"file": ("batch.csv", _csv(SMURF_ROWS), "text/csv")}
        )
        assert response.status_code == 200
        body = response.json()
        assert len(body["risk_scores"]) == 4
        assert all(0 <= s["score"] <= 100 for s in body["risk_scores"])
        assert body["statistics"]["total_transactions"] == 4
        assert isinstance(body["top_suspicious_accounts"], list)

    def test_rejects_non_csv(self, client):
        response = client.post(
            "/analyze", files={"file": ("batch.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 400

    def test_missing_columns(self, client):
        response = client.post(
            "/analyze", files={"file": ("batch.csv", b"a,b\n1,2\n", "text/csv")}
        )
        assert response.status_code == 422


class TestScore:
    """Tests for single-transaction scoring."""

    def test_new_account_weekend_night(self, client):
        response = client.post("/score", json={
            "transaction": {
                "id": "T1", "amount": 5000, "from_account_id": "A",
                "to_account_id": "B", "timestamp": "2024-01-06T03:00:00",
            },
        })
        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 35
        assert body["breakdown"]["amount_risk"] == 70
        assert body["degraded"] is False

    def test_with_history(self, client):
        response = client.post("/score", json={
            "transaction": {
                "id": "T2", "amount": 1000, "from_account_id": "A",
                "to_account_id": "B", "timestamp": "2024-01-03T12:00:00",
            },
            "history": [
                {"id": "H1", "amount": 1000, "from_account_id": "A",
                 "to_account_id": "B", "timestamp": "2024-01-03T08:00:00"},
            ],
        })
        assert response.status_code == 200
        body = response.json()
        assert body["breakdown"]["amount_risk"] == 0
        assert body["breakdown"]["pattern_risk"] == 20

    def test_invalid_transaction(self, client):
        response = client.post("/score", json={
            "transaction": {
                "id": "T3", "amount": -1, "from_account_id": "A",
                "to_account_id": "B", "timestamp": "2024-01-03T12:00:00",
            },
        })
        assert response.status_code == 422
