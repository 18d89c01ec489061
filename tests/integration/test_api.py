"""Integration tests for API endpoints"""

from fastapi.testclient import TestClient

from reconciliation_gateway.api.dependencies import get_similarity_scorer


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "reconciliation_matches_created_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "req-123"})
    assert response.headers["X-Request-ID"] == "req-123"


def test_suggestions_endpoint(client, auth_headers, account, make_bank_feed, make_transaction):
    """Test GET /v1/reconciliation/{id}/suggestions"""
    client.app.dependency_overrides[get_similarity_scorer] = lambda: (lambda a, b: 0.95)
    bft = make_bank_feed(account)
    txn = make_transaction(account)

    response = client.get(f"/v1/reconciliation/{bft.id}/suggestions", headers=auth_headers)

    assert response.status_code == 200
    suggestions = response.json()["suggestions"]
    assert len(suggestions) == 1
    assert suggestions[0]["transaction_id"] == txn.id
    assert suggestions[0]["confidence"] == 1.0
    assert suggestions[0]["reasons"] == ["Exact amount match", "Same date", "Description near-identical"]
    assert suggestions[0]["transaction"]["account"] == {"id": account.id, "name": "Checking"}


def test_suggestions_empty(client, auth_headers, account, make_bank_feed):
    bft = make_bank_feed(account)

    response = client.get(f"/v1/reconciliation/{bft.id}/suggestions", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {"suggestions": []}


def test_suggestions_requires_tenant_context(client, account, make_bank_feed):
    bft = make_bank_feed(account)

    response = client.get(f"/v1/reconciliation/{bft.id}/suggestions")

    assert response.status_code == 401


def test_suggestions_not_found(client, auth_headers, account):
    response = client.get("/v1/reconciliation/bft-nonexistent/suggestions", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "Bank feed transaction not found"


def test_suggestions_conflict_when_matched(client, auth_headers, account, make_bank_feed, make_transaction, make_match):
    bft = make_bank_feed(account)
    make_match(bft, make_transaction(account))

    response = client.get(f"/v1/reconciliation/{bft.id}/suggestions", headers=auth_headers)

    assert response.status_code == 409


def test_suggestions_limit_is_validated(client, auth_headers, account, make_bank_feed):
    bft = make_bank_feed(account)

    assert client.get(f"/v1/reconciliation/{bft.id}/suggestions?limit=0", headers=auth_headers).status_code == 422
    assert client.get(f"/v1/reconciliation/{bft.id}/suggestions?limit=21", headers=auth_headers).status_code == 422
    assert client.get(f"/v1/reconciliation/{bft.id}/suggestions?limit=20", headers=auth_headers).status_code == 200


def test_create_and_delete_match(client, auth_headers, account, make_bank_feed, make_transaction):
    """Test POST /v1/reconciliation/matches then DELETE /v1/reconciliation/matches/{id}"""
    bft = make_bank_feed(account)
    txn = make_transaction(account)

    created = client.post(
        "/v1/reconciliation/matches",
        json={"bank_feed_transaction_id": bft.id, "transaction_id": txn.id},
        headers=auth_headers,
    )

    assert created.status_code == 201
    data = created.json()
    assert data["status"] == "MATCHED"
    assert data["confidence"] == 1.0
    assert data["bank_feed_transaction"]["status"] == "POSTED"
    assert data["transaction"]["id"] == txn.id

    status = client.get(f"/v1/reconciliation/status/{account.id}", headers=auth_headers).json()
    assert status["matched"] == 1
    assert status["reconciliation_percent"] == 100

    deleted = client.delete(f"/v1/reconciliation/matches/{data['id']}", headers=auth_headers)
    assert deleted.status_code == 204

    status = client.get(f"/v1/reconciliation/status/{account.id}", headers=auth_headers).json()
    assert status["matched"] == 0
    assert status["unmatched"] == 1
    assert status["reconciliation_percent"] == 0


def test_create_match_errors(client, auth_headers, account, make_bank_feed, make_transaction):
    bft = make_bank_feed(account)
    txn = make_transaction(account)

    missing = client.post(
        "/v1/reconciliation/matches",
        json={"bank_feed_transaction_id": "bft-nonexistent", "transaction_id": txn.id},
        headers=auth_headers,
    )
    assert missing.status_code == 404

    first = client.post(
        "/v1/reconciliation/matches",
        json={"bank_feed_transaction_id": bft.id, "transaction_id": txn.id},
        headers=auth_headers,
    )
    assert first.status_code == 201

    again = client.post(
        "/v1/reconciliation/matches",
        json={"bank_feed_transaction_id": bft.id, "transaction_id": txn.id},
        headers=auth_headers,
    )
    assert again.status_code == 409
    assert again.json()["detail"] == "Bank feed transaction is already matched"


def test_create_match_validates_body(client, auth_headers):
    response = client.post(
        "/v1/reconciliation/matches",
        json={"bank_feed_transaction_id": ""},
        headers=auth_headers,
    )
    assert response.status_code == 422


def test_delete_match_not_found(client, auth_headers):
    response = client.delete("/v1/reconciliation/matches/match-nonexistent", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "Match not found"


def test_status_endpoint(client, auth_headers, account):
    """Test GET /v1/reconciliation/status/{account_id}"""
    response = client.get(f"/v1/reconciliation/status/{account.id}", headers=auth_headers)

    assert response.status_code == 200
    assert response.json() == {
        "account_id": account.id,
        "total_bank_feed": 0,
        "matched": 0,
        "unmatched": 0,
        "suggested": 0,
        "reconciliation_percent": 100,
    }


def test_status_not_found_for_other_tenant(client, auth_headers, other_account):
    response = client.get(f"/v1/reconciliation/status/{other_account.id}", headers=auth_headers)

    assert response.status_code == 404
    assert response.json()["detail"] == "Account not found"


def test_list_matches_endpoint(client, auth_headers, account, make_bank_feed, make_transaction):
    """Test GET /v1/reconciliation/matches"""
    for _ in range(3):
        client.post(
            "/v1/reconciliation/matches",
            json={"bank_feed_transaction_id": make_bank_feed(account).id, "transaction_id": make_transaction(account).id},
            headers=auth_headers,
        )

    first = client.get("/v1/reconciliation/matches?limit=2", headers=auth_headers).json()
    assert len(first["matches"]) == 2
    assert first["has_more"] is True

    second = client.get(
        f"/v1/reconciliation/matches?limit=2&cursor={first['next_cursor']}",
        headers=auth_headers,
    ).json()
    assert len(second["matches"]) == 1
    assert second["has_more"] is False

    filtered = client.get("/v1/reconciliation/matches?status=SUGGESTED", headers=auth_headers).json()
    assert filtered["matches"] == []

    assert client.get("/v1/reconciliation/matches?limit=101", headers=auth_headers).status_code == 422
