"""Tests for the Flask webhook API."""

import pytest

import main
from postback_engine import InMemoryStore, PostbackProcessor
from postback_engine.errors import StorageError


@pytest.fixture
def store():
    store = InMemoryStore()
    store.add_house({
        "identifier": "betano",
        "name": "Betano",
        "commission_type": "CPA",
        "commission_value": "35",
    })
    store.add_affiliate({"id": 7, "username": "ana"})
    return store


@pytest.fixture
def client(store, monkeypatch):
    processor = PostbackProcessor(store, postback_log=store)
    monkeypatch.setattr(main, "processor", processor)
    main.app.config["TESTING"] = True
    with main.app.test_client() as client:
        yield client
    processor.close()


class TestWebhookRoutes:
    """GET /webhook/<house>/<event> and its /api/postback alias."""

    def test_registration(self, client):
        response = client.get("/webhook/betano/registration?subid=ana&customer_id=42")

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["affiliate"] == "ana"
        assert body["house"] == "Betano"
        assert body["totalCommission"] == "35.00"
        assert body["customerId"] == "42"

    def test_api_postback_alias(self, client):
        response = client.get("/api/postback/betano/first_deposit?subid=ana")

        assert response.status_code == 200
        assert response.get_json()["totalCommission"] == "35.00"

    def test_records_request_ip_and_url(self, client, store):
        client.get("/webhook/betano/registration?subid=ana", environ_base={"REMOTE_ADDR": "203.0.113.9"})

        assert store.logs[0]["ip"] == "203.0.113.9"
        assert store.logs[0]["raw"] == "/webhook/betano/registration?subid=ana"

    def test_house_not_found(self, client):
        response = client.get("/webhook/unknown/registration?subid=ana")

        assert response.status_code == 404
        assert response.get_json() == {"error": "house not found"}

    def test_affiliate_not_found(self, client):
        response = client.get("/webhook/betano/registration?subid=nobody")

        assert response.status_code == 404
        assert response.get_json() == {"error": "affiliate not found"}

    def test_missing_subid(self, client):
        response = client.get("/webhook/betano/registration")

        assert response.status_code == 400
        assert response.get_json()["status"] == "validation_failed"

    def test_storage_failure_is_5xx(self, client, store, monkeypatch):
        def fail(result, ctx):
            raise StorageError("connection refused")

        monkeypatch.setattr(store, "record_commission", fail)
        response = client.get("/webhook/betano/registration?subid=ana")

        assert response.status_code == 503
        assert response.get_json() == {"error": "storage unavailable"}

    def test_unexpected_failure_hides_details(self, client, store, monkeypatch):
        def fail(result, ctx):
            raise RuntimeError("secret connection string")

        monkeypatch.setattr(store, "record_commission", fail)
        response = client.get("/webhook/betano/registration?subid=ana")

        assert response.status_code == 500
        assert response.get_json() == {"error": "internal processing error"}


class TestServiceRoutes:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_api_info(self, client):
        response = client.get("/api")

        assert response.status_code == 200
        assert "endpoints" in response.get_json()

    def test_cors_header(self, client):
        response = client.get("/health", headers={"Origin": "https://partner.example"})

        # Older flask-cors answers with a wildcard, newer releases echo the origin
        assert response.headers["Access-Control-Allow-Origin"] in ("*", "https://partner.example")
