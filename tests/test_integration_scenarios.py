"""
Integration Test Scenarios for the Postback Commission Engine

End-to-end: HTTP request -> processor -> SQL store -> JSON response.

Run with: python -m pytest tests/test_integration_scenarios.py -v
"""


import pytest
from decimal import Decimal
from sqlalchemy import select

import main
from postback_engine import PostbackProcessor
from postback_engine.db import CommissionRow, EventRow, HouseRow, PostbackLogRow, SqlStore, UserRow


@pytest.fixture
def store(tmp_path):
    store = SqlStore.from_url(f"sqlite:///{tmp_path / 'integration.db'}")
    store.create_schema()
    with store.session_factory() as session, session.begin():
        session.add_all([
            HouseRow(
                name="Bet365", identifier="bet365", commission_type="Hybrid",
                commission_value="10", cpa_value="50", revshare_value="20",
            ),
            HouseRow(name="Sportingbet", identifier="sportingbet", commission_type="RevShare", commission_value="35"),
            UserRow(username="joao", email="joao@example.com", full_name="Joao Silva"),
        ])
    yield store
    store.engine.dispose()


@pytest.fixture
def client(store, monkeypatch):
    processor = PostbackProcessor(store, postback_log=store)
    monkeypatch.setattr(main, "processor", processor)
    with main.app.test_client() as client:
        yield client
    processor.close()


class TestHybridHouseJourney:
    """A player referred by joao registers at bet365, then deposits."""

    def test_first_deposit_pays_cpa(self, client):
        response = client.get("/webhook/bet365/first_deposit?subid=joao")

        assert response.status_code == 200
        body = response.get_json()
        assert body["totalCommission"] == "50.00"
        assert body["commissions"] == [{"type": "CPA", "value": 50}]

    def test_deposit_pays_revshare(self, client):
        response = client.get("/webhook/bet365/deposit?subid=joao&amount=200")

        assert response.status_code == 200
        body = response.get_json()
        assert body["evento"] == "deposit"
        assert body["amount"] == 200
        assert body["totalCommission"] == "40.00"
        assert body["commissions"] == [{"type": "RevShare", "value": 40, "percentage": 20}]

    def test_journey_is_recorded(self, client, store):
        client.get("/webhook/bet365/registration?subid=joao&customer_id=P-1")
        client.get("/webhook/bet365/deposit?subid=joao&amount=200&customer_id=P-1")
        client.get("/webhook/bet365/click?subid=joao&customer_id=P-1")

        with store.session_factory() as session:
            events = session.scalars(select(EventRow).order_by(EventRow.id)).all()
            commissions = session.scalars(select(CommissionRow).order_by(CommissionRow.id)).all()
            logs = session.scalars(select(PostbackLogRow)).all()

        assert [e.evento for e in events] == ["registration", "deposit", "click"]
        assert [(c.tipo, c.valor) for c in commissions] == [
            ("CPA", Decimal("50.00")),
            ("RevShare", Decimal("40.00")),
        ]
        assert all(log.status == "SUCCESS" for log in logs)
        assert len(logs) == 3


class TestRevShareHouse:
    """Pure RevShare house with profit events."""

    def test_profit(self, client):
        body = client.get("/webhook/sportingbet/profit?subid=joao&amount=1000.50").get_json()

        # 1000.50 * 35% = 350.175 -> 350.18
        assert body["totalCommission"] == "350.18"

    def test_registration_pays_nothing(self, client):
        response = client.get("/webhook/sportingbet/registration?subid=joao")

        assert response.status_code == 200
        assert response.get_json()["totalCommission"] == "0.00"


class TestRejectedPostbacks:
    """Not-found outcomes are distinct and leave no ledger entries."""

    def test_unknown_house(self, client, store):
        response = client.get("/webhook/pinnacle/deposit?subid=joao&amount=10")

        assert response.status_code == 404
        assert response.get_json() == {"error": "house not found"}
        with store.session_factory() as session:
            assert session.scalars(select(EventRow)).all() == []
            log = session.scalars(select(PostbackLogRow)).one()
        assert log.status == "ERROR_HOUSE_NOT_FOUND"

    def test_unknown_affiliate(self, client, store):
        response = client.get("/webhook/bet365/deposit?subid=maria&amount=10")

        assert response.status_code == 404
        assert response.get_json() == {"error": "affiliate not found"}
        with store.session_factory() as session:
            assert session.scalars(select(CommissionRow)).all() == []
            log = session.scalars(select(PostbackLogRow)).one()
        assert log.status == "ERROR_AFFILIATE_NOT_FOUND"
