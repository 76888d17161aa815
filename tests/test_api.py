"""HTTP-level tests for the patient, billing and dashboard routes."""

import pytest

API = "/api"


def _new_patient(client, **overrides):
    data = {
        "name": "Jane Roe",
        "phone": "5550001111",
        "email": "jane@example.com",
        "address": "42 Harbour Street, Springfield",
        "services": "Consultation, X-ray",
    }
    data.update(overrides)
    r = client.post(f"{API}/patients", json=data)
    assert r.status_code == 201, r.text
    return r.json()["data"]


class TestPatients:
    def test_create_and_fetch(self, client):
        p = _new_patient(client)
        assert p["services"] == ["Consultation", "X-ray"]
        assert p["total_cost"] == "0.00"
        assert p["pending_amount"] == "0.00"

        r = client.get(f"{API}/patients/{p['id']}")
        body = r.json()
        assert r.status_code == 200
        assert body["ok"] is True
        assert body["data"]["has_pending"] is False
        assert body["data"]["credit"] == "0.00"
        assert body["data"]["actions"] == ["create_bill"]

    def test_duplicate_phone_conflicts(self, client):
        _new_patient(client)
        r = client.post(f"{API}/patients", json={
            "name": "Someone Else",
            "phone": "5550001111",
            "email": "other@example.com",
            "address": "1 Elsewhere Road, Shelbyville",
            "services": "Consultation",
        })
        assert r.status_code == 409
        assert r.json()["error"]["code"] == "CONFLICT"

    @pytest.mark.parametrize("field,value", [
        ("name", "J"),
        ("phone", "12345"),
        ("email", "not-an-email"),
        ("address", "short"),
        ("services", ""),
    ])
    def test_form_validation(self, client, field, value):
        data = {
            "name": "Jane Roe",
            "phone": "5550001111",
            "email": "jane@example.com",
            "address": "42 Harbour Street, Springfield",
            "services": "Consultation",
            field: value,
        }
        r = client.post(f"{API}/patients", json=data)
        assert r.status_code == 422
        assert r.json()["ok"] is False

    def test_list_filters(self, client):
        owing = _new_patient(client)
        settled = _new_patient(client, name="Bob Stone", phone="5550002222",
                               email="bob@example.com")
        client.post(f"{API}/patients/{owing['id']}/bills",
                    json={"items": [{"item": "X-ray", "amount": 200}]})

        pending = client.get(f"{API}/patients", params={"status": "pending"}).json()
        assert [p["id"] for p in pending["data"]] == [owing["id"]]

        paid = client.get(f"{API}/patients", params={"status": "paid"}).json()
        assert [p["id"] for p in paid["data"]] == [settled["id"]]

        found = client.get(f"{API}/patients", params={"q": "BOB"}).json()
        assert found["meta"]["count"] == 1

    def test_unknown_patient(self, client):
        r = client.get(f"{API}/patients/404")
        assert r.status_code == 404
        assert r.json()["error"]["code"] == "NOT_FOUND"


class TestBilling:
    def test_bill_payment_flow(self, client):
        p = _new_patient(client)
        pid = p["id"]

        r = client.post(f"{API}/patients/{pid}/bills", json={
            "items": [{"item": "Consultation", "description": "GP", "amount": "100"}],
            "paid_amount": "100",
            "mode": "CARD",
        })
        assert r.status_code == 201, r.text
        res = r.json()["data"]
        assert res["kind"] == "NEW_BILL"
        assert res["bill"]["status"] == "PAID"
        assert res["bill"]["services_summary"] == "Consultation"
        assert res["payment"]["amount"] == "100.00"
        assert res["payment"]["mode"] == "CARD"

        r = client.post(f"{API}/patients/{pid}/bills",
                        json={"items": [{"label": "X-ray", "amount": 200}]})
        bill_id = r.json()["data"]["bill"]["id"]
        assert r.json()["data"]["payment"] is None

        detail = client.get(f"{API}/patients/{pid}").json()["data"]
        assert detail["total_cost"] == "300.00"
        assert detail["pending_amount"] == "200.00"
        assert detail["actions"] == ["create_bill", "pay_pending"]

        r = client.post(f"{API}/patients/{pid}/payments", json={"amount": 150})
        assert r.status_code == 201
        assert r.json()["data"]["bill_id"] is None
        detail = client.get(f"{API}/patients/{pid}").json()["data"]
        assert detail["pending_amount"] == "50.00"

        r = client.put(f"{API}/patients/{pid}/bills/{bill_id}", json={
            "items": [{"item": "X-ray", "amount": 250}],
            "paid_amount": 250,
        })
        assert r.status_code == 200
        assert r.json()["data"]["bill"]["total_amount"] == "250.00"
        assert r.json()["data"]["bill"]["status"] == "PAID"

        payments = client.get(f"{API}/payments", params={"patient_id": pid}).json()
        assert payments["meta"]["count"] == 2
        bills = client.get(f"{API}/patients/{pid}/bills").json()
        assert len(bills["data"]) == 2

    def test_standalone_payment_via_bill_form(self, client):
        pid = _new_patient(client)["id"]
        client.post(f"{API}/patients/{pid}/bills",
                    json={"items": [{"item": "X-ray", "amount": 200}]})
        r = client.post(f"{API}/patients/{pid}/bills",
                        json={"kind": "STANDALONE_PAYMENT", "paid_amount": 20})
        assert r.status_code == 201
        assert r.json()["data"]["kind"] == "STANDALONE_PAYMENT"
        assert r.json()["data"]["bill"] is None

    @pytest.mark.parametrize("payload,code", [
        ({"items": [{"item": "A", "amount": 10}], "paid_amount": -1}, "INVALID_AMOUNT"),
        ({"items": [{"item": "A", "amount": 10}], "paid_amount": "ten"}, "INVALID_AMOUNT"),
        ({"items": [{"item": "", "amount": ""}], "kind": "NEW_BILL"}, "EMPTY_BILL"),
        ({"items": [{"item": "A", "amount": 10}], "paid_amount": "1e30"}, "INVALID_AMOUNT"),
        ({"items": [{"item": "A", "amount": "1e30"}]}, "INVALID_AMOUNT"),
        ({"items": [{"item": "A", "amount": 10}], "notes": "ok"}, "VALIDATION_ERROR"),
    ])
    def test_rejected_submissions(self, client, payload, code):
        pid = _new_patient(client)["id"]
        r = client.post(f"{API}/patients/{pid}/bills", json=payload)
        assert r.status_code == 422
        assert r.json()["error"]["code"] == code
        assert client.get(f"{API}/bills").json()["meta"]["count"] == 0

    def test_pay_when_nothing_pending(self, client):
        pid = _new_patient(client)["id"]
        r = client.post(f"{API}/patients/{pid}/payments", json={"amount": 10})
        assert r.status_code == 409
        assert r.json()["error"]["code"] == "NOTHING_PENDING"

    def test_cancel_and_recalculate(self, client):
        pid = _new_patient(client)["id"]
        r = client.post(f"{API}/patients/{pid}/bills",
                        json={"items": [{"item": "X-ray", "amount": 200}]})
        bill_id = r.json()["data"]["bill"]["id"]

        r = client.post(f"{API}/patients/{pid}/bills/{bill_id}/cancel")
        assert r.json()["data"]["status"] == "CANCELLED"

        r = client.post(f"{API}/patients/{pid}/recalculate")
        assert r.json()["data"] == {
            "patient_id": pid,
            "total_cost": "0.00",
            "paid": "0.00",
            "pending_amount": "0.00",
            "credit": "0.00",
        }
        assert client.get(f"{API}/bills", params={"status": "CANCELLED"}).json()["meta"]["count"] == 1


class TestInvoice:
    def test_invoice_json_and_pdf(self, client):
        pid = _new_patient(client)["id"]
        r = client.post(f"{API}/patients/{pid}/bills", json={
            "items": [{"item": "A", "amount": 100}, {"item": "B", "amount": 50}],
            "notes": "Thank you for visiting",
            "issue_date": "2024-01-15T10:00:00",
        })
        bill_id = r.json()["data"]["bill"]["id"]

        inv = client.get(f"{API}/patients/{pid}/bills/{bill_id}/invoice").json()["data"]
        assert inv["subtotal"] == "150.00"
        assert inv["tax"] == "13.50"
        assert inv["total"] == "163.50"
        assert inv["due_date"] == "2024-02-14"

        r1 = client.get(f"{API}/patients/{pid}/bills/{bill_id}/invoice.pdf")
        r2 = client.get(f"{API}/patients/{pid}/bills/{bill_id}/invoice.pdf")
        assert r1.status_code == 200
        assert r1.headers["content-type"] == "application/pdf"
        assert inv["filename"] in r1.headers["content-disposition"]
        assert r1.content == r2.content


class TestDashboard:
    def test_summary(self, client):
        pid = _new_patient(client)["id"]
        client.post(f"{API}/patients/{pid}/bills", json={
            "items": [{"item": "A", "amount": 300}],
            "paid_amount": 120,
        })
        data = client.get(f"{API}/dashboard/summary", params={"months": 3}).json()["data"]
        assert data["total_patients"] == 1
        assert data["total_revenue"] == "120.00"
        assert data["total_billed"] == "300.00"
        assert data["pending_payments"] == "180.00"
        assert data["bills_by_status"]["PENDING"] == 1
        assert len(data["monthly_revenue"]) == 3
        assert data["monthly_revenue"][-1]["revenue"] == "120.00"


class TestOverpayment:
    def test_change_is_not_kept_as_credit(self, client):
        pid = _new_patient(client)["id"]
        r = client.post(f"{API}/patients/{pid}/bills", json={
            "items": [{"item": "Consultation", "amount": 100}],
            "paid_amount": 500,
        })
        res = r.json()["data"]
        assert res["payment"]["amount"] == "100.00"
        assert res["excess_payment"] is None
        assert res["unapplied_amount"] == "400.00"

        client.post(f"{API}/patients/{pid}/bills",
                    json={"items": [{"item": "X-ray", "amount": 200}]})
        detail = client.get(f"{API}/patients/{pid}").json()["data"]
        assert detail["pending_amount"] == "200.00"
        assert detail["credit"] == "0.00"

        r = client.post(f"{API}/patients/{pid}/payments", json={"amount": 200})
        assert r.status_code == 201

    def test_cancelled_paid_bill_shows_credit(self, client):
        pid = _new_patient(client)["id"]
        r = client.post(f"{API}/patients/{pid}/bills", json={
            "items": [{"item": "Consultation", "amount": 100}],
            "paid_amount": 100,
        })
        bill_id = r.json()["data"]["bill"]["id"]
        client.post(f"{API}/patients/{pid}/bills/{bill_id}/cancel")

        detail = client.get(f"{API}/patients/{pid}").json()["data"]
        assert detail["pending_amount"] == "0.00"
        assert detail["credit"] == "100.00"


class TestLifespan:
    def test_startup_creates_tables(self, monkeypatch):
        from fastapi.testclient import TestClient

        import clinic_billing.main as main

        calls = []
        monkeypatch.setattr(main, "init_db", lambda: calls.append("init"))
        with TestClient(main.app) as c:
            assert c.get("/").status_code == 200
        assert calls == ["init"]
