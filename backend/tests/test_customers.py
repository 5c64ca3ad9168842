"""
Customer API tests.

Verifies:
- CRUD through the gate pipeline (reads for any role, writes for admin/manager)
- CUS references are generated, formatted and never reused
- Soft-deleted customers disappear from reads
- Partial updates keep stored values
- Payments and charges move the balance and hit the financial log
"""

import re

import pytest

from backoffice.extensions import db
from backoffice.models import Customer


def _create(client, headers, payload, **overrides):
    body = dict(payload)
    body.update(overrides)
    resp = client.post("/api/customers", json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["customer"]


# =============================================================================
# CREATE / READ
# =============================================================================


class TestCreateCustomer:

    def test_create_returns_reference(self, client, manager, auth_headers, customer_payload):
        customer = _create(client, auth_headers(manager), customer_payload)

        assert re.fullmatch(r"CUS\d{5}", customer["customer_id"])
        assert customer["company_name"] == "Acme Widgets"
        assert customer["status"] == "prospect"
        assert customer["auto_renewal"] is False
        assert customer["additional_contacts"] == []

    def test_client_cannot_choose_reference(self, client, manager, auth_headers, customer_payload):
        customer = _create(client, auth_headers(manager), customer_payload, customer_id="CUS00001", id=999)

        assert customer["id"] != 999
        stored = db.session.get(Customer, customer["id"])
        assert stored.customer_id == customer["customer_id"]

    def test_create_logs_to_api_channel(self, client, manager, auth_headers, customer_payload, log_records):
        customer = _create(client, auth_headers(manager), customer_payload)

        records = log_records("api", "Customer created")
        assert len(records) == 1
        assert records[0].context["customer_id"] == customer["customer_id"]
        assert records[0].context["user_id"] == manager.id

    def test_amounts_serialized_with_two_places(self, client, manager, auth_headers, customer_payload):
        customer = _create(
            client, auth_headers(manager), customer_payload,
            credit_limit="5000", outstanding_balance=1200.5, annual_revenue="250000",
        )

        assert customer["credit_limit"] == "5000.00"
        assert customer["outstanding_balance"] == "1200.50"
        assert customer["annual_revenue"] == "250000.00"
        assert customer["is_over_credit_limit"] is False

    def test_nested_contacts_stored(self, client, manager, auth_headers, customer_payload):
        customer = _create(
            client, auth_headers(manager), customer_payload,
            additional_contacts=[{"name": "Ann", "email": "ann@acme.test", "extra": "dropped"}],
            communication_preferences=["email", "phone"],
        )

        assert customer["additional_contacts"] == [
            {"name": "Ann", "email": "ann@acme.test", "phone": None, "role": None},
        ]
        assert customer["communication_preferences"] == ["email", "phone"]

    def test_duplicate_email_rejected(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        _create(client, headers, customer_payload)

        resp = client.post(
            "/api/customers",
            json=dict(customer_payload, company_name="Acme Clone"),
            headers=headers,
        )
        assert resp.status_code == 422
        assert resp.get_json()["errors"] == {
            "email": ["This email address is already associated with another customer."],
        }

    def test_business_rule_rejected(self, client, manager, auth_headers, customer_payload):
        resp = client.post(
            "/api/customers",
            json=dict(customer_payload, credit_limit=400, outstanding_balance=500),
            headers=auth_headers(manager),
        )
        assert resp.status_code == 422
        assert resp.get_json()["errors"] == {
            "outstanding_balance": ["Outstanding balance cannot exceed credit limit."],
        }
        assert Customer.query.count() == 0


class TestReadCustomers:

    def test_get_by_id(self, client, manager, employee, auth_headers, customer_payload):
        created = _create(client, auth_headers(manager), customer_payload)

        resp = client.get(f"/api/customers/{created['id']}", headers=auth_headers(employee))
        assert resp.status_code == 200
        assert resp.get_json()["customer"]["customer_id"] == created["customer_id"]

    def test_list_filters_and_paginates(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        _create(client, headers, customer_payload)
        _create(client, headers, customer_payload, company_name="Beta Corp", email="beta@corp.test", priority="high")
        _create(client, headers, customer_payload, company_name="Gamma Ltd", email="gamma@ltd.test", priority="high")

        resp = client.get("/api/customers?priority=high&limit=1", headers=headers)
        body = resp.get_json()
        assert resp.status_code == 200
        assert body["total"] == 2
        assert body["count"] == 1
        assert body["limit"] == 1
        # newest first
        assert body["customers"][0]["company_name"] == "Gamma Ltd"

    def test_search(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        _create(client, headers, customer_payload)
        _create(client, headers, customer_payload, company_name="Beta Corp", email="beta@corp.test")

        resp = client.get("/api/customers?search=beta", headers=headers)
        names = [c["company_name"] for c in resp.get_json()["customers"]]
        assert names == ["Beta Corp"]

    @pytest.mark.parametrize("limit,expected", [("0", 1), ("9999", 500), ("abc", 100)])
    def test_limit_clamped(self, client, employee, auth_headers, limit, expected):
        resp = client.get(f"/api/customers?limit={limit}", headers=auth_headers(employee))
        assert resp.get_json()["limit"] == expected


# =============================================================================
# UPDATE / DELETE
# =============================================================================


class TestUpdateCustomer:

    def test_partial_update_keeps_other_fields(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload, city="Leeds")

        resp = client.put(f"/api/customers/{created['id']}", json={"priority": "high"}, headers=headers)
        assert resp.status_code == 200
        customer = resp.get_json()["customer"]
        assert customer["priority"] == "high"
        assert customer["city"] == "Leeds"
        assert customer["email"] == "billing@acme.test"
        assert customer["customer_id"] == created["customer_id"]

    def test_update_validates_against_stored_values(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload, credit_limit=1000)

        resp = client.put(
            f"/api/customers/{created['id']}",
            json={"outstanding_balance": 1500},
            headers=headers,
        )
        assert resp.status_code == 422
        assert "outstanding_balance" in resp.get_json()["errors"]

    def test_update_cannot_change_reference(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload)

        resp = client.put(f"/api/customers/{created['id']}", json={"customer_id": "CUS99999"}, headers=headers)
        assert resp.status_code == 200
        assert resp.get_json()["customer"]["customer_id"] == created["customer_id"]

    def test_update_keeps_own_email(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload)

        resp = client.put(
            f"/api/customers/{created['id']}",
            json={"email": "billing@acme.test", "notes": "Renewal due"},
            headers=headers,
        )
        assert resp.status_code == 200

    def test_employee_cannot_update(self, client, manager, employee, auth_headers, customer_payload):
        created = _create(client, auth_headers(manager), customer_payload)

        resp = client.put(
            f"/api/customers/{created['id']}",
            json={"priority": "low"},
            headers=auth_headers(employee),
        )
        assert resp.status_code == 403


class TestDeleteCustomer:

    def test_soft_delete_hides_customer(self, client, admin, auth_headers, customer_payload):
        headers = auth_headers(admin)
        created = _create(client, headers, customer_payload)

        resp = client.delete(f"/api/customers/{created['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.get_json() == {"message": "Customer deleted.", "customer_id": created["customer_id"]}

        assert client.get(f"/api/customers/{created['id']}", headers=headers).status_code == 404
        assert client.get("/api/customers", headers=headers).get_json()["total"] == 0

        row = db.session.get(Customer, created["id"])
        assert row is not None
        assert row.is_deleted

    def test_deleted_email_stays_taken(self, client, admin, auth_headers, customer_payload):
        headers = auth_headers(admin)
        created = _create(client, headers, customer_payload)
        client.delete(f"/api/customers/{created['id']}", headers=headers)

        resp = client.post("/api/customers", json=customer_payload, headers=headers)
        assert resp.status_code == 422
        assert "email" in resp.get_json()["errors"]

    def test_delete_twice_is_not_found(self, client, admin, auth_headers, customer_payload):
        headers = auth_headers(admin)
        created = _create(client, headers, customer_payload)
        client.delete(f"/api/customers/{created['id']}", headers=headers)

        assert client.delete(f"/api/customers/{created['id']}", headers=headers).status_code == 404

    def test_manager_cannot_delete(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload)

        assert client.delete(f"/api/customers/{created['id']}", headers=headers).status_code == 403


# =============================================================================
# BALANCE MOVEMENTS
# =============================================================================


class TestBalance:

    def test_payment_reduces_balance(self, client, manager, auth_headers, customer_payload, log_records):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload, credit_limit=1000, outstanding_balance=300)

        resp = client.post(
            f"/api/customers/{created['id']}/payments",
            json={"amount": "120.25", "reference": "INV-7"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["customer"]["outstanding_balance"] == "179.75"

        records = log_records("financial", "Customer payment recorded")
        assert len(records) == 1
        assert records[0].context["amount"] == "120.25"
        assert records[0].context["previous_balance"] == "300.00"
        assert records[0].context["reference"] == "INV-7"

    def test_overpayment_floors_at_zero(self, client, manager, auth_headers, customer_payload):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload, outstanding_balance=50)

        resp = client.post(f"/api/customers/{created['id']}/payments", json={"amount": 80}, headers=headers)
        assert resp.get_json()["customer"]["outstanding_balance"] == "0.00"

    def test_charge_over_limit_warns(self, client, manager, auth_headers, customer_payload, log_records):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload, credit_limit=100)

        resp = client.post(f"/api/customers/{created['id']}/charges", json={"amount": 150}, headers=headers)
        assert resp.status_code == 200
        customer = resp.get_json()["customer"]
        assert customer["outstanding_balance"] == "150.00"
        assert customer["is_over_credit_limit"] is True

        assert len(log_records("financial", "Customer charge recorded")) == 1
        warnings = log_records("financial", "Customer over credit limit")
        assert len(warnings) == 1
        assert warnings[0].context["credit_limit"] == "100.00"

    @pytest.mark.parametrize("amount", [0, -5, "ten"])
    def test_invalid_amount(self, client, manager, auth_headers, customer_payload, amount):
        headers = auth_headers(manager)
        created = _create(client, headers, customer_payload)

        resp = client.post(f"/api/customers/{created['id']}/payments", json={"amount": amount}, headers=headers)
        assert resp.status_code == 422
        assert "amount" in resp.get_json()["errors"]

    def test_employee_cannot_charge(self, client, manager, employee, auth_headers, customer_payload):
        created = _create(client, auth_headers(manager), customer_payload)

        resp = client.post(
            f"/api/customers/{created['id']}/charges",
            json={"amount": 10},
            headers=auth_headers(employee),
        )
        assert resp.status_code == 403
