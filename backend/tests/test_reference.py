"""
Reference allocation tests.

Verifies:
- Reference format (prefix + 5 digits)
- Existing references are skipped, soft-deleted ones included
- A unique-constraint collision is retried with a new candidate
- Exhausted attempts raise ReferenceConflict
- Integrity errors on other columns are not mistaken for collisions
"""

import random
import re

import pytest
from sqlalchemy.exc import IntegrityError

from backoffice.errors import ReferenceConflict
from backoffice.extensions import db
from backoffice.models import Customer, Vendor
from backoffice.services import reference_service


def _candidates(*values):
    it = iter(values)
    return lambda: next(it)


def _customer(reference=None, **fields):
    customer = Customer(company_name=fields.pop("company_name", "Acme"), status="prospect", priority="medium", **fields)
    if reference:
        customer.customer_id = reference
        db.session.add(customer)
        db.session.commit()
    return customer


class TestCandidates:

    def test_format(self):
        assert reference_service.format_reference("CUS", 42) == "CUS00042"
        assert reference_service.format_reference("VEN", 99999) == "VEN99999"

    def test_random_candidate(self):
        rng = random.Random(7)
        for _ in range(50):
            assert re.fullmatch(r"CUS\d{5}", reference_service.random_candidate("CUS", rng))
        assert reference_service.random_candidate("CUS", rng) != "CUS00000"

    def test_sequential_starts_at_one(self, db_session):
        assert reference_service.next_sequential_candidate(Vendor, "vendor_id", "VEN") == "VEN00001"

    def test_sequential_counts_deleted_rows(self, db_session):
        vendor = Vendor(vendor_id="VEN00007", company_name="Old", service_type="Parts")
        vendor.soft_delete()
        db.session.add(vendor)
        db.session.commit()

        assert reference_service.next_sequential_candidate(Vendor, "vendor_id", "VEN") == "VEN00008"

    @pytest.mark.parametrize(
        "existing,expected",
        [
            (["VEN99999"], "VEN100000"),
            (["VEN99999", "VEN100000"], "VEN100001"),
            (["VEN00009", "VEN00010", "VEN00002"], "VEN00011"),
        ],
    )
    def test_sequential_orders_numerically(self, db_session, existing, expected):
        for index, reference in enumerate(existing):
            db.session.add(Vendor(vendor_id=reference, company_name=f"Vendor {index}", service_type="Parts"))
        db.session.commit()

        assert reference_service.next_sequential_candidate(Vendor, "vendor_id", "VEN") == expected


class TestCreateWithReference:

    def test_skips_taken_reference(self, db_session):
        _customer("CUS00001", company_name="First")

        new = reference_service.create_with_reference(
            _customer(company_name="Second"),
            column_name="customer_id",
            candidate=_candidates("CUS00001", "CUS00002"),
        )
        assert new.customer_id == "CUS00002"
        assert new.id is not None

    def test_skips_soft_deleted_reference(self, db_session):
        old = _customer("CUS00001")
        old.soft_delete()
        db.session.commit()

        new = reference_service.create_with_reference(
            _customer(company_name="Second"),
            column_name="customer_id",
            candidate=_candidates("CUS00001", "CUS00002"),
        )
        assert new.customer_id == "CUS00002"

    def test_collision_on_insert_is_retried(self, db_session, monkeypatch, log_records):
        _customer("CUS00001", company_name="Winner")
        # Simulate losing the race: the pre-check sees nothing, the insert collides.
        monkeypatch.setattr(reference_service, "reference_exists", lambda *a: False)

        new = reference_service.create_with_reference(
            _customer(company_name="Loser"),
            column_name="customer_id",
            candidate=_candidates("CUS00001", "CUS00002"),
        )
        assert new.customer_id == "CUS00002"
        assert Customer.query.count() == 2

        records = log_records("database", "Reference collision on insert")
        assert len(records) == 1
        assert records[0].context == {"table": "customers", "reference": "CUS00001", "attempt": 1}

    def test_exhausted_attempts(self, db_session, log_records):
        _customer("CUS00001")

        with pytest.raises(ReferenceConflict):
            reference_service.create_with_reference(
                _customer(company_name="Second"),
                column_name="customer_id",
                candidate=lambda: "CUS00001",
                max_attempts=3,
            )

        records = log_records("database", "Could not allocate reference")
        assert records[0].levelname == "ERROR"
        assert records[0].context["attempts"] == 3

    def test_default_attempts_from_config(self, app, db_session):
        _customer("CUS00001")
        calls = []

        def candidate():
            calls.append(1)
            return "CUS00001"

        with pytest.raises(ReferenceConflict):
            reference_service.create_with_reference(
                _customer(company_name="Second"), column_name="customer_id", candidate=candidate,
            )
        assert len(calls) == app.config["REFERENCE_MAX_ATTEMPTS"]

    def test_other_integrity_error_propagates(self, db_session, log_records):
        _customer("CUS00001", email="dup@acme.test")

        with pytest.raises(IntegrityError):
            reference_service.create_with_reference(
                _customer(company_name="Second", email="dup@acme.test"),
                column_name="customer_id",
                candidate=_candidates("CUS00002", "CUS00003"),
            )
        assert log_records("database", "Reference collision on insert") == []
