from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, today
from .mixins import SoftDeleteMixin, TimestampMixin

REFERENCE_PREFIX = "CUS"

CUSTOMER_STATUSES = ("prospect", "active", "inactive", "former")
CUSTOMER_PRIORITIES = ("low", "medium", "high", "vip")

# Columns a validated payload may write. customer_id (the reference) and the
# bookkeeping columns are never client-writable.
CUSTOMER_FIELDS = (
    "company_name", "contact_person", "email", "phone", "website",
    "address_line_1", "address_line_2", "city", "state", "postal_code", "country",
    "industry", "company_size", "tax_id", "annual_revenue",
    "status", "priority", "first_contact_date", "last_contact_date",
    "preferred_currency", "payment_terms", "credit_limit", "outstanding_balance",
    "additional_contacts", "communication_preferences",
    "notes", "requirements", "lead_source", "assigned_sales_rep",
    "contract_start_date", "contract_end_date", "auto_renewal",
)


def _money(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return f"{Decimal(value):.2f}"


class Customer(TimestampMixin, SoftDeleteMixin, db.Model):
    """
    Customer account.

    customer_id is the external reference (CUS00042). It is unique across
    every row ever written, soft-deleted ones included.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("customer_id", name="uq_customers_customer_id"),
        db.UniqueConstraint("email", name="uq_customers_email"),
        db.Index("ix_customers_status_priority", "status", "priority"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.String(16), nullable=False)

    company_name = db.Column(db.String(255), nullable=False, index=True)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)
    website = db.Column(db.String(255), nullable=True)

    address_line_1 = db.Column(db.String(255), nullable=True)
    address_line_2 = db.Column(db.String(255), nullable=True)
    city = db.Column(db.String(100), nullable=True)
    state = db.Column(db.String(100), nullable=True)
    postal_code = db.Column(db.String(20), nullable=True)
    country = db.Column(db.String(100), nullable=True)

    industry = db.Column(db.String(100), nullable=True)
    company_size = db.Column(db.String(32), nullable=True)
    tax_id = db.Column(db.String(50), nullable=True)
    annual_revenue = db.Column(db.Numeric(15, 2), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="prospect", index=True)
    priority = db.Column(db.String(16), nullable=False, default="medium", index=True)
    first_contact_date = db.Column(db.Date, nullable=True)
    last_contact_date = db.Column(db.Date, nullable=True)

    preferred_currency = db.Column(db.String(3), nullable=True)
    payment_terms = db.Column(db.String(100), nullable=True)
    credit_limit = db.Column(db.Numeric(12, 2), nullable=True)
    outstanding_balance = db.Column(db.Numeric(12, 2), nullable=True)

    additional_contacts = db.Column(db.JSON, nullable=True)
    communication_preferences = db.Column(db.JSON, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    requirements = db.Column(db.Text, nullable=True)
    lead_source = db.Column(db.String(100), nullable=True)
    assigned_sales_rep = db.Column(db.String(255), nullable=True)

    contract_start_date = db.Column(db.Date, nullable=True)
    contract_end_date = db.Column(db.Date, nullable=True)
    auto_renewal = db.Column(db.Boolean, nullable=False, default=False)

    def assign(self, data: dict) -> None:
        """Copy validated values onto the row. Keys outside CUSTOMER_FIELDS are ignored."""
        for name in CUSTOMER_FIELDS:
            if name in data:
                value = data[name]
                if name == "auto_renewal" and value is None:
                    value = False
                setattr(self, name, value)

    def snapshot(self) -> dict:
        """Current writable values, used as the base for update validation."""
        return {name: getattr(self, name) for name in CUSTOMER_FIELDS}

    @property
    def full_address(self) -> str:
        parts = [self.address_line_1, self.address_line_2, self.city, self.state, self.postal_code, self.country]
        return ", ".join(p for p in parts if p)

    def is_over_credit_limit(self) -> bool:
        if not self.credit_limit:
            return False
        return (self.outstanding_balance or 0) > self.credit_limit

    def is_contract_expired(self) -> bool:
        if not self.contract_end_date:
            return False
        return today() > self.contract_end_date

    def is_contract_expiring_soon(self, days: int = 30) -> bool:
        if not self.contract_end_date:
            return False
        now = today()
        return now <= self.contract_end_date <= now + timedelta(days=days)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "company_name": self.company_name,
            "contact_person": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "website": self.website,
            "address_line_1": self.address_line_1,
            "address_line_2": self.address_line_2,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "full_address": self.full_address,
            "industry": self.industry,
            "company_size": self.company_size,
            "tax_id": self.tax_id,
            "annual_revenue": _money(self.annual_revenue),
            "status": self.status,
            "priority": self.priority,
            "first_contact_date": to_iso_date(self.first_contact_date),
            "last_contact_date": to_iso_date(self.last_contact_date),
            "preferred_currency": self.preferred_currency,
            "payment_terms": self.payment_terms,
            "credit_limit": _money(self.credit_limit),
            "outstanding_balance": _money(self.outstanding_balance),
            "is_over_credit_limit": self.is_over_credit_limit(),
            "additional_contacts": self.additional_contacts or [],
            "communication_preferences": self.communication_preferences or [],
            "notes": self.notes,
            "requirements": self.requirements,
            "lead_source": self.lead_source,
            "assigned_sales_rep": self.assigned_sales_rep,
            "contract_start_date": to_iso_date(self.contract_start_date),
            "contract_end_date": to_iso_date(self.contract_end_date),
            "auto_renewal": self.auto_renewal,
            "is_contract_expired": self.is_contract_expired(),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
