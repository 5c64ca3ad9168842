from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from ..extensions import db
from ..time_utils import to_iso_date, to_utc_z, today
from .mixins import SoftDeleteMixin, TimestampMixin

REFERENCE_PREFIX = "VEN"

VENDOR_TYPES = ("supplier", "contractor", "consultant", "service_provider", "freelancer", "partner")
VENDOR_STATUSES = ("pending", "active", "inactive", "suspended", "terminated")
VENDOR_PRIORITIES = ("low", "medium", "high", "critical")

VENDOR_FIELDS = (
    "company_name", "contact_person", "email", "phone", "website",
    "address_line_1", "address_line_2", "city", "state", "postal_code", "country",
    "service_type", "industry", "company_size", "tax_id", "business_license",
    "vendor_type", "status", "priority",
    "preferred_currency", "payment_terms", "credit_limit", "outstanding_balance", "bank_account_info",
    "first_contact_date", "last_contact_date", "contract_start_date", "contract_end_date",
    "auto_renewal", "assigned_procurement_rep",
    "performance_rating", "last_performance_review", "delivery_success_rate", "average_delivery_time",
    "services_provided", "certifications", "capabilities",
    "additional_contacts", "communication_preferences",
    "notes", "requirements", "compliance_notes", "lead_source",
    "insurance_verified", "insurance_expiry_date",
    "background_check_completed", "background_check_date",
)

_BOOLEAN_FIELDS = ("auto_renewal", "insurance_verified", "background_check_completed")


def _decimal(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return f"{Decimal(value):.2f}"


class Vendor(TimestampMixin, SoftDeleteMixin, db.Model):
    """
    Supplier / contractor record.

    vendor_id references (VEN00001) are allocated sequentially from the
    highest reference ever issued, soft-deleted vendors included.
    bank_account_info is write-only: it is never serialized.
    """
    __tablename__ = "vendors"
    __table_args__ = (
        db.UniqueConstraint("vendor_id", name="uq_vendors_vendor_id"),
        db.UniqueConstraint("email", name="uq_vendors_email"),
        db.Index("ix_vendors_status_priority", "status", "priority"),
        db.Index("ix_vendors_type_status", "vendor_type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vendor_id = db.Column(db.String(16), nullable=False)

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

    service_type = db.Column(db.String(100), nullable=False)
    industry = db.Column(db.String(100), nullable=True)
    company_size = db.Column(db.String(32), nullable=True)
    tax_id = db.Column(db.String(50), nullable=True)
    business_license = db.Column(db.String(100), nullable=True)

    vendor_type = db.Column(db.String(32), nullable=False, default="supplier")
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    priority = db.Column(db.String(16), nullable=False, default="medium", index=True)

    preferred_currency = db.Column(db.String(3), nullable=True)
    payment_terms = db.Column(db.String(100), nullable=True)
    credit_limit = db.Column(db.Numeric(12, 2), nullable=True)
    outstanding_balance = db.Column(db.Numeric(12, 2), nullable=True)
    bank_account_info = db.Column(db.String(500), nullable=True)

    first_contact_date = db.Column(db.Date, nullable=True)
    last_contact_date = db.Column(db.Date, nullable=True)
    contract_start_date = db.Column(db.Date, nullable=True)
    contract_end_date = db.Column(db.Date, nullable=True)
    auto_renewal = db.Column(db.Boolean, nullable=False, default=False)
    assigned_procurement_rep = db.Column(db.String(255), nullable=True)

    performance_rating = db.Column(db.Numeric(3, 2), nullable=True)
    last_performance_review = db.Column(db.Date, nullable=True)
    delivery_success_rate = db.Column(db.Integer, nullable=True)
    average_delivery_time = db.Column(db.Numeric(5, 2), nullable=True)

    services_provided = db.Column(db.JSON, nullable=True)
    certifications = db.Column(db.JSON, nullable=True)
    capabilities = db.Column(db.JSON, nullable=True)
    additional_contacts = db.Column(db.JSON, nullable=True)
    communication_preferences = db.Column(db.JSON, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    requirements = db.Column(db.Text, nullable=True)
    compliance_notes = db.Column(db.Text, nullable=True)
    lead_source = db.Column(db.String(100), nullable=True)

    insurance_verified = db.Column(db.Boolean, nullable=False, default=False)
    insurance_expiry_date = db.Column(db.Date, nullable=True)
    background_check_completed = db.Column(db.Boolean, nullable=False, default=False)
    background_check_date = db.Column(db.Date, nullable=True)

    def assign(self, data: dict) -> None:
        for name in VENDOR_FIELDS:
            if name in data:
                value = data[name]
                if name in _BOOLEAN_FIELDS and value is None:
                    value = False
                setattr(self, name, value)

    def snapshot(self) -> dict:
        return {name: getattr(self, name) for name in VENDOR_FIELDS}

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

    def is_insurance_expired(self) -> bool:
        if not self.insurance_expiry_date:
            return False
        return today() > self.insurance_expiry_date

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vendor_id": self.vendor_id,
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
            "service_type": self.service_type,
            "industry": self.industry,
            "company_size": self.company_size,
            "tax_id": self.tax_id,
            "business_license": self.business_license,
            "vendor_type": self.vendor_type,
            "status": self.status,
            "priority": self.priority,
            "preferred_currency": self.preferred_currency,
            "payment_terms": self.payment_terms,
            "credit_limit": _decimal(self.credit_limit),
            "outstanding_balance": _decimal(self.outstanding_balance),
            "is_over_credit_limit": self.is_over_credit_limit(),
            "first_contact_date": to_iso_date(self.first_contact_date),
            "last_contact_date": to_iso_date(self.last_contact_date),
            "contract_start_date": to_iso_date(self.contract_start_date),
            "contract_end_date": to_iso_date(self.contract_end_date),
            "auto_renewal": self.auto_renewal,
            "is_contract_expired": self.is_contract_expired(),
            "assigned_procurement_rep": self.assigned_procurement_rep,
            "performance_rating": _decimal(self.performance_rating),
            "last_performance_review": to_iso_date(self.last_performance_review),
            "delivery_success_rate": self.delivery_success_rate,
            "average_delivery_time": _decimal(self.average_delivery_time),
            "services_provided": self.services_provided or [],
            "certifications": self.certifications or [],
            "capabilities": self.capabilities or [],
            "additional_contacts": self.additional_contacts or [],
            "communication_preferences": self.communication_preferences or [],
            "notes": self.notes,
            "requirements": self.requirements,
            "compliance_notes": self.compliance_notes,
            "lead_source": self.lead_source,
            "insurance_verified": self.insurance_verified,
            "insurance_expiry_date": to_iso_date(self.insurance_expiry_date),
            "is_insurance_expired": self.is_insurance_expired(),
            "background_check_completed": self.background_check_completed,
            "background_check_date": to_iso_date(self.background_check_date),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
