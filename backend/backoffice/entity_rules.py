# Overview: Field schemas and business rules for customers, vendors and ledger movements.

from __future__ import annotations

from decimal import Decimal

from .models import Customer, Vendor
from .models.customers import CUSTOMER_PRIORITIES, CUSTOMER_STATUSES
from .models.vendors import VENDOR_PRIORITIES, VENDOR_STATUSES, VENDOR_TYPES
from .validation import (
    ARRAY, BOOLEAN, DATE, EMAIL, INTEGER, NUMERIC, URL,
    EntitySchema, Field,
)

# Optional leading +, no leading zero, at most 16 digits
PHONE_PATTERN = r"^[+]?[1-9][0-9]{0,15}$"

MAX_AMOUNT = Decimal("999999999.99")
MAX_REVENUE = Decimal("999999999999.99")

COMPANY_SIZES = ("startup", "small", "medium", "large", "enterprise")
COMMUNICATION_CHANNELS = ("email", "phone", "sms", "mail", "in-person")

PHONE_MESSAGES = {"regex": "Please enter a valid phone number."}


def _contact_fields() -> tuple[Field, ...]:
    return (
        Field("name", required=True, max_length=255),
        Field("email", kind=EMAIL, max_length=255),
        Field("phone", pattern=PHONE_PATTERN,
              messages={"regex": "Please enter a valid phone number for additional contact."}),
        Field("role", max_length=100),
    )


def _address_fields() -> tuple[Field, ...]:
    return (
        Field("address_line_1", max_length=255),
        Field("address_line_2", max_length=255),
        Field("city", max_length=100),
        Field("state", max_length=100),
        Field("postal_code", max_length=20),
        Field("country", max_length=100),
    )


def _relationship_date_fields() -> tuple[Field, ...]:
    return (
        Field("first_contact_date", kind=DATE, not_future=True),
        Field("last_contact_date", kind=DATE, after_or_equal="first_contact_date", not_future=True,
              messages={"after_or_equal": "Last contact date must be on or after first contact date."}),
        Field("contract_start_date", kind=DATE),
        Field("contract_end_date", kind=DATE, after="contract_start_date",
              messages={"after": "Contract end date must be after contract start date."}),
        Field("auto_renewal", kind=BOOLEAN),
    )


def _balance_fields() -> tuple[Field, ...]:
    return (
        Field("preferred_currency", max_length=3),
        Field("payment_terms", max_length=100),
        Field("credit_limit", kind=NUMERIC, min_value=0, max_value=MAX_AMOUNT,
              messages={"max": "Credit limit exceeds maximum allowed amount."}),
        Field("outstanding_balance", kind=NUMERIC, min_value=0, max_value=MAX_AMOUNT,
              messages={"max": "Outstanding balance exceeds maximum allowed amount."}),
    )


def _shared_rules(kind: str):
    """Rules common to customers and vendors; `kind` is the plural noun used in messages."""

    def balance_within_credit_limit(data):
        balance, limit = data.get("outstanding_balance"), data.get("credit_limit")
        # A zero or unset credit limit means no limit, as in is_over_credit_limit().
        if balance and limit and balance > limit:
            yield "outstanding_balance", "Outstanding balance cannot exceed credit limit."

    def active_has_contact(data):
        if data.get("status") == "active" and not data.get("phone") and not data.get("email"):
            yield "phone", f"Active {kind} must have either phone or email contact information."

    return balance_within_credit_limit, active_has_contact


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def _customer_vip_address(data):
    if data.get("priority") == "vip" and not (
        data.get("address_line_1") and data.get("city") and data.get("country")
    ):
        yield "address_line_1", "VIP customers should have complete address information."


def _customer_active_contract(data):
    if data.get("status") == "active" and not data.get("contract_start_date"):
        yield "contract_start_date", "Contract start date is recommended for active customers."


def _customer_former_last_contact(data):
    if data.get("status") == "former" and not data.get("last_contact_date"):
        yield "last_contact_date", "Last contact date is required for former customers."


CUSTOMER_SCHEMA = EntitySchema(
    name="customer",
    model=Customer,
    fields=(
        Field("company_name", required=True, max_length=255),
        Field("contact_person", max_length=255),
        Field("email", kind=EMAIL, max_length=255, unique=True,
              messages={"unique": "This email address is already associated with another customer."}),
        Field("phone", pattern=PHONE_PATTERN, messages=PHONE_MESSAGES),
        Field("website", kind=URL, max_length=255),
        *_address_fields(),
        Field("industry", max_length=100),
        Field("company_size", choices=COMPANY_SIZES),
        Field("tax_id", max_length=50, label="tax ID"),
        Field("annual_revenue", kind=NUMERIC, min_value=0, max_value=MAX_REVENUE),
        Field("status", required=True, choices=CUSTOMER_STATUSES),
        Field("priority", required=True, choices=CUSTOMER_PRIORITIES),
        *_relationship_date_fields(),
        *_balance_fields(),
        Field("additional_contacts", kind=ARRAY, item_fields=_contact_fields()),
        Field("communication_preferences", kind=ARRAY, items=Field("channel", choices=COMMUNICATION_CHANNELS)),
        Field("notes", max_length=2000),
        Field("requirements", max_length=2000),
        Field("lead_source", max_length=100),
        Field("assigned_sales_rep", max_length=255),
    ),
    business_rules=(
        *_shared_rules("customers"),
        _customer_vip_address,
        _customer_active_contract,
        _customer_former_last_contact,
    ),
)


# ---------------------------------------------------------------------------
# Vendors
# ---------------------------------------------------------------------------

def _vendor_critical_address(data):
    if data.get("priority") == "critical" and not (
        data.get("address_line_1") and data.get("city") and data.get("country")
    ):
        yield "address_line_1", "Critical vendors should have complete address information."


def _vendor_active_contract(data):
    if data.get("status") == "active" and not data.get("contract_start_date"):
        yield "contract_start_date", "Contract start date is recommended for active vendors."


def _vendor_critical_insurance(data):
    if data.get("priority") == "critical" and not data.get("insurance_verified"):
        yield "insurance_verified", "Critical priority vendors should have verified insurance."


def _vendor_background_check_date(data):
    if data.get("background_check_completed") and not data.get("background_check_date"):
        yield "background_check_date", "Background check date is required when background check is completed."


def _vendor_review_has_rating(data):
    if data.get("last_performance_review") and not data.get("performance_rating"):
        yield "performance_rating", "Performance rating is required when last performance review date is provided."


def _vendor_terminated_last_contact(data):
    if data.get("status") == "terminated" and not data.get("last_contact_date"):
        yield "last_contact_date", "Last contact date is required for terminated vendors."


_RATING_MESSAGE = "Performance rating must be between 1 and 5."

VENDOR_SCHEMA = EntitySchema(
    name="vendor",
    model=Vendor,
    fields=(
        Field("company_name", required=True, max_length=255),
        Field("contact_person", max_length=255),
        Field("email", kind=EMAIL, max_length=255, unique=True,
              messages={"unique": "This email address is already associated with another vendor."}),
        Field("phone", pattern=PHONE_PATTERN, messages=PHONE_MESSAGES),
        Field("website", kind=URL, max_length=255),
        *_address_fields(),
        Field("service_type", required=True, max_length=100),
        Field("industry", max_length=100),
        Field("company_size", choices=COMPANY_SIZES),
        Field("tax_id", max_length=50, label="tax ID"),
        Field("business_license", max_length=100),
        Field("vendor_type", required=True, choices=VENDOR_TYPES),
        Field("status", required=True, choices=VENDOR_STATUSES),
        Field("priority", required=True, choices=VENDOR_PRIORITIES),
        *_balance_fields(),
        Field("bank_account_info", max_length=500, label="bank account information"),
        *_relationship_date_fields(),
        Field("assigned_procurement_rep", max_length=255),
        Field("performance_rating", kind=NUMERIC, min_value=1, max_value=5,
              messages={"min": _RATING_MESSAGE, "max": _RATING_MESSAGE}),
        Field("last_performance_review", kind=DATE, not_future=True),
        Field("delivery_success_rate", kind=INTEGER, min_value=0, max_value=100),
        Field("average_delivery_time", kind=NUMERIC, min_value=0, max_value=365,
              messages={"max": "Average delivery time cannot exceed 365 days."}),
        Field("services_provided", kind=ARRAY, items=Field("service", max_length=255)),
        Field("certifications", kind=ARRAY, items=Field("certification", max_length=255)),
        Field("capabilities", kind=ARRAY, items=Field("capability", max_length=255)),
        Field("additional_contacts", kind=ARRAY, item_fields=_contact_fields()),
        Field("communication_preferences", kind=ARRAY, items=Field("channel", choices=COMMUNICATION_CHANNELS)),
        Field("notes", max_length=2000),
        Field("requirements", max_length=2000),
        Field("compliance_notes", max_length=1000),
        Field("lead_source", max_length=100),
        Field("insurance_verified", kind=BOOLEAN),
        Field("insurance_expiry_date", kind=DATE, future_only=True,
              messages={"after": "Insurance expiry date must be in the future."}),
        Field("background_check_completed", kind=BOOLEAN),
        Field("background_check_date", kind=DATE, not_future=True),
    ),
    business_rules=(
        *_shared_rules("vendors"),
        _vendor_critical_address,
        _vendor_active_contract,
        _vendor_critical_insurance,
        _vendor_background_check_date,
        _vendor_review_has_rating,
        _vendor_terminated_last_contact,
    ),
)


# ---------------------------------------------------------------------------
# Balance movements
# ---------------------------------------------------------------------------

LEDGER_SCHEMA = EntitySchema(
    name="ledger movement",
    model=None,
    fields=(
        Field("amount", kind=NUMERIC, required=True, min_value=Decimal("0.01"), max_value=MAX_AMOUNT),
        Field("reference", max_length=100),
        Field("notes", max_length=500),
    ),
)
