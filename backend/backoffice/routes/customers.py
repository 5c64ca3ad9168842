# Overview: Flask API routes for customers; parses input and returns JSON responses.

"""
Customer Routes

All routes require an authenticated, active principal.
- Reads: any role
- Create / update / payments / charges: admin, manager
- Delete: admin
"""

from flask import Blueprint, jsonify, request

from ..decorators import protected
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import customer_service

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")

WRITE_ROLES = (ROLE_ADMIN, ROLE_MANAGER)
DELETE_ROLES = (ROLE_ADMIN,)


@customers_bp.get("")
@protected()
def list_customers_route(ctx):
    """
    Query parameters: status, priority, search, limit (1..500, default 100), offset.

    Returns:
        {customers: Customer[], count: int, total: int, limit: int, offset: int}
    """
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)
    limit = max(1, min(limit, customer_service.MAX_PAGE_SIZE))
    offset = max(0, offset)

    customers, total = customer_service.list_customers(
        status=request.args.get("status"),
        priority=request.args.get("priority"),
        search=request.args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "customers": [c.to_dict() for c in customers],
        "count": len(customers),
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@customers_bp.post("")
@protected(*WRITE_ROLES)
def create_customer_route(ctx):
    customer = customer_service.create_customer(ctx.body, actor=ctx.principal)
    return jsonify({"customer": customer.to_dict()}), 201


@customers_bp.get("/<int:customer_id>")
@protected()
def get_customer_route(ctx, customer_id: int):
    customer = customer_service.get_customer(customer_id)
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.put("/<int:customer_id>")
@protected(*WRITE_ROLES)
def update_customer_route(ctx, customer_id: int):
    customer = customer_service.update_customer(customer_id, ctx.body, actor=ctx.principal)
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.delete("/<int:customer_id>")
@protected(*DELETE_ROLES)
def delete_customer_route(ctx, customer_id: int):
    customer = customer_service.delete_customer(customer_id, actor=ctx.principal)
    return jsonify({"message": "Customer deleted.", "customer_id": customer.customer_id}), 200


@customers_bp.post("/<int:customer_id>/payments")
@protected(*WRITE_ROLES)
def record_payment_route(ctx, customer_id: int):
    """Body: {amount, reference?, notes?}. Balance is floored at zero."""
    customer = customer_service.record_payment(customer_id, ctx.body, actor=ctx.principal)
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.post("/<int:customer_id>/charges")
@protected(*WRITE_ROLES)
def record_charge_route(ctx, customer_id: int):
    customer = customer_service.record_charge(customer_id, ctx.body, actor=ctx.principal)
    return jsonify({"customer": customer.to_dict()}), 200
