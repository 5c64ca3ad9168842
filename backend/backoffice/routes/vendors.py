# Overview: Flask API routes for vendors; parses input and returns JSON responses.

"""
Vendor Routes

SECURITY: All routes require an authenticated, active principal.
- Reads: any role
- Create / update: admin, manager
- Delete: admin
"""

from flask import Blueprint, jsonify, request

from ..decorators import protected
from ..models.auth import ROLE_ADMIN, ROLE_MANAGER
from ..services import vendor_service

vendors_bp = Blueprint("vendors", __name__, url_prefix="/api/vendors")


@vendors_bp.get("")
@protected()
def list_vendors_route(ctx):
    limit = request.args.get("limit", 100, type=int)
    offset = request.args.get("offset", 0, type=int)

    # Clamp limit
    if limit < 1:
        limit = 1
    if limit > vendor_service.MAX_PAGE_SIZE:
        limit = vendor_service.MAX_PAGE_SIZE
    if offset < 0:
        offset = 0

    vendors, total = vendor_service.list_vendors(
        status=request.args.get("status"),
        vendor_type=request.args.get("vendor_type"),
        priority=request.args.get("priority"),
        search=request.args.get("search"),
        limit=limit,
        offset=offset,
    )
    return jsonify({
        "vendors": [v.to_dict() for v in vendors],
        "count": len(vendors),
        "total": total,
        "limit": limit,
        "offset": offset,
    }), 200


@vendors_bp.post("")
@protected(ROLE_ADMIN, ROLE_MANAGER)
def create_vendor_route(ctx):
    vendor = vendor_service.create_vendor(ctx.body, actor=ctx.principal)
    return jsonify({"vendor": vendor.to_dict()}), 201


@vendors_bp.get("/<int:vendor_id>")
@protected()
def get_vendor_route(ctx, vendor_id: int):
    vendor = vendor_service.get_vendor(vendor_id)
    return jsonify({"vendor": vendor.to_dict()}), 200


@vendors_bp.put("/<int:vendor_id>")
@protected(ROLE_ADMIN, ROLE_MANAGER)
def update_vendor_route(ctx, vendor_id: int):
    vendor = vendor_service.update_vendor(vendor_id, ctx.body, actor=ctx.principal)
    return jsonify({"vendor": vendor.to_dict()}), 200


@vendors_bp.delete("/<int:vendor_id>")
@protected(ROLE_ADMIN)
def delete_vendor_route(ctx, vendor_id: int):
    vendor = vendor_service.delete_vendor(vendor_id, actor=ctx.principal)
    return jsonify({"message": "Vendor deleted.", "vendor_id": vendor.vendor_id}), 200
