# Overview: Browser landing pages.

from flask import Blueprint, redirect, render_template, url_for

from ..decorators import audited, protected
from ..models import Customer, Vendor

pages_bp = Blueprint("pages", __name__)


@pages_bp.get("/")
@audited
def index(ctx):
    return redirect(url_for("pages.dashboard"))


@pages_bp.get("/dashboard")
@protected()
def dashboard(ctx):
    return render_template(
        "dashboard.html",
        user=ctx.principal,
        customer_count=Customer.live().count(),
        vendor_count=Vendor.live().count(),
    )
