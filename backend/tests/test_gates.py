"""
Gate pipeline tests.

Verifies:
- Unauthenticated requests get 401 JSON / login redirect and never reach the handler
- Bearer and cookie tokens both authenticate; revoked, expired and idle ones do not
- Inactive principals are refused regardless of role and lose their session
- Role gate admits r in R (or any role when R is empty)
"""

from datetime import timedelta

import pytest
from flask import Response

from backoffice.gates import INACTIVE_MESSAGE, INSUFFICIENT_ROLE_MESSAGE, RoleGate
from backoffice.models import Customer, SessionToken
from backoffice.pipeline import Gate, Pipeline, RequestContext
from backoffice.services import session_service
from backoffice.time_utils import utcnow


# =============================================================================
# PIPELINE MECHANICS
# =============================================================================


class _Recorder(Gate):
    def __init__(self, name, calls, stop=False):
        self.name = name
        self.calls = calls
        self.stop = stop

    def process(self, ctx, next_handler):
        self.calls.append(self.name)
        if self.stop:
            return Response("stopped", status=418)
        return next_handler(ctx)


def _ctx(**kwargs):
    defaults = {"method": "GET", "url": "http://localhost/x", "path": "/x"}
    defaults.update(kwargs)
    return RequestContext(**defaults)


class TestPipeline:

    def test_gates_run_in_order_then_handler(self):
        calls = []
        pipeline = Pipeline([_Recorder("a", calls), _Recorder("b", calls)])

        def handler(ctx):
            calls.append("handler")
            return Response("ok")

        resp = pipeline.run(_ctx(), handler)
        assert resp.status_code == 200
        assert calls == ["a", "b", "handler"]

    def test_short_circuit_skips_later_gates_and_handler(self):
        calls = []
        pipeline = Pipeline([_Recorder("a", calls, stop=True), _Recorder("b", calls)])

        resp = pipeline.run(_ctx(), lambda ctx: calls.append("handler"))
        assert resp.status_code == 418
        assert calls == ["a"]

    def test_context_is_shared_through_the_chain(self):
        class Tagger(Gate):
            def process(self, ctx, next_handler):
                ctx.headers["x-tag"] = "seen"
                return next_handler(ctx)

        pipeline = Pipeline([Tagger()])
        resp = pipeline.run(_ctx(), lambda ctx: Response(ctx.headers["x-tag"]))
        assert resp.get_data(as_text=True) == "seen"


# =============================================================================
# AUTHENTICATION GATE
# =============================================================================


class TestAuthenticationGate:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/customers"),
            ("POST", "/api/customers"),
            ("GET", "/api/customers/1"),
            ("PUT", "/api/customers/1"),
            ("DELETE", "/api/customers/1"),
            ("POST", "/api/customers/1/payments"),
            ("GET", "/api/vendors"),
            ("POST", "/api/vendors"),
            ("DELETE", "/api/vendors/1"),
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = client.open(path, method=method)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json() == {"message": "Unauthenticated."}

    def test_handler_not_executed(self, client, db_session, customer_payload):
        resp = client.post("/api/customers", json=customer_payload)
        assert resp.status_code == 401
        assert db_session.query(Customer).count() == 0

    def test_rejection_logged_to_security(self, client, log_records):
        client.get("/api/vendors?status=active", headers={"User-Agent": "scanner/1.0", "Referer": "http://evil.test/"})

        records = log_records("security", "Unauthorized access attempt")
        assert len(records) == 1
        context = records[0].context
        assert context["url"] == "http://localhost/api/vendors?status=active"
        assert context["method"] == "GET"
        assert context["ip_address"] == "127.0.0.1"
        assert context["user_agent"] == "scanner/1.0"
        assert context["referer"] == "http://evil.test/"

    def test_browser_is_redirected_to_login(self, client):
        resp = client.get("/dashboard")
        assert resp.status_code == 302
        assert "/login" in resp.headers["Location"]
        assert "next=%2Fdashboard" in resp.headers["Location"]

    def test_accept_json_makes_any_path_a_machine_call(self, client):
        resp = client.get("/dashboard", headers={"Accept": "application/json"})
        assert resp.status_code == 401
        assert resp.get_json() == {"message": "Unauthenticated."}

    def test_xhr_is_a_machine_call(self, client):
        resp = client.get("/dashboard", headers={"X-Requested-With": "XMLHttpRequest"})
        assert resp.status_code == 401

    def test_bearer_token(self, client, employee, auth_headers):
        resp = client.get("/api/auth/me", headers=auth_headers(employee))
        assert resp.status_code == 200
        assert resp.get_json()["user"]["email"] == employee.email

    def test_session_cookie(self, app, client, employee):
        _, token = session_service.create_session(employee)
        client.set_cookie(app.config["SESSION_TOKEN_COOKIE"], token)

        resp = client.get("/api/auth/me")
        assert resp.status_code == 200

    def test_unknown_token(self, client):
        resp = client.get("/api/auth/me", headers={"Authorization": "Bearer " + "0" * 64})
        assert resp.status_code == 401

    def test_revoked_token(self, client, employee):
        _, token = session_service.create_session(employee)
        session_service.revoke_session(token)

        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_expired_token(self, client, db_session, employee):
        session, token = session_service.create_session(employee)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

    def test_idle_token_is_revoked(self, client, db_session, employee):
        session, token = session_service.create_session(employee)
        session.last_used_at = utcnow() - session_service.SESSION_IDLE_TIMEOUT - timedelta(minutes=1)
        db_session.commit()

        resp = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401

        session = db_session.get(SessionToken, session.id)
        assert session.is_revoked is True
        assert session.revoked_reason == "Idle timeout"


# =============================================================================
# STATUS GATE
# =============================================================================


class TestStatusGate:

    @pytest.mark.parametrize("role", ["admin", "manager", "employee"])
    @pytest.mark.parametrize("status", ["inactive", "suspended"])
    def test_inactive_refused_regardless_of_role(self, client, make_user, role, status):
        user = make_user(role=role, status=status)
        _, token = session_service.create_session(user)

        resp = client.get("/api/customers", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403
        assert resp.get_json() == {"message": INACTIVE_MESSAGE, "status": status}

    def test_session_is_revoked_and_cookies_reset(self, client, db_session, make_user):
        user = make_user(status="suspended")
        session, token = session_service.create_session(user)
        old_csrf = session.csrf_token

        resp = client.get("/api/customers", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 403

        session = db_session.get(SessionToken, session.id)
        assert session.is_revoked is True

        cookies = resp.headers.getlist("Set-Cookie")
        assert any(c.startswith("backoffice_session=;") for c in cookies)
        csrf = [c for c in cookies if c.startswith("XSRF-TOKEN=")]
        assert csrf
        assert old_csrf not in csrf[0]
        assert not csrf[0].startswith("XSRF-TOKEN=;")

        # The revoked token no longer authenticates at all
        again = client.get("/api/customers", headers={"Authorization": f"Bearer {token}"})
        assert again.status_code == 401

    def test_warning_logged(self, client, make_user, log_records):
        user = make_user(status="inactive")
        _, token = session_service.create_session(user)

        client.get("/api/vendors", headers={"Authorization": f"Bearer {token}"})

        records = log_records("auth", "Inactive user attempted access")
        assert len(records) == 1
        assert records[0].levelname == "WARNING"
        assert records[0].context["user_id"] == user.id
        assert records[0].context["email"] == user.email
        assert records[0].context["status"] == "inactive"

    def test_browser_redirect_with_message(self, client, make_user):
        user = make_user(status="suspended")
        _, token = session_service.create_session(user)

        resp = client.get("/dashboard", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 302
        assert "/login" in resp.headers["Location"]

        page = client.get(resp.headers["Location"])
        assert INACTIVE_MESSAGE in page.get_data(as_text=True)

    def test_active_user_passes(self, client, employee, auth_headers):
        resp = client.get("/api/customers", headers=auth_headers(employee))
        assert resp.status_code == 200


# =============================================================================
# ROLE GATE
# =============================================================================


class TestRoleGate:

    @pytest.mark.parametrize(
        "roles,role,allowed",
        [
            ((), "employee", True),
            ((), "admin", True),
            (("admin",), "admin", True),
            (("admin",), "manager", False),
            (("admin", "manager"), "manager", True),
            (("admin", "manager"), "employee", False),
        ],
    )
    def test_allows(self, roles, role, allowed):
        assert RoleGate(roles).allows(role) is allowed

    @pytest.mark.parametrize(
        "role,method,path,expected",
        [
            ("employee", "GET", "/api/customers", 200),
            ("employee", "POST", "/api/customers", 403),
            ("employee", "DELETE", "/api/vendors/999", 403),
            ("manager", "POST", "/api/customers", 422),
            ("manager", "DELETE", "/api/customers/999", 403),
            ("admin", "DELETE", "/api/customers/999", 404),
        ],
    )
    def test_route_matrix(self, client, make_user, auth_headers, role, method, path, expected):
        user = make_user(role=role)
        resp = client.open(path, method=method, json={} if method == "POST" else None, headers=auth_headers(user))
        assert resp.status_code == expected

    def test_denial_body(self, client, employee, auth_headers, customer_payload):
        resp = client.post("/api/customers", json=customer_payload, headers=auth_headers(employee))
        assert resp.status_code == 403
        assert resp.get_json() == {
            "message": INSUFFICIENT_ROLE_MESSAGE,
            "required_roles": ["admin", "manager"],
            "user_role": "employee",
        }

    def test_denial_logged_to_security(self, client, employee, auth_headers, log_records):
        client.delete("/api/customers/1", headers=auth_headers(employee))

        records = log_records("security", "Insufficient role for route")
        assert len(records) == 1
        assert records[0].context["required_roles"] == ["admin"]
        assert records[0].context["user_role"] == "employee"

    def test_pass_through_logged(self, client, manager, auth_headers, log_records):
        client.get("/api/vendors", headers=auth_headers(manager))

        records = log_records("auth", "User accessed role-protected route")
        assert len(records) == 1
        context = records[0].context
        assert context["user_id"] == manager.id
        assert context["role"] == "manager"
        assert context["required_roles"] == []
        assert context["method"] == "GET"
