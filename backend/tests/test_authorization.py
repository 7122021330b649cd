"""
Authorization tests for ImportDocs.

Verifies:
- Unauthenticated requests return 401
- Document visibility by creator / assigned approver / oversight roles
- Role-gated inventory writes return 403
- Identity comes from the session, never from the request body
"""

import pytest

from importdocs import authorization
from importdocs.services import workflow_service

from conftest import auth_headers, document_payload


# =============================================================================
# UNAUTHENTICATED ACCESS — 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/auth/me"),
            ("POST", "/api/auth/logout"),
            ("PATCH", "/api/auth/profile"),
            ("GET", "/api/profiles"),
            ("GET", "/api/documents"),
            ("POST", "/api/documents"),
            ("GET", "/api/documents/1"),
            ("POST", "/api/documents/1/submit"),
            ("POST", "/api/documents/1/approve"),
            ("POST", "/api/documents/1/reject"),
            ("GET", "/api/documents/1/history"),
            ("GET", "/api/documents/1/files"),
            ("GET", "/api/files/1/download"),
            ("DELETE", "/api/files/1"),
            ("GET", "/api/products"),
            ("POST", "/api/products"),
            ("GET", "/api/categories"),
            ("GET", "/api/warehouses"),
            ("GET", "/api/stock/movements"),
            ("POST", "/api/stock/movements"),
            ("GET", "/api/stock/balances"),
            ("GET", "/api/stock/reconcile"),
            ("GET", "/api/dashboard/documents"),
            ("GET", "/api/dashboard/inventory"),
        ],
    )
    def test_requires_auth(self, client, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token_is_401(self, client):
        resp = client.get("/api/documents", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401

    def test_health_is_public(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json["status"] == "healthy"
        assert client.get("/version").status_code == 200


# =============================================================================
# DOCUMENT VISIBILITY
# =============================================================================


class TestDocumentVisibility:

    def test_requester_sees_only_own_documents(self, client, requester, other_requester):
        workflow_service.create_document(requester, document_payload())
        other = workflow_service.create_document(
            other_requester, document_payload(document_number="PO-2024-002")
        )

        resp = client.get("/api/documents", headers=auth_headers(requester))
        assert resp.status_code == 200
        assert [d["document_number"] for d in resp.json["items"]] == ["PO-2024-001"]
        assert resp.json["total"] == 1

        resp = client.get(f"/api/documents/{other.id}", headers=auth_headers(requester))
        assert resp.status_code == 403

    def test_oversight_roles_see_everything(self, client, requester, other_requester, finance, admin):
        workflow_service.create_document(requester, document_payload())
        workflow_service.create_document(
            other_requester, document_payload(document_number="PO-2024-002")
        )
        for profile in (finance, admin):
            resp = client.get("/api/documents", headers=auth_headers(profile))
            assert resp.json["total"] == 2

    def test_approver_sees_assigned_and_unassigned_pending(
        self, client, requester, approver, other_approver
    ):
        workflow_service.create_document(requester, document_payload(approver_id=approver.id))
        unassigned = workflow_service.create_document(
            requester, document_payload(document_number="PO-2024-002")
        )
        workflow_service.create_document(
            requester, document_payload(document_number="PO-2024-003", approver_id=other_approver.id)
        )
        workflow_service.submit_for_approval(requester, unassigned.id)

        resp = client.get("/api/documents", headers=auth_headers(approver))
        numbers = sorted(d["document_number"] for d in resp.json["items"])
        assert numbers == ["PO-2024-001", "PO-2024-002"]

    def test_list_filters_and_counts(self, client, requester):
        workflow_service.create_document(requester, document_payload())
        workflow_service.create_document(
            requester, document_payload(document_number="INV-2024-010", document_type="Invoice")
        )
        resp = client.get("/api/documents?type=Invoice&status=all", headers=auth_headers(requester))
        assert resp.json["count"] == 1
        assert resp.json["total"] == 2

    def test_missing_document_is_404(self, client, admin):
        assert client.get("/api/documents/999", headers=auth_headers(admin)).status_code == 404


# =============================================================================
# IDENTITY FROM SESSION
# =============================================================================


class TestIdentity:

    def test_created_by_cannot_be_spoofed(self, client, requester, admin):
        resp = client.post(
            "/api/documents",
            json=document_payload(created_by=admin.id),
            headers=auth_headers(requester),
        )
        assert resp.status_code == 400

    def test_creator_is_the_session_profile(self, client, requester):
        resp = client.post("/api/documents", json=document_payload(), headers=auth_headers(requester))
        assert resp.json["document"]["created_by"] == requester.id


# =============================================================================
# ROLE-GATED WRITES — 403
# =============================================================================


class TestRoleGates:

    @pytest.mark.parametrize("role_fixture,expected", [
        ("requester", 403),
        ("approver", 403),
        ("finance", 201),
        ("admin", 201),
    ])
    def test_create_product(self, request, client, category, role_fixture, expected):
        actor = request.getfixturevalue(role_fixture)
        resp = client.post(
            "/api/products",
            json={"sku": f"SKU-{role_fixture}", "name": "Thing", "category_id": category.id},
            headers=auth_headers(actor),
        )
        assert resp.status_code == expected

    @pytest.mark.parametrize("role_fixture,expected", [
        ("finance", 403),
        ("admin", 201),
    ])
    def test_create_warehouse(self, request, client, role_fixture, expected):
        actor = request.getfixturevalue(role_fixture)
        resp = client.post(
            "/api/warehouses",
            json={"code": "WH-NEW", "name": "New Warehouse"},
            headers=auth_headers(actor),
        )
        assert resp.status_code == expected

    def test_requester_cannot_record_movements(self, client, requester, product, warehouse):
        resp = client.post("/api/stock/movements", json={
            "product_id": product.id, "warehouse_id": warehouse.id,
            "movement_type": "IN", "quantity": "1",
        }, headers=auth_headers(requester))
        assert resp.status_code == 403

    def test_finance_cannot_repair_balances(self, client, finance):
        assert client.post("/api/stock/reconcile", headers=auth_headers(finance)).status_code == 403

    def test_requester_cannot_delete_documents(self, client, requester):
        doc = workflow_service.create_document(requester, document_payload())
        resp = client.delete(f"/api/documents/{doc.id}", headers=auth_headers(requester))
        assert resp.status_code == 403


class TestCapabilities:

    def test_capabilities_follow_predicates(self, requester, admin):
        caps = authorization.capabilities(requester)
        assert caps["create_documents"] is True
        assert caps["decide_documents"] is False
        assert caps["repair_balances"] is False
        assert all(authorization.capabilities(admin).values())
