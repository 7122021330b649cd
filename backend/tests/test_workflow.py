"""
Document workflow tests.

Verifies:
- Draft -> Pending -> Approved | Rejected, and nothing else
- Each transition writes exactly one history row, atomically
- Rejection requires a non-blank reason and writes nothing otherwise
- A stale concurrent transition is refused instead of overwriting
- The end-to-end purchase order scenario over HTTP
"""

from decimal import Decimal

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from importdocs.authorization import AuthorizationError
from importdocs.extensions import db
from importdocs.models import Document, DocumentHistory
from importdocs.services import document_service, history_service, workflow_service
from importdocs.services.workflow_service import WorkflowError
from importdocs.validation import ConflictError, ValidationError

from conftest import auth_headers, document_payload


def _history_count(document_id: int) -> int:
    return db.session.query(DocumentHistory).filter_by(document_id=document_id).count()


# =============================================================================
# STATE MACHINE
# =============================================================================


class TestTransitions:

    def test_valid_transition_table(self):
        assert workflow_service.can_transition("Draft", "Pending")
        assert workflow_service.can_transition("Pending", "Approved")
        assert workflow_service.can_transition("Pending", "Rejected")
        assert not workflow_service.can_transition("Draft", "Approved")
        assert not workflow_service.can_transition("Approved", "Pending")
        assert not workflow_service.can_transition("Rejected", "Approved")
        assert not workflow_service.can_transition("Pending", "Closed")

    def test_unknown_status_is_workflow_error(self):
        with pytest.raises(WorkflowError):
            workflow_service.can_transition("Draft", "Archived")

    def test_create_forces_draft_and_creator(self, requester):
        doc = workflow_service.create_document(requester, document_payload())
        assert doc.status == "Draft"
        assert doc.created_by == requester.id
        assert doc.document_value == Decimal("15000.00")

        history = history_service.list_history(doc.id)
        assert [h.action_type for h in history] == ["Created"]
        assert history[0].new_status == "Draft"
        assert history[0].performed_by == requester.id

    def test_create_rejects_status_field(self, requester):
        with pytest.raises(ValidationError):
            workflow_service.create_document(requester, document_payload(status="Approved"))

    def test_create_applies_defaults(self, requester):
        payload = document_payload()
        for key in ("document_value", "currency", "priority"):
            payload.pop(key)
        doc = workflow_service.create_document(requester, payload)
        assert doc.document_value == Decimal("0")
        assert doc.currency == "USD"
        assert doc.priority == "Medium"

    def test_duplicate_document_number_conflicts(self, requester):
        workflow_service.create_document(requester, document_payload())
        with pytest.raises(ConflictError):
            workflow_service.create_document(requester, document_payload(supplier_name="Other"))

    def test_approver_must_have_decision_role(self, requester, other_requester):
        with pytest.raises(ValidationError):
            workflow_service.create_document(
                requester, document_payload(approver_id=other_requester.id)
            )

    def test_submit_moves_draft_to_pending(self, requester):
        doc = workflow_service.create_document(requester, document_payload())
        doc = workflow_service.submit_for_approval(requester, doc.id)
        assert doc.status == "Pending"
        assert _history_count(doc.id) == 2

    def test_only_creator_submits(self, requester, admin):
        doc = workflow_service.create_document(requester, document_payload())
        with pytest.raises(AuthorizationError):
            workflow_service.submit_for_approval(admin, doc.id)
        assert _history_count(doc.id) == 1

    def test_submit_twice_is_workflow_error(self, requester):
        doc = workflow_service.create_document(requester, document_payload())
        workflow_service.submit_for_approval(requester, doc.id)
        with pytest.raises(WorkflowError):
            workflow_service.submit_for_approval(requester, doc.id)
        assert _history_count(doc.id) == 2

    def test_approve_only_from_pending(self, requester, approver):
        doc = workflow_service.create_document(
            requester, document_payload(approver_id=approver.id)
        )
        with pytest.raises(WorkflowError):
            workflow_service.approve(approver, doc.id)
        assert db.session.get(Document, doc.id).status == "Draft"

    def test_decided_documents_are_terminal(self, requester, approver):
        doc = workflow_service.create_document(
            requester, document_payload(approver_id=approver.id)
        )
        workflow_service.submit_for_approval(requester, doc.id)
        workflow_service.approve(approver, doc.id)

        with pytest.raises(WorkflowError):
            workflow_service.reject(approver, doc.id, "Too late")
        with pytest.raises(WorkflowError):
            workflow_service.approve(approver, doc.id)
        assert _history_count(doc.id) == 3

    def test_requester_cannot_decide(self, requester):
        doc = workflow_service.create_document(requester, document_payload())
        workflow_service.submit_for_approval(requester, doc.id)
        with pytest.raises(AuthorizationError):
            workflow_service.approve(requester, doc.id)

    def test_assigned_document_is_reserved_for_its_approver(self, requester, approver, other_approver):
        doc = workflow_service.create_document(
            requester, document_payload(approver_id=approver.id)
        )
        workflow_service.submit_for_approval(requester, doc.id)
        with pytest.raises(AuthorizationError):
            workflow_service.approve(other_approver, doc.id)

    def test_unassigned_decision_claims_the_document(self, requester, approver):
        doc = workflow_service.create_document(requester, document_payload())
        workflow_service.submit_for_approval(requester, doc.id)
        doc = workflow_service.approve(approver, doc.id, remarks="Looks right")
        assert doc.status == "Approved"
        assert doc.approver_id == approver.id
        assert history_service.list_history(doc.id)[0].remarks == "Looks right"


# =============================================================================
# REJECTION
# =============================================================================


class TestRejection:

    @pytest.mark.parametrize("reason", [None, "", "   ", "\n\t"])
    def test_blank_reason_writes_nothing(self, requester, approver, reason):
        doc = workflow_service.create_document(
            requester, document_payload(approver_id=approver.id)
        )
        workflow_service.submit_for_approval(requester, doc.id)

        with pytest.raises(ValidationError):
            workflow_service.reject(approver, doc.id, reason)

        db.session.expire_all()
        refreshed = db.session.get(Document, doc.id)
        assert refreshed.status == "Pending"
        assert refreshed.rejection_reason is None
        assert _history_count(doc.id) == 2

    def test_reject_stores_trimmed_reason(self, requester, approver):
        doc = workflow_service.create_document(
            requester, document_payload(approver_id=approver.id)
        )
        workflow_service.submit_for_approval(requester, doc.id)
        doc = workflow_service.reject(approver, doc.id, "  Missing customs form  ")

        assert doc.status == "Rejected"
        assert doc.rejection_reason == "Missing customs form"
        latest = history_service.list_history(doc.id)[0]
        assert latest.action_type == "Rejected"
        assert latest.old_status == "Pending"
        assert latest.new_status == "Rejected"
        assert latest.remarks == "Missing customs form"


# =============================================================================
# ATOMICITY / CONCURRENCY
# =============================================================================


class TestConcurrency:

    def test_stale_version_is_refused(self, requester, approver):
        doc = workflow_service.create_document(
            requester, document_payload(approver_id=approver.id)
        )
        workflow_service.submit_for_approval(requester, doc.id)

        loaded = db.session.get(Document, doc.id)
        assert loaded.status == "Pending"
        # Another writer bumps the row behind the session's back
        db.session.execute(
            text("UPDATE documents SET version_id = version_id + 1 WHERE id = :id"),
            {"id": doc.id},
        )

        with pytest.raises(ConflictError):
            workflow_service.approve(approver, doc.id)

        db.session.expire_all()
        assert db.session.get(Document, doc.id).status == "Pending"
        assert _history_count(doc.id) == 2

    def test_unknown_status_is_refused_by_the_table(self, requester):
        doc = workflow_service.create_document(requester, document_payload())

        with pytest.raises(IntegrityError):
            db.session.execute(
                text("UPDATE documents SET status = 'Archived' WHERE id = :id"),
                {"id": doc.id},
            )
        db.session.rollback()

        assert db.session.get(Document, doc.id).status == "Draft"


# =============================================================================
# EDITING
# =============================================================================


class TestEditing:

    def test_creator_edits_draft_and_history_records_it(self, requester):
        doc = workflow_service.create_document(requester, document_payload())
        doc = document_service.update_document(requester, doc.id, {"supplier_name": "XYZ Trading"})
        assert doc.supplier_name == "XYZ Trading"
        latest = history_service.list_history(doc.id)[0]
        assert latest.action_type == "Updated"
        assert "supplier_name" in latest.remarks

    def test_creator_cannot_edit_after_submit(self, requester):
        doc = workflow_service.create_document(requester, document_payload())
        workflow_service.submit_for_approval(requester, doc.id)
        with pytest.raises(AuthorizationError):
            document_service.update_document(requester, doc.id, {"remarks": "late"})

    def test_admin_edits_any_status(self, requester, admin):
        doc = workflow_service.create_document(requester, document_payload())
        workflow_service.submit_for_approval(requester, doc.id)
        doc = document_service.update_document(admin, doc.id, {"priority": "Urgent"})
        assert doc.priority == "Urgent"
        assert doc.status == "Pending"

    def test_document_number_is_immutable(self, requester):
        doc = workflow_service.create_document(requester, document_payload())
        with pytest.raises(ValidationError):
            document_service.update_document(requester, doc.id, {"document_number": "PO-X"})

    def test_status_cannot_be_patched(self, requester):
        doc = workflow_service.create_document(requester, document_payload())
        with pytest.raises(ValidationError):
            document_service.update_document(requester, doc.id, {"status": "Approved"})

    def test_only_admin_deletes(self, requester, admin):
        doc = workflow_service.create_document(requester, document_payload())
        with pytest.raises(AuthorizationError):
            document_service.delete_document(requester, doc.id)

        document_service.delete_document(admin, doc.id)
        assert db.session.get(Document, doc.id) is None
        assert _history_count(doc.id) == 0


# =============================================================================
# END-TO-END OVER HTTP
# =============================================================================


class TestPurchaseOrderScenario:

    def test_purchase_order_approval(self, client, requester, approver):
        requester_headers = auth_headers(requester)
        approver_headers = auth_headers(approver)

        resp = client.post(
            "/api/documents",
            json=document_payload(approver_id=approver.id),
            headers=requester_headers,
        )
        assert resp.status_code == 201, resp.json
        doc = resp.json["document"]
        assert doc["status"] == "Draft"
        assert doc["creator_name"] == "Rita Requester"
        assert doc["approver_name"] == "Alex Approver"
        assert Decimal(doc["document_value"]) == Decimal("15000")

        resp = client.post(f"/api/documents/{doc['id']}/submit", headers=requester_headers)
        assert resp.status_code == 200
        assert resp.json["document"]["status"] == "Pending"

        resp = client.post(
            f"/api/documents/{doc['id']}/approve",
            json={"remarks": "Approved for Q1 import"},
            headers=approver_headers,
        )
        assert resp.status_code == 200
        assert resp.json["document"]["status"] == "Approved"

        resp = client.get(f"/api/documents/{doc['id']}/history", headers=requester_headers)
        assert resp.status_code == 200
        actions = [h["action_type"] for h in resp.json["items"]]
        assert actions == ["Approved", "Submitted", "Created"]
        assert resp.json["items"][0]["performed_by_name"] == "Alex Approver"

    def test_purchase_order_rejection(self, client, requester, approver):
        requester_headers = auth_headers(requester)

        resp = client.post(
            "/api/documents",
            json=document_payload(document_value="1000", approver_id=approver.id),
            headers=requester_headers,
        )
        assert resp.status_code == 201, resp.json
        doc_id = resp.json["document"]["id"]
        assert Decimal(resp.json["document"]["document_value"]) == Decimal("1000")

        assert client.post(f"/api/documents/{doc_id}/submit", headers=requester_headers).status_code == 200

        resp = client.post(
            f"/api/documents/{doc_id}/reject",
            json={"reason": "Missing invoice"},
            headers=auth_headers(approver),
        )
        assert resp.status_code == 200
        assert resp.json["document"]["status"] == "Rejected"
        assert resp.json["document"]["rejection_reason"] == "Missing invoice"

        resp = client.get(f"/api/documents/{doc_id}/history", headers=requester_headers)
        assert resp.json["count"] == 3
        items = resp.json["items"]
        assert [h["action_type"] for h in items] == ["Rejected", "Submitted", "Created"]
        assert items[0]["old_status"] == "Pending"
        assert items[0]["new_status"] == "Rejected"
        assert items[0]["remarks"] == "Missing invoice"

    def test_rejection_without_reason_is_400(self, client, requester, approver):
        resp = client.post(
            "/api/documents",
            json=document_payload(approver_id=approver.id),
            headers=auth_headers(requester),
        )
        doc_id = resp.json["document"]["id"]
        client.post(f"/api/documents/{doc_id}/submit", headers=auth_headers(requester))

        resp = client.post(
            f"/api/documents/{doc_id}/reject", json={"reason": "   "}, headers=auth_headers(approver)
        )
        assert resp.status_code == 400

        resp = client.get(f"/api/documents/{doc_id}", headers=auth_headers(requester))
        assert resp.json["document"]["status"] == "Pending"
        assert len(resp.json["document"]["history"]) == 2

    def test_illegal_transition_is_409(self, client, requester, approver):
        resp = client.post(
            "/api/documents",
            json=document_payload(approver_id=approver.id),
            headers=auth_headers(requester),
        )
        doc_id = resp.json["document"]["id"]

        resp = client.post(f"/api/documents/{doc_id}/approve", headers=auth_headers(approver))
        assert resp.status_code == 409
        assert "error" in resp.json
