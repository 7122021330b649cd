# Overview: Single source of authorization predicates for every resource.

"""
Authorization rules, in one place.

Every service enforces access by calling these predicates, and /api/auth/me
exposes the role-level ones as advisory capabilities for UI gating. Nothing
else in the codebase compares roles or ownership columns directly.

The actor is always a UserProfile passed explicitly by the caller.

RULES:
- Documents are visible to their creator, their assigned approver, Admin and
  Finance. Approvers also see Pending documents nobody has been assigned to.
- The creator edits and submits while Draft. Admin may edit any document.
- Approver/Admin decide Pending documents. An Approver may decide only
  documents assigned to them or not yet assigned.
- Files follow document visibility; upload requires being the document's
  creator (or Admin); delete requires being the uploader.
- Admin/Finance manage products and balances; Admin manages categories and
  warehouses; Admin/Finance/Approver record stock movements.
- Profiles are readable by any signed-in user and writable only by their owner.
"""

from __future__ import annotations

from .models import Document, DocumentFile, UserProfile
from .models.documents import STATUS_DRAFT, STATUS_PENDING


ROLE_REQUESTER = "Requester"
ROLE_APPROVER = "Approver"
ROLE_FINANCE = "Finance"
ROLE_ADMIN = "Admin"

DECISION_ROLES = (ROLE_APPROVER, ROLE_ADMIN)
OVERSIGHT_ROLES = (ROLE_ADMIN, ROLE_FINANCE)
PRODUCT_MANAGER_ROLES = (ROLE_ADMIN, ROLE_FINANCE)
BALANCE_MANAGER_ROLES = (ROLE_ADMIN, ROLE_FINANCE)
MOVEMENT_ROLES = (ROLE_ADMIN, ROLE_FINANCE, ROLE_APPROVER)
MASTER_DATA_ROLES = (ROLE_ADMIN,)


class AuthorizationError(Exception):
    """Raised when the actor may not perform the requested action (HTTP 403)."""


def require(allowed: bool, message: str) -> None:
    if not allowed:
        raise AuthorizationError(message)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def can_view_document(actor: UserProfile, document: Document) -> bool:
    if actor.has_role(*OVERSIGHT_ROLES):
        return True
    if document.created_by == actor.id or document.approver_id == actor.id:
        return True
    return (
        actor.has_role(ROLE_APPROVER)
        and document.status == STATUS_PENDING
        and document.approver_id is None
    )


def can_create_document(actor: UserProfile) -> bool:
    # Any signed-in profile may raise a document; created_by is forced to the actor.
    return actor is not None


def can_edit_document(actor: UserProfile, document: Document) -> bool:
    if actor.has_role(ROLE_ADMIN):
        return True
    return document.created_by == actor.id and document.status == STATUS_DRAFT


def can_submit_document(actor: UserProfile, document: Document) -> bool:
    return document.created_by == actor.id and document.status == STATUS_DRAFT


def can_decide_document(actor: UserProfile, document: Document) -> bool:
    """Approve or reject. Status is checked separately by the workflow engine."""
    if actor.has_role(ROLE_ADMIN):
        return True
    if not actor.has_role(ROLE_APPROVER):
        return False
    return document.approver_id is None or document.approver_id == actor.id


def can_delete_document(actor: UserProfile, document: Document) -> bool:
    return actor.has_role(ROLE_ADMIN)


def can_be_assigned_approver(profile: UserProfile) -> bool:
    return profile.has_role(*DECISION_ROLES)


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------

def can_view_files(actor: UserProfile, document: Document) -> bool:
    return can_view_document(actor, document)


def can_upload_file(actor: UserProfile, document: Document) -> bool:
    return document.created_by == actor.id or actor.has_role(ROLE_ADMIN)


def can_delete_file(actor: UserProfile, document_file: DocumentFile) -> bool:
    return document_file.uploaded_by == actor.id


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------

def can_manage_products(actor: UserProfile) -> bool:
    return actor.has_role(*PRODUCT_MANAGER_ROLES)


def can_manage_categories(actor: UserProfile) -> bool:
    return actor.has_role(*MASTER_DATA_ROLES)


def can_manage_warehouses(actor: UserProfile) -> bool:
    return actor.has_role(*MASTER_DATA_ROLES)


def can_record_movement(actor: UserProfile) -> bool:
    return actor.has_role(*MOVEMENT_ROLES)


def can_manage_balances(actor: UserProfile) -> bool:
    return actor.has_role(*BALANCE_MANAGER_ROLES)


def can_repair_balances(actor: UserProfile) -> bool:
    return actor.has_role(ROLE_ADMIN)


# ---------------------------------------------------------------------------
# Profiles
# ---------------------------------------------------------------------------

def can_update_profile(actor: UserProfile, profile: UserProfile) -> bool:
    return actor.id == profile.id


def capabilities(actor: UserProfile) -> dict:
    """Role-level capabilities for UI gating (advisory; services re-check)."""
    return {
        "create_documents": can_create_document(actor),
        "decide_documents": actor.has_role(*DECISION_ROLES),
        "view_all_documents": actor.has_role(*OVERSIGHT_ROLES),
        "delete_documents": actor.has_role(ROLE_ADMIN),
        "manage_products": can_manage_products(actor),
        "manage_categories": can_manage_categories(actor),
        "manage_warehouses": can_manage_warehouses(actor),
        "record_movements": can_record_movement(actor),
        "manage_balances": can_manage_balances(actor),
        "repair_balances": can_repair_balances(actor),
    }
