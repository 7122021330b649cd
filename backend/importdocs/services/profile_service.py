# Overview: Service-layer operations for user profiles; encapsulates business logic and database work.

from __future__ import annotations

from ..extensions import db
from ..models import UserProfile
from ..models.auth import DEPARTMENTS, ROLES
from .. import authorization
from ..validation import ModelValidationPolicy, NotFoundError, ValidationError, validate_payload


# role is not self-service; it changes through `flask users set-role`
SELF_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "department", "avatar_url"},
    choices={"department": set(DEPARTMENTS)},
)


def get_profile(profile_id: int) -> UserProfile:
    profile = db.session.query(UserProfile).filter_by(id=profile_id).first()
    if not profile:
        raise NotFoundError("Profile not found")
    return profile


def list_profiles(role: str | None = None) -> list[UserProfile]:
    query = db.session.query(UserProfile)
    if role:
        if role not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
        query = query.filter(UserProfile.role == role)
    return query.order_by(UserProfile.full_name.asc(), UserProfile.id.asc()).all()


def update_profile(actor: UserProfile, profile_id: int, payload: dict) -> UserProfile:
    profile = get_profile(profile_id)
    authorization.require(
        authorization.can_update_profile(actor, profile), "You can only update your own profile"
    )
    patch = validate_payload(
        model=UserProfile, payload=payload, policy=SELF_UPDATE_POLICY, partial=True
    )
    for key, value in patch.items():
        setattr(profile, key, value)
    db.session.commit()
    return profile
