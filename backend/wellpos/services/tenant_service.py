"""
Multi-Tenant Service: Scope Resolution Helpers

WHY: Centralize tenant scoping for reuse across services and routes. Every
resource lives in a branch, every branch in a company, and a caller may
only touch the branches their principal covers.

SCOPE RULES:
1. SeniorAdmin (super-admin) covers every branch, or only the branches of
   DEFAULT_COMPANY_ID when a deployment pins one.
2. ScopedStaff covers exactly its own branch.
3. A branch outside the caller's scope is reported as NotFound, never as
   Forbidden, so its existence is not revealed.

USAGE:
    from wellpos.services.tenant_service import require_branch_in_scope

    branch = require_branch_in_scope(g.principal, payload["branch_id"])
"""

from __future__ import annotations

import logging

from flask import current_app

from ..errors import NotFoundError, ForbiddenError, ValidationError
from ..extensions import db
from ..models import Branch
from .principals import PrincipalContext, SeniorAdmin

logger = logging.getLogger(__name__)

MUTATING_ADMIN_ROLES = ("super-admin", "admin")


def default_company_id() -> int | None:
    """Configured single-tenant default, or None when scope comes from context."""
    return current_app.config.get("DEFAULT_COMPANY_ID")


def require_employee(context: PrincipalContext) -> None:
    if not context.is_employee:
        raise ForbiddenError("Staff access required")


def require_roles(context: PrincipalContext, *roles: str) -> None:
    """Raise ForbiddenError unless the caller holds one of the roles."""
    require_employee(context)
    if context.role not in roles:
        raise ForbiddenError(f"Requires role: {', '.join(roles)}")


def visible_branch_ids(context: PrincipalContext) -> list[int] | None:
    """
    Branch ids the caller may see. None means "no restriction".

    MULTI-TENANT: list queries filter by this; never by a client-supplied id
    alone.
    """
    if isinstance(context.principal, SeniorAdmin):
        company_id = default_company_id()
        if company_id is None:
            return None
        return [
            branch_id
            for (branch_id,) in db.session.query(Branch.id).filter(Branch.company_id == company_id).all()
        ]
    return [context.branch_id]


def visible_company_id(context: PrincipalContext) -> int | None:
    """Company the caller is bound to, or None for an unrestricted super-admin."""
    if isinstance(context.principal, SeniorAdmin):
        return default_company_id()
    branch = db.session.get(Branch, context.branch_id)
    return branch.company_id if branch else None


def require_branch_in_scope(context: PrincipalContext, branch_id: int | None) -> Branch:
    """
    Load a branch the caller may act on.

    Raises NotFoundError if the branch does not exist or is out of scope.
    """
    if branch_id is None:
        raise ValidationError("branch_id is required")

    branch = db.session.get(Branch, branch_id)
    if not branch:
        raise NotFoundError("Branch not found")

    allowed = visible_branch_ids(context)
    if allowed is not None and branch.id not in allowed:
        logger.warning(
            "[TENANT] principal %s:%s denied branch %s",
            context.principal_kind, context.principal_id, branch_id,
        )
        raise NotFoundError("Branch not found")

    return branch


def resolve_branch_id(context: PrincipalContext, requested: int | None) -> int:
    """
    Branch a write should land in.

    Scoped staff default to (and are limited to) their own branch; a
    super-admin must name one.
    """
    if requested is None:
        if isinstance(context.principal, SeniorAdmin):
            raise ValidationError("branch_id is required")
        return context.branch_id
    return require_branch_in_scope(context, requested).id


def require_in_scope(context: PrincipalContext, entity, label: str):
    """
    Check a loaded row's branch against the caller's scope.

    Rows without a branch (company-wide products) are checked by company.
    """
    if entity is None:
        raise NotFoundError(f"{label} not found")

    branch_id = getattr(entity, "branch_id", None)
    if branch_id is not None:
        allowed = visible_branch_ids(context)
        if allowed is not None and branch_id not in allowed:
            raise NotFoundError(f"{label} not found")
        return entity

    company_id = getattr(entity, "company_id", None)
    scope_company = visible_company_id(context)
    if scope_company is not None and company_id is not None and company_id != scope_company:
        raise NotFoundError(f"{label} not found")
    return entity
