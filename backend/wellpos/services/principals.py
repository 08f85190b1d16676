"""
Principal roles and the authenticated request context.

WHY a tagged variant: "branch required unless super-admin" is a property of
the role itself, so it is carried by the type rather than checked by hand at
each call site. A ScopedStaff cannot be built without a branch id.

    SeniorAdmin                 super-admin, no branch binding
    ScopedStaff(branch_id, role) admin / manager / operator at one branch
    CustomerPrincipal(branch_id) customer who logged in with a QR code
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..errors import ValidationError
from ..models import EMPLOYEE_ROLES, SUPER_ADMIN, PRINCIPAL_EMPLOYEE, PRINCIPAL_CUSTOMER


@dataclass(frozen=True)
class SeniorAdmin:
    role: str = SUPER_ADMIN
    branch_id: None = None


@dataclass(frozen=True)
class ScopedStaff:
    branch_id: int
    role: str

    def __post_init__(self):
        if self.role not in EMPLOYEE_ROLES or self.role == SUPER_ADMIN:
            raise ValidationError(f"Invalid staff role: {self.role}")
        if self.branch_id is None:
            raise ValidationError("Branch is required for this role")


@dataclass(frozen=True)
class CustomerPrincipal:
    branch_id: int
    role: None = None


PrincipalRole = Union[SeniorAdmin, ScopedStaff, CustomerPrincipal]


def staff_role(role: str, branch_id: int | None) -> PrincipalRole:
    """Build the staff variant for a (role, branch) pair; raises ValidationError."""
    if role == SUPER_ADMIN:
        return SeniorAdmin()
    if role not in EMPLOYEE_ROLES:
        raise ValidationError(f"Invalid role. Must be one of: {', '.join(EMPLOYEE_ROLES)}")
    if branch_id is None:
        raise ValidationError("Branch ID is required for non-super-admin employees")
    return ScopedStaff(branch_id=branch_id, role=role)


@dataclass
class PrincipalContext:
    """
    What validate_bearer hands to the request.

    Built from the signed access token; the session id is what makes it
    revocable.
    """
    principal_id: int
    principal_kind: str
    principal: PrincipalRole
    session_id: str
    email: str | None = None

    @property
    def is_employee(self) -> bool:
        return self.principal_kind == PRINCIPAL_EMPLOYEE

    @property
    def is_customer(self) -> bool:
        return self.principal_kind == PRINCIPAL_CUSTOMER

    @property
    def is_super_admin(self) -> bool:
        return isinstance(self.principal, SeniorAdmin)

    @property
    def role(self) -> str | None:
        return self.principal.role

    @property
    def branch_id(self) -> int | None:
        return self.principal.branch_id

    def to_dict(self) -> dict:
        return {
            "id": self.principal_id,
            "kind": self.principal_kind,
            "role": self.role,
            "branch_id": self.branch_id,
            "email": self.email,
            "session_id": self.session_id,
        }


def principal_from_claims(kind: str, role: str | None, branch_id: int | None) -> PrincipalRole:
    if kind == PRINCIPAL_CUSTOMER:
        if branch_id is None:
            raise ValidationError("Customer principal requires a branch")
        return CustomerPrincipal(branch_id=branch_id)
    return staff_role(role, branch_id)
