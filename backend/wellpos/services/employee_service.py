# Overview: Service-layer operations for employees; creation, edits, password and status changes.

"""
Employee Service

RULES:
- Username and email are unique system-wide.
- Role and branch are validated together through principals.staff_role():
  every role except super-admin needs a branch.
- Only a super-admin may create or promote another super-admin.
- Admins manage employees of their own branch only.
- Disabling an employee ends all of their sessions at once.
- An employee cannot delete their own account, nor one that has orders.

SECURITY: password hashes and PINs appear in audit snapshots only as the
redaction sentinel.
"""

from __future__ import annotations

from ..errors import ConflictError, ForbiddenError, NotFoundError, UnauthorizedError
from ..extensions import db
from ..models import Employee, Order, LoginSession, EMPLOYEE_ROLES, SUPER_ADMIN, PRINCIPAL_EMPLOYEE
from ..validation import ModelValidationPolicy, validate_payload, enforce_email, enforce_pin
from . import audit_service, tenant_service, session_service
from .auth_service import hash_password, verify_password, validate_password_strength
from .principals import PrincipalContext, SeniorAdmin, staff_role


EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={
        "branch_id", "username", "email", "firstname", "lastname",
        "personal_pin", "role", "enabled", "language",
    },
    required_on_create={"username", "email", "firstname", "lastname", "personal_pin", "role"},
    choices={"role": EMPLOYEE_ROLES},
    extra_fields={"password"},
)


def _require_unique(username: str | None, email: str | None, exclude_id: int | None = None) -> None:
    if username is not None:
        query = db.session.query(Employee.id).filter(Employee.username == username)
        if exclude_id is not None:
            query = query.filter(Employee.id != exclude_id)
        if query.first():
            raise ConflictError("Employee with this username already exists")
    if email is not None:
        query = db.session.query(Employee.id).filter(Employee.email == email)
        if exclude_id is not None:
            query = query.filter(Employee.id != exclude_id)
        if query.first():
            raise ConflictError("Employee with this email already exists")


def _check_role_grant(context: PrincipalContext, role: str) -> None:
    if role == SUPER_ADMIN and not isinstance(context.principal, SeniorAdmin):
        raise ForbiddenError("Only a super-admin may grant the super-admin role")


def _audit(action: str, employee_values: dict, context: PrincipalContext, old_values=None, new_values=None) -> None:
    audit_service.record(
        action,
        "Employee",
        employee_values["id"],
        employee_id=context.principal_id,
        branch_id=employee_values.get("branch_id"),
        old_values=old_values,
        new_values=new_values,
    )


def list_employees(context: PrincipalContext, branch_id: int | None = None) -> list[Employee]:
    query = db.session.query(Employee)
    allowed = tenant_service.visible_branch_ids(context)
    if allowed is not None:
        query = query.filter(Employee.branch_id.in_(allowed))
    if branch_id is not None:
        query = query.filter(Employee.branch_id == branch_id)
    return query.order_by(Employee.lastname.asc(), Employee.firstname.asc()).all()


def get_employee(employee_id: int, context: PrincipalContext) -> Employee:
    employee = db.session.get(Employee, employee_id)
    if not employee:
        raise NotFoundError("Employee not found")
    if employee.id == context.principal_id and context.is_employee:
        return employee
    if employee.branch_id is None:
        # Unscoped super-admin rows are visible to super-admins only
        if not isinstance(context.principal, SeniorAdmin):
            raise NotFoundError("Employee not found")
        return employee
    return tenant_service.require_in_scope(context, employee, "Employee")


def create_employee(payload: dict, context: PrincipalContext) -> Employee:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)

    patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=False)
    enforce_email(patch)
    enforce_pin(patch)

    password = patch.pop("password", None)
    validate_password_strength(password)

    branch_id = patch.get("branch_id")
    if branch_id is None and patch["role"] != SUPER_ADMIN and not isinstance(context.principal, SeniorAdmin):
        # Scoped admins hire into their own branch by default
        branch_id = context.branch_id

    principal = staff_role(patch["role"], branch_id)
    _check_role_grant(context, principal.role)
    if principal.branch_id is not None:
        tenant_service.require_branch_in_scope(context, principal.branch_id)
    patch["branch_id"] = principal.branch_id

    _require_unique(patch["username"], patch["email"])

    employee = Employee(password_hash=hash_password(password), **patch)
    db.session.add(employee)
    db.session.commit()

    values = audit_service.snapshot(employee)
    _audit("CREATE", values, context, new_values=values)
    return employee


def update_employee(employee_id: int, payload: dict, context: PrincipalContext) -> Employee:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    employee = get_employee(employee_id, context)

    patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=True)
    if "password" in patch:
        raise ConflictError("Use change-password to update a password")
    enforce_email(patch)
    enforce_pin(patch)

    role = patch.get("role", employee.role)
    branch_id = patch["branch_id"] if "branch_id" in patch else employee.branch_id
    principal = staff_role(role, branch_id)
    if "role" in patch:
        _check_role_grant(context, principal.role)
    if principal.branch_id is not None and principal.branch_id != employee.branch_id:
        tenant_service.require_branch_in_scope(context, principal.branch_id)
    if "role" in patch or "branch_id" in patch:
        patch["branch_id"] = principal.branch_id

    _require_unique(
        patch.get("username") if patch.get("username") != employee.username else None,
        patch.get("email") if patch.get("email") != employee.email else None,
        exclude_id=employee.id,
    )

    old_values = audit_service.snapshot(employee)
    for key, value in patch.items():
        setattr(employee, key, value)
    db.session.commit()

    new_values = audit_service.snapshot(employee)
    _audit("UPDATE", new_values, context, old_values=old_values, new_values=new_values)
    return employee


def change_password(employee_id: int, current_password: str, new_password: str, context: PrincipalContext) -> None:
    """
    Replace a password after verifying the current one.

    Employees change their own password; admins may do it for staff in scope
    but still need the current password.
    """
    if context.principal_id != employee_id or not context.is_employee:
        tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    employee = get_employee(employee_id, context)

    if not verify_password(current_password, employee.password_hash):
        raise UnauthorizedError("Current password is incorrect")
    validate_password_strength(new_password)

    old_values = audit_service.snapshot(employee)
    employee.password_hash = hash_password(new_password)
    db.session.commit()

    new_values = audit_service.snapshot(employee)
    _audit("CHANGE_PASSWORD", new_values, context, old_values=old_values, new_values=new_values)


def toggle_status(employee_id: int, context: PrincipalContext) -> Employee:
    """Flip enabled; disabling revokes every live session of the employee."""
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    employee = get_employee(employee_id, context)
    if employee.id == context.principal_id:
        raise ConflictError("Cannot disable your own account")

    old_values = audit_service.snapshot(employee)
    employee.enabled = not employee.enabled
    db.session.commit()

    if not employee.enabled:
        session_service.revoke_all(PRINCIPAL_EMPLOYEE, employee.id, "disabled")

    new_values = audit_service.snapshot(employee)
    _audit("ENABLE" if employee.enabled else "DISABLE", new_values, context,
           old_values=old_values, new_values=new_values)
    return employee


def delete_employee(employee_id: int, context: PrincipalContext) -> None:
    tenant_service.require_roles(context, *tenant_service.MUTATING_ADMIN_ROLES)
    employee = get_employee(employee_id, context)

    if employee.id == context.principal_id:
        raise ConflictError("Cannot delete your own account")
    if db.session.query(Order.id).filter_by(employee_id=employee.id).first():
        raise ConflictError("Cannot delete employee with existing orders; disable the account instead")

    session_service.revoke_all(PRINCIPAL_EMPLOYEE, employee.id, "deleted")
    db.session.query(LoginSession).filter_by(employee_id=employee.id).delete(synchronize_session=False)

    old_values = audit_service.snapshot(employee)
    db.session.delete(employee)
    db.session.commit()

    _audit("DELETE", old_values, context, old_values=old_values)
