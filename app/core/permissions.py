"""Role-based access control for clinic staff."""

from enum import Enum


class StaffRole(str, Enum):
    """Staff role enumeration."""

    SUPER_ADMIN = "super_admin"
    CLINIC_ADMIN = "clinic_admin"
    OFFICE_MANAGER = "office_manager"
    DENTIST = "dentist"
    SPECIALIST_DENTIST = "specialist_dentist"
    DENTAL_ASSISTANT = "dental_assistant"
    RECEPTIONIST = "receptionist"


class Resource(str, Enum):
    """Protected resource types."""

    PATIENTS = "patients"
    PATIENT_RECORDS = "patient_records"
    PATIENT_BILLING = "patient_billing"
    APPOINTMENTS = "appointments"
    SCHEDULE = "schedule"
    TREATMENTS = "treatments"
    TREATMENT_PLANS = "treatment_plans"
    PRESCRIPTIONS = "prescriptions"
    INVOICES = "invoices"
    PAYMENTS = "payments"
    FINANCIAL_REPORTS = "financial_reports"
    INVENTORY = "inventory"
    SUPPLIES = "supplies"
    STAFF = "staff"
    STAFF_SCHEDULES = "staff_schedules"
    CLINIC_SETTINGS = "clinic_settings"
    USER_MANAGEMENT = "user_management"
    SYSTEM_LOGS = "system_logs"
    REPORTS = "reports"
    ANALYTICS = "analytics"


class PermissionAction(str, Enum):
    """Actions on a resource. MANAGE grants every other action."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    MANAGE = "manage"


R = Resource
A = PermissionAction

_DENTIST_GRANTS: list[tuple[Resource, PermissionAction]] = [
    (R.PATIENTS, A.READ),
    (R.PATIENT_RECORDS, A.MANAGE),
    (R.TREATMENTS, A.MANAGE),
    (R.TREATMENT_PLANS, A.MANAGE),
    (R.PRESCRIPTIONS, A.MANAGE),
    (R.APPOINTMENTS, A.READ),
    (R.SCHEDULE, A.READ),
    (R.REPORTS, A.READ),
]

ROLE_PERMISSIONS: dict[StaffRole, list[tuple[Resource, PermissionAction]]] = {
    StaffRole.SUPER_ADMIN: [],  # unrestricted
    StaffRole.CLINIC_ADMIN: [
        (R.PATIENTS, A.MANAGE),
        (R.PATIENT_RECORDS, A.MANAGE),
        (R.PATIENT_BILLING, A.MANAGE),
        (R.APPOINTMENTS, A.MANAGE),
        (R.SCHEDULE, A.MANAGE),
        (R.STAFF, A.MANAGE),
        (R.STAFF_SCHEDULES, A.MANAGE),
        (R.INVOICES, A.MANAGE),
        (R.PAYMENTS, A.MANAGE),
        (R.FINANCIAL_REPORTS, A.READ),
        (R.INVENTORY, A.MANAGE),
        (R.CLINIC_SETTINGS, A.MANAGE),
        (R.REPORTS, A.READ),
    ],
    StaffRole.OFFICE_MANAGER: [
        (R.PATIENTS, A.MANAGE),
        (R.PATIENT_RECORDS, A.READ),
        (R.PATIENT_BILLING, A.MANAGE),
        (R.APPOINTMENTS, A.MANAGE),
        (R.SCHEDULE, A.MANAGE),
        (R.INVOICES, A.MANAGE),
        (R.PAYMENTS, A.MANAGE),
        (R.FINANCIAL_REPORTS, A.READ),
        (R.INVENTORY, A.MANAGE),
        (R.STAFF_SCHEDULES, A.READ),
        (R.REPORTS, A.READ),
    ],
    StaffRole.DENTIST: _DENTIST_GRANTS,
    StaffRole.SPECIALIST_DENTIST: _DENTIST_GRANTS,
    StaffRole.DENTAL_ASSISTANT: [
        (R.PATIENTS, A.READ),
        (R.PATIENT_RECORDS, A.UPDATE),
        (R.APPOINTMENTS, A.READ),
        (R.SCHEDULE, A.READ),
        (R.INVENTORY, A.UPDATE),
        (R.SUPPLIES, A.READ),
    ],
    StaffRole.RECEPTIONIST: [
        (R.PATIENTS, A.MANAGE),
        (R.PATIENT_RECORDS, A.READ),
        (R.APPOINTMENTS, A.MANAGE),
        (R.SCHEDULE, A.READ),
        (R.PATIENT_BILLING, A.MANAGE),
        (R.INVOICES, A.CREATE),
        (R.PAYMENTS, A.CREATE),
    ],
}


def has_permission(
    role: StaffRole | str,
    resource: Resource | str,
    action: PermissionAction | str,
) -> bool:
    """
    Check whether a role may perform an action on a resource.

    Args:
        role: Staff role
        resource: Resource being accessed
        action: Requested action

    Returns:
        True if any grant for the role covers the request
    """
    try:
        role = StaffRole(role)
    except ValueError:
        return False

    if role is StaffRole.SUPER_ADMIN:
        return True

    resource = Resource(resource)
    action = PermissionAction(action)
    return any(
        granted_resource is resource and granted_action in (action, A.MANAGE)
        for granted_resource, granted_action in ROLE_PERMISSIONS[role]
    )


def permissions_for_role(role: StaffRole | str) -> frozenset[str]:
    """Flatten a role's grants into ``"resource:action"`` strings."""
    role = StaffRole(role)
    if role is StaffRole.SUPER_ADMIN:
        return frozenset({"*:manage"})
    return frozenset(f"{res.value}:{act.value}" for res, act in ROLE_PERMISSIONS[role])
