"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite)
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Principal roles (fixed for the lifetime of a principal)
ROLE_PATIENT = "patient"
ROLE_DOCTOR = "doctor"
ROLE_ADMIN = "admin"
PRINCIPAL_ROLES = (ROLE_PATIENT, ROLE_DOCTOR, ROLE_ADMIN)

# Staff roles within one practice
STAFF_ROLE_ADMIN = "admin"
STAFF_ROLE_DOCTOR = "doctor"
STAFF_ROLE_NURSE = "nurse"
STAFF_ROLE_RECEPTIONIST = "receptionist"
STAFF_ROLES = (STAFF_ROLE_ADMIN, STAFF_ROLE_DOCTOR, STAFF_ROLE_NURSE, STAFF_ROLE_RECEPTIONIST)

# Permissions
PERMISSION_VIEW_PATIENTS = "view_patients"
PERMISSION_MANAGE_PATIENTS = "manage_patients"
PERMISSION_MANAGE_STAFF = "manage_staff"
PERMISSION_SCHEDULE_APPOINTMENTS = "schedule_appointments"
PERMISSION_MANAGE_PRACTICE = "manage_practice"

# Order matters for display; also the set granted to practice owners
FULL_PERMISSION_SET = [
    PERMISSION_VIEW_PATIENTS,
    PERMISSION_MANAGE_PATIENTS,
    PERMISSION_MANAGE_STAFF,
    PERMISSION_SCHEDULE_APPOINTMENTS,
    PERMISSION_MANAGE_PRACTICE,
]

# Applied when a staff member is added without an explicit permission set
DEFAULT_ROLE_PERMISSIONS = {
    STAFF_ROLE_ADMIN: list(FULL_PERMISSION_SET),
    STAFF_ROLE_DOCTOR: [PERMISSION_VIEW_PATIENTS, PERMISSION_MANAGE_PATIENTS, PERMISSION_SCHEDULE_APPOINTMENTS],
    STAFF_ROLE_NURSE: [PERMISSION_VIEW_PATIENTS, PERMISSION_SCHEDULE_APPOINTMENTS],
    STAFF_ROLE_RECEPTIONIST: [PERMISSION_SCHEDULE_APPOINTMENTS],
}

# Owner membership department (matches what the onboarding screen used to write)
OWNER_DEPARTMENT = "Administration"

# Statuses
STATUS_ACTIVE = "active"
STATUS_INACTIVE = "inactive"

REQUEST_STATUS_PENDING = "pending"
REQUEST_STATUS_ACCEPTED = "accepted"
REQUEST_STATUS_REJECTED = "rejected"
REQUEST_STATUS_CANCELLED = "cancelled"

JOIN_REQUEST_STATUS_PENDING = "pending"
JOIN_REQUEST_STATUS_APPROVED = "approved"
JOIN_REQUEST_STATUS_REJECTED = "rejected"

INVITATION_STATUS_PENDING = "pending"
INVITATION_STATUS_ACCEPTED = "accepted"
INVITATION_STATUS_REVOKED = "revoked"

# Doctor availability
AVAILABILITY_ACTIVE = "active"
AVAILABILITY_AWAY = "away"
AVAILABILITY_STATUSES = (AVAILABILITY_ACTIVE, AVAILABILITY_AWAY)

# Patient record provenance
PATIENT_CREATED_BY_SELF = "self"
PATIENT_CREATED_BY_STAFF = "staff"

# Practice search
PRACTICE_SEARCH_LIMIT = 10
