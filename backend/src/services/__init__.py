"""
Services package for shared business logic.

This package contains service classes that encapsulate business logic
shared across multiple API endpoints.
"""

from .principal_service import PrincipalService
from .onboarding_service import OnboardingService
from .permission_service import PermissionService
from .practice_service import PracticeService
from .staff_service import StaffService
from .staff_invitation_service import StaffInvitationService
from .join_request_service import JoinRequestService
from .patient_assignment_service import PatientAssignmentService
from .patient_invitation_service import PatientInvitationService
from .availability_service import AvailabilityService

__all__ = [
    "PrincipalService",
    "OnboardingService",
    "PermissionService",
    "PracticeService",
    "StaffService",
    "StaffInvitationService",
    "JoinRequestService",
    "PatientAssignmentService",
    "PatientInvitationService",
    "AvailabilityService",
]
