# Package initialization
# Import all models to ensure relationships are properly established
from .principal import Principal
from .doctor_record import DoctorRecord
from .patient_record import PatientRecord
from .practice import Practice
from .staff_membership import StaffMembership
from .physician_patient_request import PhysicianPatientRequest
from .patient_assignment import PatientAssignment
from .staff_invitation import StaffInvitation
from .practice_join_request import PracticeJoinRequest
from .patient_invitation import PatientInvitation

__all__ = [
    "Principal",
    "DoctorRecord",
    "PatientRecord",
    "Practice",
    "StaffMembership",
    "PhysicianPatientRequest",
    "PatientAssignment",
    "StaffInvitation",
    "PracticeJoinRequest",
    "PatientInvitation",
]
