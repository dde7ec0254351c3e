"""
Manual reconciliation script for the patient assignment workflow.

Repairs accepted physician-patient requests whose assignment never landed
and lists practices left without an active admin. Patient reads already
repair their own requests; this script is for:
- Sweeping every patient after an incident
- One-time maintenance tasks
"""
import sys
import os

# Add the parent directory to sys.path to allow imports from src
sys.path.append(os.path.join(os.path.dirname(__file__), '../src'))

from core.database import get_db_context
from services.patient_assignment_service import PatientAssignmentService
from services.practice_service import PracticeService


def main():
    print("Starting Reconciliation Job...")
    try:
        with get_db_context() as db:
            # 1. Accepted requests without an assignment
            print("Repairing accepted patient requests...")
            healed = PatientAssignmentService.reconcile_accepted_requests(db)
            print(f"Repaired {len(healed)} patient assignment(s).")

            # 2. Practices without an admin (reported only; an operator picks the new admin)
            print("Checking for practices without an active admin...")
            orphans = PracticeService.find_practices_without_admin(db)
            for practice in orphans:
                print(f"  Practice {practice.id} ({practice.name}) has no active admin")
            print(f"Found {len(orphans)} practice(s) without an admin.")

        print("Reconciliation Job Completed Successfully.")
    except Exception as e:
        print(f"Error during reconciliation: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
