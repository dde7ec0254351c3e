"""
End-to-end workflows through the HTTP API.

A doctor signs up and creates a practice, staffs it, and brings in a
patient through a physician-patient request.
"""

import pytest

from tests.conftest import auth_headers, create_practice_with_owner, create_principal


OWNER = auth_headers("doc-owner", "owner@example.com")
NURSE = auth_headers("nurse-1", "nurse@example.com")
PATIENT = auth_headers("patient-1", "pat@example.com")


def signup(client, headers, role, **fields):
    response = client.post("/api/signup", json={"role": role, **fields}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def practice_id(client):
    signup(client, OWNER, "doctor", first_name="Olivia", last_name="Owner")
    response = client.post(
        "/api/me/onboarding",
        json={
            "choice": "owner",
            "specialty": "Family Medicine",
            "license_number": "LIC-1",
            "practice_name": "Acme Clinic",
        },
        headers=OWNER,
    )
    assert response.status_code == 200, response.text
    return response.json()["practice"]["id"]


class TestOnboardingFlow:

    def test_owner_onboarding(self, client):
        signup(client, OWNER, "doctor")
        status = client.get("/api/me/onboarding", headers=OWNER).json()
        assert status == {"state": "awaiting_choice", "needs_practice_setup": True}
        assert client.get("/api/me/memberships", headers=OWNER).json() == {"memberships": [], "has_practice": False}

        response = client.post(
            "/api/me/onboarding",
            json={"choice": "owner", "specialty": "GP", "license_number": "L-1", "practice_name": "Acme Clinic"},
            headers=OWNER,
        )

        data = response.json()
        assert data["state"] == "complete"
        assert data["needs_practice_setup"] is False
        assert data["practice"]["name"] == "Acme Clinic"
        memberships = client.get("/api/me/memberships", headers=OWNER).json()
        assert memberships["has_practice"] is True
        assert memberships["memberships"][0]["role"] == "admin"
        assert memberships["memberships"][0]["is_owner"] is True

    def test_onboarding_twice_is_conflict(self, client, practice_id):
        response = client.post(
            "/api/me/onboarding", json={"choice": "owner", "practice_name": "Again"}, headers=OWNER
        )

        assert response.status_code == 409

    def test_patient_cannot_onboard(self, client):
        signup(client, PATIENT, "patient")

        response = client.post("/api/me/onboarding", json={"choice": "owner", "practice_name": "X"}, headers=PATIENT)

        assert response.status_code == 403

    def test_missing_practice_name_is_422(self, client):
        signup(client, OWNER, "doctor")

        response = client.post(
            "/api/me/onboarding",
            json={"choice": "owner", "specialty": "GP", "license_number": "L-1", "practice_name": " "},
            headers=OWNER,
        )

        assert response.status_code == 422


class TestStaffFlow:

    def test_add_change_and_remove_staff(self, client, practice_id):
        signup(client, NURSE, "doctor", first_name="Nina")

        added = client.post(
            f"/api/practices/{practice_id}/staff",
            json={"role": "nurse", "email": "nurse@example.com", "permissions": ["schedule_appointments"]},
            headers=OWNER,
        )
        assert added.status_code == 201, added.text
        staff_id = added.json()["id"]
        assert added.json()["permissions"] == ["schedule_appointments"]

        # The nurse can see the staff list but cannot add anyone
        assert client.get(f"/api/practices/{practice_id}/staff", headers=NURSE).status_code == 200
        denied = client.post(
            f"/api/practices/{practice_id}/staff", json={"role": "receptionist", "email": "owner@example.com"},
            headers=NURSE,
        )
        assert denied.status_code == 403

        duplicate = client.post(
            f"/api/practices/{practice_id}/staff", json={"role": "nurse", "email": "nurse@example.com"}, headers=OWNER
        )
        assert duplicate.status_code == 409

        promoted = client.put(f"/api/staff/{staff_id}/role", json={"role": "admin"}, headers=OWNER)
        assert promoted.json()["permissions"] == [
            "view_patients", "manage_patients", "manage_staff", "schedule_appointments", "manage_practice",
        ]

        removed = client.delete(f"/api/staff/{staff_id}", headers=OWNER)
        assert removed.json()["status"] == "inactive"
        staff = client.get(f"/api/practices/{practice_id}/staff", headers=OWNER).json()["staff"]
        assert [s["email"] for s in staff] == ["owner@example.com"]

    def test_sole_admin_cannot_be_demoted(self, client, practice_id):
        staff = client.get(f"/api/practices/{practice_id}/staff", headers=OWNER).json()["staff"]

        response = client.put(f"/api/staff/{staff[0]['id']}/role", json={"role": "doctor"}, headers=OWNER)

        assert response.status_code == 409

    def test_invitation_flow(self, client, practice_id):
        invite = client.post(
            f"/api/practices/{practice_id}/invitations", json={"email": "nurse@example.com", "role": "nurse"},
            headers=OWNER,
        )
        assert invite.status_code == 201
        token = invite.json()["token"]
        assert invite.json()["accept_url"].endswith(token)

        signup(client, NURSE, "doctor")
        accepted = client.post("/api/invitations/accept", json={"token": token}, headers=NURSE)

        assert accepted.status_code == 200, accepted.text
        assert accepted.json()["role"] == "nurse"
        memberships = client.get("/api/me/memberships", headers=NURSE).json()
        assert memberships["memberships"][0]["practice_name"] == "Acme Clinic"

    def test_join_request_flow(self, client, practice_id):
        signup(client, NURSE, "doctor")
        created = client.post(
            f"/api/practices/{practice_id}/join-requests", json={"requested_role": "doctor"}, headers=NURSE
        )
        assert created.status_code == 201

        pending = client.get(f"/api/practices/{practice_id}/join-requests", headers=OWNER).json()["join_requests"]
        assert [r["principal_id"] for r in pending] == ["nurse-1"]

        reviewed = client.post(
            f"/api/join-requests/{created.json()['id']}/review", json={"approve": True}, headers=OWNER
        )
        assert reviewed.json()["approved"] is True
        assert reviewed.json()["membership"]["role"] == "doctor"


class TestPatientFlow:

    def test_request_accept_flow(self, client, practice_id):
        patient = signup(client, PATIENT, "patient", first_name="Pat", last_name="Lee")
        patient_id = patient["patient_record"]["id"]

        created = client.post(
            f"/api/practices/{practice_id}/patient-requests",
            json={"patient_id": patient_id, "message": "Please join"},
            headers=OWNER,
        )
        assert created.status_code == 201
        request_id = created.json()["id"]

        pending = client.get("/api/me/patient-requests", headers=PATIENT).json()["requests"]
        assert [(r["id"], r["message"]) for r in pending] == [(request_id, "Please join")]

        answered = client.post(f"/api/patient-requests/{request_id}/respond", json={"accept": True}, headers=PATIENT)
        assert answered.status_code == 200
        assert answered.json()["status"] == "accepted"
        assert answered.json()["assignment"]["status"] == "active"

        mine = client.get("/api/me/assignments", headers=PATIENT).json()["assignments"]
        assert [a["practice_name"] for a in mine] == ["Acme Clinic"]
        patients = client.get(f"/api/practices/{practice_id}/patients", headers=OWNER).json()["assignments"]
        assert [p["patient_name"] for p in patients] == ["Pat Lee"]

    def test_direct_add_errors(self, client, practice_id):
        missing = client.post(
            f"/api/practices/{practice_id}/patients", json={"patient_email": "nobody@example.com"}, headers=OWNER
        )
        assert missing.status_code == 404

        signup(client, PATIENT, "patient")
        first = client.post(f"/api/practices/{practice_id}/patients", json={"patient_email": "pat@example.com"}, headers=OWNER)
        second = client.post(f"/api/practices/{practice_id}/patients", json={"patient_email": "pat@example.com"}, headers=OWNER)
        assert first.status_code == 201
        assert second.status_code == 409

        removed = client.delete(f"/api/assignments/{first.json()['id']}", headers=OWNER)
        assert removed.json()["status"] == "inactive"

    def test_placeholder_patient(self, client, practice_id):
        response = client.post(
            f"/api/practices/{practice_id}/patients/placeholder",
            json={"first_name": "Walk", "last_name": "In", "date_of_birth": "1980-05-01"},
            headers=OWNER,
        )

        assert response.status_code == 201
        assert response.json()["patient_name"] == "Walk In"

    def test_invite_unregistered_patient_flow(self, client, practice_id):
        invited = client.post(
            f"/api/practices/{practice_id}/patient-invitations", json={"email": "Pat@Example.com"}, headers=OWNER
        )
        assert invited.status_code == 201, invited.text
        token = invited.json()["token"]
        assert invited.json()["accept_url"].endswith(f"token={token}")

        pending = client.get(f"/api/practices/{practice_id}/patient-invitations", headers=OWNER).json()["invitations"]
        assert [i["email"] for i in pending] == ["pat@example.com"]

        signup(client, PATIENT, "patient", first_name="Pat", last_name="Lee")
        accepted = client.post("/api/patient-invitations/accept", json={"token": token}, headers=PATIENT)
        assert accepted.status_code == 200, accepted.text
        assert accepted.json()["practice_name"] == "Acme Clinic"
        assert accepted.json()["status"] == "active"

        assert client.get(f"/api/practices/{practice_id}/patient-invitations", headers=OWNER).json()["invitations"] == []
        again = client.post("/api/patient-invitations/accept", json={"token": token}, headers=PATIENT)
        assert again.status_code == 404

    def test_patient_invitation_requires_manage_patients(self, client, practice_id):
        signup(client, PATIENT, "patient")

        response = client.post(
            f"/api/practices/{practice_id}/patient-invitations", json={"email": "new@example.com"}, headers=PATIENT
        )

        assert response.status_code == 403

    def test_staff_route_forbidden_for_patient(self, client, practice_id):
        signup(client, PATIENT, "patient")

        assert client.get(f"/api/practices/{practice_id}/patients", headers=PATIENT).status_code == 403
        assert client.get(f"/api/practices/{practice_id}/summary", headers=PATIENT).status_code == 403


class TestPracticeEndpoints:

    def test_authorize_endpoint(self, client, practice_id):
        allowed = client.get(
            f"/api/practices/{practice_id}/authorize", params={"action": "anything_at_all"}, headers=OWNER
        ).json()
        assert allowed["allowed"] is True

        signup(client, NURSE, "doctor")
        denied = client.get(
            f"/api/practices/{practice_id}/authorize", params={"action": "manage_staff"}, headers=NURSE
        ).json()
        assert denied["allowed"] is False

    def test_update_summary_and_delete(self, client, practice_id):
        updated = client.put(f"/api/practices/{practice_id}", json={"phone": "555-0100"}, headers=OWNER)
        assert updated.json()["phone"] == "555-0100"

        summary = client.get(f"/api/practices/{practice_id}/summary", headers=OWNER).json()
        assert summary["active_staff_count"] == 1

        first = client.delete(f"/api/practices/{practice_id}", headers=OWNER)
        assert first.json() == {"practice_id": practice_id, "deleted": True}
        assert client.get(f"/api/practices/{practice_id}", headers=OWNER).status_code == 404
        assert client.get("/api/me/onboarding", headers=OWNER).json()["needs_practice_setup"] is True

    def test_delete_absent_practice_is_noop_for_portal_admin(self, client, db_session):
        create_principal(db_session, "ops-1", role="admin", email="ops@example.com")
        headers = auth_headers("ops-1", "ops@example.com")

        response = client.delete("/api/practices/4242", headers=headers)

        assert response.json() == {"practice_id": 4242, "deleted": False}

    def test_portal_admin_practice_tools(self, client, db_session):
        create_practice_with_owner(db_session)
        create_principal(db_session, "ops-1", role="admin", email="ops@example.com")
        headers = auth_headers("ops-1", "ops@example.com")

        created = client.post("/api/practices", json={"name": "Orphan Clinic"}, headers=headers)
        assert created.status_code == 201

        orphans = client.get("/api/practices/without-admin", headers=headers).json()["practices"]
        assert [p["name"] for p in orphans] == ["Orphan Clinic"]
        search = client.get("/api/practices", params={"q": "acme"}, headers=headers).json()["practices"]
        assert [p["name"] for p in search] == ["Acme Clinic"]

    def test_doctor_cannot_create_practice_directly(self, client):
        signup(client, OWNER, "doctor")

        assert client.post("/api/practices", json={"name": "X"}, headers=OWNER).status_code == 403
