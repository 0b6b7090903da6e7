import pytest

from goodhours.exceptions import ForbiddenException, NotFoundException
from goodhours.models.service_session import SignatureType
from goodhours.services import audit, impact, review_queue, session_machine
from goodhours.services.capacity import request_signup

DRAWN = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def approved(db_session, student, org_admin, make_opportunity):
    """A submitted and approved 3 hour session."""
    opp = make_opportunity(capacity=3, duration_hours=3.0)
    session = request_signup(db_session, opp.id, student).session
    session_machine.submit_verification(db_session, session.id, student, SignatureType.DRAWN, signature_data=DRAWN)
    return review_queue.approve(db_session, org_admin, session.id)


def test_audit_trail_in_order(db_session, approved, student, org_admin, teacher):
    for reader in (student, org_admin, teacher):
        entries = audit.list_session_audit(db_session, reader, approved.id)
        assert [e.action for e in entries] == ["session.submit_verification", "session.approve"]
    assert entries[1].actor_id == org_admin.id


def test_audit_trail_hidden_from_outsiders(db_session, approved, make_student, other_org_admin,
                                           other_school_admin, other_classroom):
    for outsider in (make_student("Nosy"), other_org_admin, other_school_admin):
        with pytest.raises(ForbiddenException):
            audit.list_session_audit(db_session, outsider, approved.id)
    with pytest.raises(NotFoundException):
        audit.list_session_audit(db_session, other_org_admin, "no-such-session")


def test_organization_stats(db_session, approved, student, make_student, org_admin, make_opportunity):
    make_opportunity(days_from_now=5, title="Next Week")
    waiting = make_student("Waiting")
    request_signup(db_session, approved.opportunity_id, waiting)

    stats = impact.organization_stats(db_session, org_admin, org_admin.organization_id)

    assert stats["total_opportunities"] == 2
    assert stats["confirmed_signups"] == 2
    assert stats["total_sessions"] == 2
    assert stats["approved_sessions"] == 1
    assert stats["total_approved_hours"] == 3.0
    assert stats["unique_volunteers"] == 1


def test_removed_hours_leave_the_impact_figures(db_session, approved, org_admin, school_admin):
    review_queue.remove_hours(db_session, school_admin, approved.id)

    stats = impact.organization_stats(db_session, school_admin, org_admin.organization_id)

    assert stats["total_approved_hours"] == 0.0
    assert stats["unique_volunteers"] == 0
    assert impact.volunteer_history(db_session, org_admin, org_admin.organization_id) == []


def test_volunteer_history_is_private(db_session, approved, org_admin, other_org_admin, student):
    history = impact.volunteer_history(db_session, org_admin, org_admin.organization_id)
    assert [(v["student_id"], v["total_hours"]) for v in history] == [(student.id, 3.0)]

    with pytest.raises(ForbiddenException):
        impact.volunteer_history(db_session, other_org_admin, org_admin.organization_id)
    with pytest.raises(ForbiddenException):
        impact.organization_stats(db_session, student, org_admin.organization_id)


def test_reports_over_http(client, auth_headers, approved, student, org_admin, make_student):
    r = client.get("/reports/organization", headers=auth_headers(org_admin))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["total_approved_hours"] == 3.0
    assert body["volunteers"][0]["student_name"] == student.name

    r = client.get(f"/reports/audit/{approved.id}", headers=auth_headers(student))
    assert r.status_code == 200
    assert [e["actor_role"] for e in r.json()] == ["student", "org_admin"]

    r = client.get(f"/reports/audit/{approved.id}", headers=auth_headers(make_student("Nosy")))
    assert r.status_code == 403
