from datetime import timedelta

import pytest

from goodhours.exceptions import (
    ForbiddenException,
    InvalidStateException,
    PrematureSubmissionException,
    ValidationException,
)
from goodhours.models.audit_log import AuditLog
from goodhours.models.notification import Notification
from goodhours.models.opportunity import OpportunityStatus
from goodhours.models.service_session import ServiceSession, SessionStatus, SignatureType, VerificationStatus
from goodhours.models.signup import Signup, SignupStatus
from goodhours.models.user import User
from goodhours.services import email as email_service
from goodhours.services import session_machine
from goodhours.services.capacity import request_signup
from goodhours.utils.datetime import utc_now

DRAWN = "data:image/png;base64,iVBORw0KGgo="


def _hours(db, student):
    db.expire_all()
    return db.get(User, student.id).approved_hours


@pytest.fixture
def committed(db_session, student, make_opportunity):
    """A COMMITTED session for a 3 hour opportunity that took place yesterday."""
    opp = make_opportunity(capacity=2, duration_hours=3.0, days_from_now=-1)
    signup = request_signup(db_session, opp.id, student)
    return signup.session


def test_submit_before_event_date_is_premature(db_session, student, make_opportunity):
    opp = make_opportunity(days_from_now=2)
    session = request_signup(db_session, opp.id, student).session

    with pytest.raises(PrematureSubmissionException) as exc:
        session_machine.submit_verification(db_session, session.id, student, SignatureType.DRAWN,
                                            signature_data=DRAWN)
    assert isinstance(exc.value, InvalidStateException)
    assert exc.value.current == "COMMITTED"
    assert "submit_verification" not in exc.value.allowed
    assert "check_in" in exc.value.allowed


def test_submit_allowed_from_the_event_instant(db_session, student, make_opportunity):
    opp = make_opportunity(days_from_now=1)
    session = request_signup(db_session, opp.id, student).session
    at_event = utc_now() + timedelta(days=1, minutes=1)

    result = session_machine.submit_verification(db_session, session.id, student, SignatureType.DRAWN,
                                                 signature_data=DRAWN, now=at_event)
    assert result.status == SessionStatus.PENDING_VERIFICATION


def test_submit_records_artifact_and_notifies_school_staff(db_session, committed, student, school_admin, teacher):
    result = session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN,
                                                 signature_data=DRAWN)

    assert result.status == SessionStatus.PENDING_VERIFICATION
    assert result.verification_status == VerificationStatus.PENDING
    assert result.signature_type == SignatureType.DRAWN
    assert result.signature_data == DRAWN
    assert result.submitted_at is not None
    notified = {n.user_id for n in db_session.query(Notification).filter(Notification.kind == "VERIFICATION_SUBMITTED")}
    assert notified == {school_admin.id, teacher.id}
    audit = db_session.query(AuditLog).filter(AuditLog.session_id == committed.id).all()
    assert [a.action for a in audit] == ["session.submit_verification"]


def test_submit_file_reference(db_session, committed, student):
    result = session_machine.submit_verification(
        db_session, committed.id, student, SignatureType.FILE,
        file_url="https://files.example.com/sig/123", file_name="Supervisor Sheet.PDF",
    )
    assert result.signature_type == SignatureType.FILE
    assert result.signature_file_name == "Supervisor Sheet.PDF"


@pytest.mark.parametrize("kwargs", [
    {"method": SignatureType.DRAWN, "signature_data": "not-a-data-uri"},
    {"method": SignatureType.FILE, "file_url": "https://files.example.com/x", "file_name": "sheet.docx"},
    {"method": SignatureType.FILE, "file_name": "sheet.pdf"},
])
def test_submit_rejects_bad_artifacts(db_session, committed, student, kwargs):
    method = kwargs.pop("method")
    with pytest.raises(ValidationException):
        session_machine.submit_verification(db_session, committed.id, student, method, **kwargs)


def test_submit_requires_owner(db_session, committed, make_student):
    with pytest.raises(ForbiddenException):
        session_machine.submit_verification(db_session, committed.id, make_student("Other"),
                                            SignatureType.DRAWN, signature_data=DRAWN)


def test_submission_path_approval_scenario(db_session, committed, student, org_admin, sent_emails):
    assert committed.total_hours == 3.0
    session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN, signature_data=DRAWN)

    approved = session_machine.approve(db_session, committed.id, org_admin)

    assert approved.status == SessionStatus.APPROVED
    assert approved.verification_status == VerificationStatus.APPROVED
    assert approved.verified_by == org_admin.id
    assert _hours(db_session, student) == 3.0
    assert sent_emails[-1]["to"] == student.email
    assert "approved" in sent_emails[-1]["subject"].lower()


def test_approve_twice_does_not_double_count(db_session, committed, student, org_admin):
    session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN, signature_data=DRAWN)
    session_machine.approve(db_session, committed.id, org_admin)

    with pytest.raises(InvalidStateException) as exc:
        session_machine.approve(db_session, committed.id, org_admin)
    assert exc.value.current == "APPROVED"
    assert exc.value.allowed == ["remove_hours"]
    assert _hours(db_session, student) == 3.0


def test_approve_with_reviewer_override(db_session, committed, student, org_admin):
    session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN, signature_data=DRAWN)
    approved = session_machine.approve(db_session, committed.id, org_admin, approved_hours=2.25)
    assert approved.total_hours == 2.25
    assert _hours(db_session, student) == 2.25


def test_approve_requires_pending_verification(db_session, committed, org_admin):
    with pytest.raises(InvalidStateException) as exc:
        session_machine.approve(db_session, committed.id, org_admin)
    assert set(exc.value.allowed) == {"submit_verification", "check_in", "cancel"}


def test_reject_is_terminal_and_credits_nothing(db_session, committed, student, org_admin):
    session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN, signature_data=DRAWN)
    rejected = session_machine.reject(db_session, committed.id, org_admin, reason="No supervisor signature")

    assert rejected.status == SessionStatus.REJECTED
    assert rejected.verification_status == VerificationStatus.REJECTED
    assert rejected.rejection_reason == "No supervisor signature"
    assert _hours(db_session, student) == 0.0
    for op in (
        lambda: session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN,
                                                    signature_data=DRAWN),
        lambda: session_machine.approve(db_session, committed.id, org_admin),
        lambda: session_machine.remove_hours(db_session, committed.id, org_admin),
    ):
        with pytest.raises(InvalidStateException) as exc:
            op()
        assert exc.value.allowed == []


def test_remove_hours_decrements_and_is_irreversible(db_session, committed, student, org_admin, school_admin,
                                                     sent_emails):
    session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN, signature_data=DRAWN)
    session_machine.approve(db_session, committed.id, org_admin)

    removed = session_machine.remove_hours(db_session, committed.id, school_admin, reason="Duplicate entry")

    assert removed.status == SessionStatus.HOURS_REMOVED
    assert removed.verification_status == VerificationStatus.REMOVED
    assert removed.removal_reason == "Duplicate entry"
    assert _hours(db_session, student) == 0.0
    assert sent_emails[-1]["subject"] == "Service hours removed from your record"
    with pytest.raises(InvalidStateException):
        session_machine.remove_hours(db_session, committed.id, school_admin)
    with pytest.raises(InvalidStateException):
        session_machine.approve(db_session, committed.id, org_admin)
    assert _hours(db_session, student) == 0.0


def test_legacy_check_in_out_uses_measured_hours(db_session, committed, student, org_admin):
    start = utc_now()
    checked_in = session_machine.check_in(db_session, committed.id, student, now=start)
    assert checked_in.status == SessionStatus.CHECKED_IN

    checked_out = session_machine.check_out(db_session, committed.id, student,
                                            now=start + timedelta(hours=2, minutes=20))
    assert checked_out.status == SessionStatus.CHECKED_OUT
    assert checked_out.total_hours == 2.33

    verified = session_machine.approve(db_session, committed.id, org_admin)
    assert verified.status == SessionStatus.VERIFIED
    assert _hours(db_session, student) == 2.33


def test_legacy_path_closes_submission_path(db_session, committed, student):
    session_machine.check_in(db_session, committed.id, student)
    with pytest.raises(InvalidStateException) as exc:
        session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN,
                                            signature_data=DRAWN)
    assert exc.value.allowed == ["check_out"]


def test_check_in_from_pending_checkin(db_session, committed, student):
    committed.status = SessionStatus.PENDING_CHECKIN
    db_session.commit()
    assert session_machine.check_in(db_session, committed.id, student).status == SessionStatus.CHECKED_IN


def test_check_out_requires_check_in(db_session, committed, student):
    with pytest.raises(InvalidStateException) as exc:
        session_machine.check_out(db_session, committed.id, student)
    assert "check_in" in exc.value.allowed


def test_legacy_reject(db_session, committed, student, org_admin):
    session_machine.check_in(db_session, committed.id, student)
    session_machine.check_out(db_session, committed.id, student)
    assert session_machine.reject(db_session, committed.id, org_admin).status == SessionStatus.REJECTED


def test_cancel_session_abandons_and_promotes(db_session, student, make_student, make_opportunity):
    opp = make_opportunity(capacity=1)
    session = request_signup(db_session, opp.id, student).session
    waiting = request_signup(db_session, opp.id, make_student("Waiting"))

    cancelled = session_machine.cancel_session(db_session, session.id, student)

    assert cancelled.abandoned_at is not None
    assert cancelled.status == SessionStatus.COMMITTED
    db_session.expire_all()
    assert db_session.get(Signup, cancelled.signup_id).status == SignupStatus.CANCELLED
    assert db_session.get(Signup, waiting.id).status == SignupStatus.CONFIRMED
    with pytest.raises(InvalidStateException):
        session_machine.check_in(db_session, session.id, student)


def test_cancel_after_check_in_is_invalid(db_session, committed, student):
    session_machine.check_in(db_session, committed.id, student)
    with pytest.raises(InvalidStateException) as exc:
        session_machine.cancel_session(db_session, committed.id, student)
    assert exc.value.current == "CHECKED_IN"


def test_every_transition_is_audited(db_session, committed, student, org_admin):
    session_machine.check_in(db_session, committed.id, student)
    session_machine.check_out(db_session, committed.id, student)
    session_machine.approve(db_session, committed.id, org_admin)

    actions = [a.action for a in db_session.query(AuditLog).filter(AuditLog.session_id == committed.id)
               .order_by(AuditLog.created_at.asc())]
    assert actions == ["session.check_in", "session.check_out", "session.approve"]


def test_recompute_approved_hours_repairs_drift(db_session, committed, student, org_admin):
    session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN, signature_data=DRAWN)
    session_machine.approve(db_session, committed.id, org_admin)
    db_session.get(User, student.id).approved_hours = 99.0
    db_session.commit()

    assert session_machine.recompute_approved_hours(db_session, student.id) == 3.0
    assert _hours(db_session, student) == 3.0


def test_sessions_listing_hides_abandoned(db_session, student, make_opportunity):
    opp = make_opportunity(capacity=1)
    session = request_signup(db_session, opp.id, student).session
    session_machine.cancel_session(db_session, session.id, student)

    assert session_machine.list_student_sessions(db_session, student) == []
    assert len(session_machine.list_student_sessions(db_session, student, include_abandoned=True)) == 1
    assert db_session.query(ServiceSession).count() == 1


def test_submit_for_cancelled_opportunity_is_refused(db_session, committed, student):
    committed.opportunity.status = OpportunityStatus.CANCELLED
    db_session.commit()

    with pytest.raises(InvalidStateException) as exc:
        session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN,
                                            signature_data=DRAWN)
    assert exc.value.current == "COMMITTED"
    assert "submit_verification" not in exc.value.allowed
    db_session.expire_all()
    assert db_session.get(ServiceSession, committed.id).status == SessionStatus.COMMITTED


def test_email_failure_does_not_undo_approval(db_session, committed, student, org_admin, monkeypatch):
    def _broken_send(*args, **kwargs):
        raise RuntimeError("mail provider unreachable")

    monkeypatch.setattr(email_service, "send_email", _broken_send)
    session_machine.submit_verification(db_session, committed.id, student, SignatureType.DRAWN, signature_data=DRAWN)

    approved = session_machine.approve(db_session, committed.id, org_admin)

    assert approved.status == SessionStatus.APPROVED
    assert _hours(db_session, student) == 3.0
