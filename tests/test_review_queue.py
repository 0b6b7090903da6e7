import pytest

from goodhours.exceptions import ForbiddenException
from goodhours.models.school import VerificationStandard
from goodhours.models.service_session import SessionStatus, SignatureType
from goodhours.services import classrooms, review_queue, session_machine, trust_graph
from goodhours.services.capacity import request_signup

DRAWN = "data:image/png;base64,iVBORw0KGgo="


@pytest.fixture
def submit(db_session, make_opportunity):
    """Sign ``student`` up for a fresh opportunity and submit verification."""
    def _submit(student, org=None, title="Saturday Pantry Shift"):
        opp = make_opportunity(capacity=5, org=org, title=title)
        session = request_signup(db_session, opp.id, student).session
        return session_machine.submit_verification(db_session, session.id, student, SignatureType.DRAWN,
                                                   signature_data=DRAWN)
    return _submit


def _ids(rows):
    return {s.id for s in rows}


def test_org_reviewer_sees_only_own_opportunities(db_session, submit, student, org_admin, other_org_admin,
                                                  other_organization):
    ours = submit(student)
    theirs = submit(student, org=other_organization, title="Trail Cleanup")

    assert _ids(review_queue.list_pending(db_session, org_admin)) == {ours.id}
    assert _ids(review_queue.list_pending(db_session, other_org_admin)) == {theirs.id}


def test_school_reviewer_sees_own_students(db_session, submit, student, teacher, make_student):
    mine = submit(student)
    outsider = submit(make_student("Outsider"), title="Other Shift")

    pending = _ids(review_queue.list_pending(db_session, teacher))

    assert mine.id in pending
    assert outsider.id not in pending


def test_queue_includes_legacy_checked_out_sessions(db_session, student, org_admin, make_opportunity):
    opp = make_opportunity(capacity=2)
    session = request_signup(db_session, opp.id, student).session
    session_machine.check_in(db_session, session.id, student)
    session_machine.check_out(db_session, session.id, student)

    assert _ids(review_queue.list_pending(db_session, org_admin)) == {session.id}


def test_queue_excludes_abandoned_and_decided(db_session, submit, student, org_admin, make_opportunity):
    decided = submit(student)
    review_queue.approve(db_session, org_admin, decided.id)
    opp = make_opportunity(capacity=2, title="Later Shift")
    abandoned = request_signup(db_session, opp.id, student).session
    session_machine.cancel_session(db_session, abandoned.id, student)

    assert review_queue.list_pending(db_session, org_admin) == []


def test_other_organization_cannot_decide(db_session, submit, student, other_org_admin):
    session = submit(student)
    with pytest.raises(ForbiddenException):
        review_queue.approve(db_session, other_org_admin, session.id)
    with pytest.raises(ForbiddenException):
        review_queue.reject(db_session, other_org_admin, session.id)


def test_school_cannot_approve_under_organization_standard(db_session, submit, student, school_admin):
    session = submit(student)
    with pytest.raises(ForbiddenException):
        review_queue.approve(db_session, school_admin, session.id)


def test_school_approves_under_school_standard(db_session, submit, student, school, teacher):
    school.verification_standard = VerificationStandard.SCHOOL
    db_session.commit()
    session = submit(student)

    approved = review_queue.approve(db_session, teacher, session.id)

    assert approved.status == SessionStatus.APPROVED
    assert approved.verified_by == teacher.id


def test_org_admin_cannot_remove_hours(db_session, submit, student, org_admin):
    session = submit(student)
    review_queue.approve(db_session, org_admin, session.id)
    with pytest.raises(ForbiddenException):
        review_queue.remove_hours(db_session, org_admin, session.id)
    with pytest.raises(ForbiddenException):
        review_queue.list_removable(db_session, org_admin)


def test_school_removes_own_students_hours_only(db_session, submit, student, make_student, org_admin,
                                                school_admin):
    mine = submit(student)
    outsider = submit(make_student("Outsider"), title="Other Shift")
    review_queue.approve(db_session, org_admin, mine.id)
    review_queue.approve(db_session, org_admin, outsider.id)

    assert _ids(review_queue.list_removable(db_session, school_admin)) == {mine.id}
    with pytest.raises(ForbiddenException):
        review_queue.remove_hours(db_session, school_admin, outsider.id)

    removed = review_queue.remove_hours(db_session, school_admin, mine.id, reason="Wrong student")
    assert removed.status == SessionStatus.HOURS_REMOVED
    assert review_queue.list_removable(db_session, school_admin) == []


def test_reviewer_without_scope(db_session, make_student):
    with pytest.raises(ForbiddenException):
        review_queue.reviewer_scope(make_student("Nobody"))


def test_submission_records_certifying_school(db_session, submit, student, school):
    assert submit(student).school_id == school.id


def test_hours_stay_with_the_certifying_school_after_a_move(db_session, submit, student, org_admin, school_admin,
                                                           other_school_admin, other_classroom):
    session = submit(student)
    review_queue.approve(db_session, org_admin, session.id)

    classrooms.join(db_session, student, other_classroom.invite_code)

    assert review_queue.list_removable(db_session, other_school_admin) == []
    with pytest.raises(ForbiddenException):
        review_queue.remove_hours(db_session, other_school_admin, session.id)
    assert _ids(review_queue.list_removable(db_session, school_admin)) == {session.id}

    removed = review_queue.remove_hours(db_session, school_admin, session.id, reason="Duplicate entry")
    assert removed.status == SessionStatus.HOURS_REMOVED
    assert removed.removed_by == school_admin.id


def test_pending_queue_follows_the_certifying_school(db_session, submit, student, teacher, other_school_admin,
                                                     other_classroom):
    session = submit(student)
    classrooms.join(db_session, student, other_classroom.invite_code)

    assert _ids(review_queue.list_pending(db_session, teacher)) == {session.id}
    assert review_queue.list_pending(db_session, other_school_admin) == []


def test_blocked_organization_cannot_have_hours_approved(db_session, submit, student, organization, org_admin,
                                                         school, school_admin, teacher):
    session = submit(student)
    trust_graph.block(db_session, school_admin, organization.id)

    with pytest.raises(ForbiddenException):
        review_queue.approve(db_session, org_admin, session.id)

    school.verification_standard = VerificationStandard.SCHOOL
    db_session.commit()
    with pytest.raises(ForbiddenException):
        review_queue.approve(db_session, teacher, session.id)

    rejected = review_queue.reject(db_session, org_admin, session.id, reason="Not accepted by school")
    assert rejected.status == SessionStatus.REJECTED
