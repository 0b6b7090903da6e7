from datetime import timedelta

import pytest

from goodhours.exceptions import ForbiddenException, InvalidStateException, ValidationException
from goodhours.models.notification import Notification
from goodhours.models.opportunity import OpportunityStatus
from goodhours.models.signup import Signup, SignupStatus
from goodhours.services import opportunities
from goodhours.services.capacity import confirmed_count, request_signup
from goodhours.utils.datetime import utc_now


def _payload(**overrides):
    data = {
        "title": "Beach Cleanup",
        "description": "Collect litter along the shore",
        "location": "North Beach",
        "date": utc_now() + timedelta(days=7),
        "duration_hours": 2.5,
        "capacity": 10,
    }
    data.update(overrides)
    return data


def test_create_opportunity(db_session, org_admin):
    opp = opportunities.create_opportunity(db_session, org_admin, _payload(title="  Beach Cleanup "))

    assert opp.title == "Beach Cleanup"
    assert opp.organization_id == org_admin.organization_id
    assert opp.status == OpportunityStatus.ACTIVE
    assert opp.signup_seq == 0


@pytest.mark.parametrize("overrides", [
    {"capacity": 0},
    {"duration_hours": -1},
    {"title": "   "},
    {"date": None},
])
def test_create_validates_fields(db_session, org_admin, overrides):
    with pytest.raises(ValidationException):
        opportunities.create_opportunity(db_session, org_admin, _payload(**overrides))


def test_only_org_admins_create(db_session, student):
    with pytest.raises(ForbiddenException):
        opportunities.create_opportunity(db_session, student, _payload())


def test_capacity_cannot_drop_below_confirmed(db_session, org_admin, make_student, make_opportunity):
    opp = make_opportunity(capacity=3)
    request_signup(db_session, opp.id, make_student("A"))
    request_signup(db_session, opp.id, make_student("B"))

    with pytest.raises(ValidationException):
        opportunities.update_opportunity(db_session, org_admin, opp.id, {"capacity": 1})
    assert opportunities.update_opportunity(db_session, org_admin, opp.id, {"capacity": 2}).capacity == 2


def test_capacity_increase_promotes_waitlist(db_session, org_admin, make_student, make_opportunity):
    opp = make_opportunity(capacity=1)
    signups = [request_signup(db_session, opp.id, make_student(f"S{i}")) for i in range(3)]

    opportunities.update_opportunity(db_session, org_admin, opp.id, {"capacity": 2})

    db_session.expire_all()
    statuses = [db_session.get(Signup, s.id).status for s in signups]
    assert statuses == [SignupStatus.CONFIRMED, SignupStatus.CONFIRMED, SignupStatus.WAITLISTED]
    assert db_session.get(Signup, signups[1].id).session is not None


def test_update_rejects_unknown_fields(db_session, org_admin, make_opportunity):
    opp = make_opportunity()
    with pytest.raises(ValidationException):
        opportunities.update_opportunity(db_session, org_admin, opp.id, {"organization_id": "elsewhere"})


def test_other_organization_cannot_edit(db_session, other_org_admin, make_opportunity):
    opp = make_opportunity()
    with pytest.raises(ForbiddenException):
        opportunities.update_opportunity(db_session, other_org_admin, opp.id, {"title": "Mine"})
    with pytest.raises(ForbiddenException):
        opportunities.cancel_opportunity(db_session, other_org_admin, opp.id)


def test_cancel_notifies_every_live_signup(db_session, org_admin, make_student, make_opportunity):
    opp = make_opportunity(capacity=1)
    confirmed, waiting = make_student("Confirmed"), make_student("Waiting")
    request_signup(db_session, opp.id, confirmed)
    request_signup(db_session, opp.id, waiting)

    cancelled = opportunities.cancel_opportunity(db_session, org_admin, opp.id)

    assert cancelled.status == OpportunityStatus.CANCELLED
    notified = {n.user_id for n in db_session.query(Notification).filter(
        Notification.kind == "OPPORTUNITY_CANCELLED")}
    assert notified == {confirmed.id, waiting.id}
    with pytest.raises(InvalidStateException):
        opportunities.cancel_opportunity(db_session, org_admin, opp.id)


def test_completed_opportunity_closes_signups(db_session, org_admin, make_student, make_opportunity):
    opp = make_opportunity()
    opportunities.complete_opportunity(db_session, org_admin, opp.id)

    with pytest.raises(InvalidStateException) as exc:
        request_signup(db_session, opp.id, make_student())
    assert exc.value.current == "COMPLETED"
    with pytest.raises(InvalidStateException):
        opportunities.update_opportunity(db_session, org_admin, opp.id, {"capacity": 5})


def test_listing_search_and_seat_counts(db_session, org_admin, make_student, make_opportunity):
    pantry = make_opportunity(capacity=1, title="Saturday Pantry Shift", days_from_now=2)
    make_opportunity(title="Trail Cleanup", days_from_now=1)
    request_signup(db_session, pantry.id, make_student("A"))
    request_signup(db_session, pantry.id, make_student("B"))

    everything = opportunities.list_opportunities(db_session, org_admin)
    assert [o.title for o, _ in everything] == ["Trail Cleanup", "Saturday Pantry Shift"]

    found = opportunities.list_opportunities(db_session, org_admin, search="pantry")
    assert [o.id for o, _ in found] == [pantry.id]
    assert found[0][1] == {"confirmed": 1, "waitlisted": 1}
    assert confirmed_count(db_session, pantry.id) == 1


def test_listing_hides_non_active_by_default(db_session, org_admin, make_opportunity):
    make_opportunity(title="Gone", status=OpportunityStatus.CANCELLED)
    assert opportunities.list_opportunities(db_session, org_admin) == []
    assert len(opportunities.list_opportunities(db_session, org_admin, status=None)) == 1
