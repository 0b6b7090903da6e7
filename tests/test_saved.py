import pytest

from goodhours.exceptions import ForbiddenException, NotFoundException
from goodhours.models.saved_opportunity import SavedOpportunity, SavedStatus
from goodhours.services import saved, trust_graph


def test_mark_is_an_upsert(db_session, student, make_opportunity):
    opp = make_opportunity(days_from_now=3)

    first = saved.mark(db_session, student, opp.id)
    again = saved.mark(db_session, student, opp.id, SavedStatus.SKIPPED)

    assert first.id == again.id
    assert again.status == SavedStatus.SKIPPED
    assert db_session.query(SavedOpportunity).count() == 1


def test_list_filters_by_status(db_session, student, make_opportunity):
    kept = make_opportunity(days_from_now=3, title="Pantry Shift")
    dropped = make_opportunity(days_from_now=4, title="Trail Cleanup")
    saved.mark(db_session, student, kept.id)
    saved.mark(db_session, student, dropped.id, SavedStatus.DISCARDED)

    assert [s.opportunity_id for s in saved.list_marked(db_session, student, SavedStatus.SAVED)] == [kept.id]
    assert len(saved.list_marked(db_session, student)) == 2


def test_only_students_mark(db_session, org_admin, make_opportunity):
    with pytest.raises(ForbiddenException):
        saved.mark(db_session, org_admin, make_opportunity().id)


def test_unknown_or_blocked_opportunity(db_session, student, school_admin, organization, make_opportunity):
    with pytest.raises(NotFoundException):
        saved.mark(db_session, student, "no-such-opportunity")

    opp = make_opportunity(days_from_now=3)
    trust_graph.block(db_session, school_admin, organization.id)
    with pytest.raises(ForbiddenException):
        saved.mark(db_session, student, opp.id)


def test_remove_only_own_entries(db_session, student, make_student, make_opportunity):
    entry = saved.mark(db_session, student, make_opportunity(days_from_now=3).id)

    with pytest.raises(NotFoundException):
        saved.remove(db_session, make_student("Someone Else"), entry.id)

    saved.remove(db_session, student, entry.id)
    assert saved.list_marked(db_session, student) == []


def test_saved_over_http(client, auth_headers, student, make_opportunity):
    opp = make_opportunity(days_from_now=3, capacity=4)

    r = client.post("/saved", json={"opportunity_id": opp.id}, headers=auth_headers(student))
    assert r.status_code == 200, r.text
    entry = r.json()
    assert entry["status"] == "SAVED"
    assert entry["opportunity"]["spots_left"] == 4

    r = client.post("/saved", json={"opportunity_id": opp.id, "status": "SKIPPED"}, headers=auth_headers(student))
    assert r.json()["id"] == entry["id"]
    assert client.get("/saved?status=SAVED", headers=auth_headers(student)).json() == []

    r = client.delete(f"/saved/{entry['id']}", headers=auth_headers(student))
    assert r.json() == {"success": True}
    assert client.get("/saved", headers=auth_headers(student)).json() == []
