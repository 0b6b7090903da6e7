import os

os.environ["ENV"] = "test"
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import uuid
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from goodhours.main import app
from goodhours.db import Base, get_db
from goodhours.models.classroom import Classroom
from goodhours.models.opportunity import Opportunity, OpportunityStatus
from goodhours.models.school import School, Organization, VerificationStandard
from goodhours.models.user import User, UserRole
from goodhours.services import email as email_mod
from goodhours.utils.datetime import utc_now

# Use SQLite in-memory for test DB
TEST_DATABASE_URL = "sqlite+pysqlite:///:memory:"
# StaticPool keeps one shared in-memory database across the TestClient's
# request sessions and the test's own session.
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_test_db():
    # recreate schema for each test to ensure isolation
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def client():
    return TestClient(app)


# --- Email sending mock (autouse) ---
@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    """Capture outbound email instead of calling SendGrid."""
    outbox = []

    def _fake_send_email(to_email, subject, html_content, plain_content, from_email=None):
        outbox.append({"to": to_email, "subject": subject, "html": html_content, "plain": plain_content})
        return True

    monkeypatch.setattr(email_mod, "send_email", _fake_send_email)
    return outbox


def bearer(user_or_token) -> dict:
    """Auth header for a mock token name or for any persisted user."""
    if isinstance(user_or_token, str):
        return {"Authorization": f"Bearer {user_or_token}"}
    return {"Authorization": f"Bearer mock-uid:{user_or_token.id}"}


# --- Domain fixtures ---
# Ids of the fixed users match the mock tokens resolved by goodhours.services.auth

@pytest.fixture
def organization(db_session):
    org = Organization(name="Riverside Food Bank", email="hello@foodbank.example.com")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def other_organization(db_session):
    org = Organization(name="Parks Cleanup Crew", email="crew@parks.example.com")
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture
def org_admin(db_session, organization):
    user = User(id="org-admin-1", name="Olive Org", email="org-admin@example.com",
                role=UserRole.org_admin, organization_id=organization.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def other_org_admin(db_session, other_organization):
    user = User(id=str(uuid.uuid4()), name="Parker Parks", email="parks-admin@example.com",
                role=UserRole.org_admin, organization_id=other_organization.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def school_admin(db_session):
    user = User(id="school-admin-1", name="Sam Principal", email="school-admin@example.com",
                role=UserRole.school_admin)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def school(db_session, school_admin):
    school = School(name="Lincoln High", admin_user_id=school_admin.id, required_hours=40.0,
                    verification_standard=VerificationStandard.ORGANIZATION)
    db_session.add(school)
    db_session.flush()
    school_admin.school_id = school.id
    db_session.commit()
    return school


@pytest.fixture
def teacher(db_session, school):
    user = User(id="teacher-1", name="Terry Teacher", email="teacher@example.com",
                role=UserRole.teacher, school_id=school.id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def classroom(db_session, school, teacher):
    room = Classroom(name="Homeroom 12A", school_id=school.id, teacher_id=teacher.id, invite_code="HR12AB34")
    db_session.add(room)
    db_session.commit()
    return room


@pytest.fixture
def other_school_admin(db_session):
    user = User(id="school-admin-2", name="Jo Principal", email="school-admin-2@example.com",
                role=UserRole.school_admin)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def other_classroom(db_session, other_school_admin):
    """A classroom at a second school, run by that school's admin."""
    school = School(name="Jefferson High", admin_user_id=other_school_admin.id, required_hours=20.0,
                    verification_standard=VerificationStandard.ORGANIZATION)
    db_session.add(school)
    db_session.flush()
    other_school_admin.school_id = school.id
    room = Classroom(name="Homeroom 9C", school_id=school.id, teacher_id=other_school_admin.id,
                     invite_code="JF34CD56")
    db_session.add(room)
    db_session.commit()
    return room


@pytest.fixture
def make_student(db_session):
    def _make(name="Student", classroom=None, user_id=None) -> User:
        user = User(
            id=user_id or str(uuid.uuid4()),
            name=name,
            email=f"{name.lower().replace(' ', '.')}+{uuid.uuid4().hex[:6]}@example.com",
            role=UserRole.student,
        )
        if classroom is not None:
            user.classroom_id = classroom.id
            user.school_id = classroom.school_id
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture
def student(make_student, classroom):
    return make_student("Student One", classroom=classroom, user_id="student-1")


@pytest.fixture
def make_opportunity(db_session, organization):
    def _make(capacity=1, duration_hours=3.0, days_from_now=-1, org=None, title="Saturday Pantry Shift",
              status=OpportunityStatus.ACTIVE) -> Opportunity:
        opp = Opportunity(
            organization_id=(org or organization).id,
            title=title,
            description="Sort and pack food donations",
            location="123 Main St",
            date=utc_now() + timedelta(days=days_from_now),
            duration_hours=duration_hours,
            capacity=capacity,
            status=status,
        )
        db_session.add(opp)
        db_session.commit()
        return opp
    return _make


@pytest.fixture
def auth_headers():
    return bearer
