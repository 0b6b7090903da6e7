# Central registry for all SQLAlchemy models.
# Importing this module guarantees Base.metadata knows every table before
# create_all() or an Alembic autogenerate scan.

from goodhours.db import Base  # noqa: F401
from goodhours.models.user import User  # noqa: F401
from goodhours.models.school import School, Organization  # noqa: F401
from goodhours.models.classroom import Classroom  # noqa: F401
from goodhours.models.opportunity import Opportunity  # noqa: F401
from goodhours.models.signup import Signup  # noqa: F401
from goodhours.models.service_session import ServiceSession  # noqa: F401
from goodhours.models.trust_relation import TrustRelation  # noqa: F401
from goodhours.models.notification import Notification  # noqa: F401
from goodhours.models.audit_log import AuditLog  # noqa: F401
from goodhours.models.saved_opportunity import SavedOpportunity  # noqa: F401
