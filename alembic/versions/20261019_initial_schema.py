"""initial schema: users, schools, organizations, classrooms, opportunities,
signups, service sessions, trust relations, notifications, audit logs,
saved opportunities

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '20261019_initial'
down_revision = None
branch_labels = None
depends_on = None

USER_ROLES = ('student', 'org_admin', 'school_admin', 'teacher', 'district_admin')
SESSION_STATUSES = (
    'COMMITTED', 'PENDING_VERIFICATION', 'APPROVED',
    'PENDING_CHECKIN', 'CHECKED_IN', 'CHECKED_OUT', 'VERIFIED',
    'REJECTED', 'HOURS_REMOVED',
)


def upgrade():
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('website', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    # users <-> schools / classrooms reference each other; those FKs are added last
    op.create_table(
        'users',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('role', sa.Enum(*USER_ROLES, name='userrole'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('organization_id', sa.String(), sa.ForeignKey('organizations.id'), nullable=True),
        sa.Column('school_id', sa.String(), nullable=True),
        sa.Column('classroom_id', sa.String(), nullable=True),
        sa.Column('approved_hours', sa.Float(), server_default=sa.text('0'), nullable=False),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])
    op.create_index('ix_users_school_id', 'users', ['school_id'])
    op.create_index('ix_users_classroom_id', 'users', ['classroom_id'])

    op.create_table(
        'schools',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('admin_user_id', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('required_hours', sa.Float(), server_default=sa.text('40'), nullable=False),
        sa.Column('verification_standard', sa.Enum('ORGANIZATION', 'SCHOOL', name='verificationstandard'),
                  server_default='ORGANIZATION', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        'classrooms',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('school_id', sa.String(), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('teacher_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('invite_code', sa.String(length=8), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('required_hours', sa.Float(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_classrooms_school_id', 'classrooms', ['school_id'])
    op.create_index('ix_classrooms_invite_code', 'classrooms', ['invite_code'], unique=True)

    op.create_foreign_key('fk_users_school_id', 'users', 'schools', ['school_id'], ['id'])
    op.create_foreign_key('fk_users_classroom_id', 'users', 'classrooms', ['classroom_id'], ['id'])

    op.create_table(
        'opportunities',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organization_id', sa.String(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('location', sa.String(), nullable=False),
        sa.Column('date', sa.DateTime(), nullable=False),
        sa.Column('duration_hours', sa.Float(), nullable=False),
        sa.Column('capacity', sa.Integer(), nullable=False),
        sa.Column('status', sa.Enum('ACTIVE', 'COMPLETED', 'CANCELLED', name='opportunitystatus'), nullable=False),
        sa.Column('signup_seq', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_opportunities_organization_id', 'opportunities', ['organization_id'])
    op.create_index('ix_opportunities_date', 'opportunities', ['date'])
    op.create_index('ix_opportunities_status', 'opportunities', ['status'])

    op.create_table(
        'signups',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('opportunity_id', sa.String(), sa.ForeignKey('opportunities.id'), nullable=False),
        sa.Column('student_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.Enum('CONFIRMED', 'WAITLISTED', 'CANCELLED', name='signupstatus'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_signups_opportunity_id', 'signups', ['opportunity_id'])
    op.create_index('ix_signups_student_id', 'signups', ['student_id'])
    op.create_index('idx_signups_waitlist_order', 'signups', ['opportunity_id', 'status', 'sequence'])
    op.create_index(
        'uq_signups_live_claim', 'signups', ['opportunity_id', 'student_id'],
        unique=True,
        postgresql_where=sa.text("status != 'CANCELLED'"),
        sqlite_where=sa.text("status != 'CANCELLED'"),
    )

    op.create_table(
        'service_sessions',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('signup_id', sa.String(), sa.ForeignKey('signups.id'), nullable=False, unique=True),
        sa.Column('student_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('opportunity_id', sa.String(), sa.ForeignKey('opportunities.id'), nullable=False),
        sa.Column('school_id', sa.String(), sa.ForeignKey('schools.id'), nullable=True),
        sa.Column('status', sa.Enum(*SESSION_STATUSES, name='sessionstatus'), nullable=False),
        sa.Column('verification_status', sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'REMOVED',
                                                 name='verificationstatus'), nullable=False),
        sa.Column('check_in_time', sa.DateTime(), nullable=True),
        sa.Column('check_out_time', sa.DateTime(), nullable=True),
        sa.Column('total_hours', sa.Float(), nullable=True),
        sa.Column('signature_type', sa.Enum('DRAWN', 'FILE', name='signaturetype'), nullable=True),
        sa.Column('signature_data', sa.Text(), nullable=True),
        sa.Column('signature_file_url', sa.String(), nullable=True),
        sa.Column('signature_file_name', sa.String(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('verified_by', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('removed_by', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('removed_at', sa.DateTime(), nullable=True),
        sa.Column('removal_reason', sa.Text(), nullable=True),
        sa.Column('abandoned_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_service_sessions_student_id', 'service_sessions', ['student_id'])
    op.create_index('ix_service_sessions_opportunity_id', 'service_sessions', ['opportunity_id'])
    op.create_index('ix_service_sessions_status', 'service_sessions', ['status'])
    op.create_index('ix_service_sessions_school_id', 'service_sessions', ['school_id'])

    op.create_table(
        'trust_relations',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('organization_id', sa.String(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('school_id', sa.String(), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('status', sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'BLOCKED', name='truststatus'), nullable=False),
        sa.Column('requested_by', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('requested_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('decided_by', sa.String(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('decided_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('organization_id', 'school_id', name='uq_trust_org_school'),
    )
    op.create_index('ix_trust_relations_organization_id', 'trust_relations', ['organization_id'])
    op.create_index('ix_trust_relations_school_id', 'trust_relations', ['school_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('user_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('kind', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('is_read', sa.Boolean(), server_default=sa.text('false'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('actor_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('session_id', sa.String(), sa.ForeignKey('service_sessions.id'), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_session_id', 'audit_logs', ['session_id'])

    op.create_table(
        'saved_opportunities',
        sa.Column('id', sa.String(), primary_key=True),
        sa.Column('student_id', sa.String(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('opportunity_id', sa.String(), sa.ForeignKey('opportunities.id'), nullable=False),
        sa.Column('status', sa.Enum('SAVED', 'SKIPPED', 'DISCARDED', name='savedstatus'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('student_id', 'opportunity_id', name='uq_saved_student_opportunity'),
    )
    op.create_index('ix_saved_opportunities_student_id', 'saved_opportunities', ['student_id'])


def downgrade():
    op.drop_table('saved_opportunities')
    op.drop_table('audit_logs')
    op.drop_table('notifications')
    op.drop_table('trust_relations')
    op.drop_table('service_sessions')
    op.drop_index('uq_signups_live_claim', table_name='signups')
    op.drop_table('signups')
    op.drop_table('opportunities')
    op.drop_constraint('fk_users_classroom_id', 'users', type_='foreignkey')
    op.drop_constraint('fk_users_school_id', 'users', type_='foreignkey')
    op.drop_table('classrooms')
    op.drop_table('schools')
    op.drop_table('users')
    op.drop_table('organizations')
    for enum_name in ('savedstatus', 'truststatus', 'signaturetype', 'verificationstatus', 'sessionstatus',
                      'signupstatus', 'opportunitystatus', 'verificationstandard', 'userrole'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
