"""initial migration

Revision ID: 001_initial_migration
Revises: 
Create Date: 2026-10-18 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = '001_initial_migration'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
    )

    op.create_table(
        'sites',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('base_url', sa.String(2048), nullable=False, unique=True),
        sa.Column('organization_id', sa.String(64), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('is_live', sa.Boolean, nullable=False, server_default=sa.false()),
    )
    op.create_index('idx_sites_organization_id', 'sites', ['organization_id'])

    op.create_table(
        'configurations',
        sa.Column('version', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('data', postgresql.JSONB, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )

    op.create_table(
        'audits',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('site_id', sa.String(64), sa.ForeignKey('sites.id'), nullable=False),
        sa.Column('audit_type', sa.String(64), nullable=False),
        sa.Column('audited_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_live', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('audit_result', postgresql.JSONB, nullable=True),
        sa.Column('full_audit_ref', sa.String(2048), nullable=False),
    )
    op.create_index('ix_audits_site_id', 'audits', ['site_id'])
    op.create_index('ix_audits_audit_type', 'audits', ['audit_type'])
    op.create_index('idx_audits_site_type_audited_at', 'audits', ['site_id', 'audit_type', 'audited_at'])


def downgrade():
    op.drop_index('idx_audits_site_type_audited_at', table_name='audits')
    op.drop_index('ix_audits_audit_type', table_name='audits')
    op.drop_index('ix_audits_site_id', table_name='audits')
    op.drop_table('audits')
    op.drop_table('configurations')
    op.drop_index('idx_sites_organization_id', table_name='sites')
    op.drop_table('sites')
    op.drop_table('organizations')
