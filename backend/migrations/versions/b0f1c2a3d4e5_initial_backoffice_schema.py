"""initial backoffice schema

Revision ID: b0f1c2a3d4e5
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates:
- users: principals (password and/or linked google/github identity)
- session_tokens: hashed server-side sessions with CSRF token
- customers: CUS-referenced customer accounts (soft delete)
- vendors: VEN-referenced vendor records (soft delete)

Reference and email columns carry unique constraints that include
soft-deleted rows.
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b0f1c2a3d4e5'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def _contact_and_address():
    return [
        sa.Column('company_name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('website', sa.String(length=255), nullable=True),
        sa.Column('address_line_1', sa.String(length=255), nullable=True),
        sa.Column('address_line_2', sa.String(length=255), nullable=True),
        sa.Column('city', sa.String(length=100), nullable=True),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('postal_code', sa.String(length=20), nullable=True),
        sa.Column('country', sa.String(length=100), nullable=True),
    ]


def upgrade():
    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('google_id', sa.String(length=255), nullable=True),
        sa.Column('github_id', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='employee'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='active'),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_login_ip', sa.String(length=45), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('google_id'),
        sa.UniqueConstraint('github_id'),
        sa.CheckConstraint(
            'password_hash IS NOT NULL OR google_id IS NOT NULL OR github_id IS NOT NULL',
            name='ck_users_has_credential',
        ),
        sa.CheckConstraint("role IN ('admin', 'manager', 'employee')", name='ck_users_role'),
        sa.CheckConstraint("status IN ('active', 'inactive', 'suspended')", name='ck_users_status'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_status', 'users', ['status'])
    op.create_index('ix_users_role_status', 'users', ['role', 'status'])
    op.create_index('ix_users_deleted_at', 'users', ['deleted_at'])

    # ============================================================================
    # session_tokens
    # ============================================================================
    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        sa.Column('csrf_token', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.Column('remember', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_is_revoked', 'session_tokens', ['is_revoked'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # customers
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.String(length=16), nullable=False),
        *_contact_and_address(),
        sa.Column('industry', sa.String(length=100), nullable=True),
        sa.Column('company_size', sa.String(length=32), nullable=True),
        sa.Column('tax_id', sa.String(length=50), nullable=True),
        sa.Column('annual_revenue', sa.Numeric(15, 2), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='prospect'),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='medium'),
        sa.Column('first_contact_date', sa.Date(), nullable=True),
        sa.Column('last_contact_date', sa.Date(), nullable=True),
        sa.Column('preferred_currency', sa.String(length=3), nullable=True),
        sa.Column('payment_terms', sa.String(length=100), nullable=True),
        sa.Column('credit_limit', sa.Numeric(12, 2), nullable=True),
        sa.Column('outstanding_balance', sa.Numeric(12, 2), nullable=True),
        sa.Column('additional_contacts', sa.JSON(), nullable=True),
        sa.Column('communication_preferences', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('requirements', sa.Text(), nullable=True),
        sa.Column('lead_source', sa.String(length=100), nullable=True),
        sa.Column('assigned_sales_rep', sa.String(length=255), nullable=True),
        sa.Column('contract_start_date', sa.Date(), nullable=True),
        sa.Column('contract_end_date', sa.Date(), nullable=True),
        sa.Column('auto_renewal', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_id', name='uq_customers_customer_id'),
        sa.UniqueConstraint('email', name='uq_customers_email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_company_name', 'customers', ['company_name'])
    op.create_index('ix_customers_status', 'customers', ['status'])
    op.create_index('ix_customers_priority', 'customers', ['priority'])
    op.create_index('ix_customers_status_priority', 'customers', ['status', 'priority'])
    op.create_index('ix_customers_deleted_at', 'customers', ['deleted_at'])

    # ============================================================================
    # vendors
    # ============================================================================
    op.create_table(
        'vendors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vendor_id', sa.String(length=16), nullable=False),
        *_contact_and_address(),
        sa.Column('service_type', sa.String(length=100), nullable=False),
        sa.Column('industry', sa.String(length=100), nullable=True),
        sa.Column('company_size', sa.String(length=32), nullable=True),
        sa.Column('tax_id', sa.String(length=50), nullable=True),
        sa.Column('business_license', sa.String(length=100), nullable=True),
        sa.Column('vendor_type', sa.String(length=32), nullable=False, server_default='supplier'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('priority', sa.String(length=16), nullable=False, server_default='medium'),
        sa.Column('preferred_currency', sa.String(length=3), nullable=True),
        sa.Column('payment_terms', sa.String(length=100), nullable=True),
        sa.Column('credit_limit', sa.Numeric(12, 2), nullable=True),
        sa.Column('outstanding_balance', sa.Numeric(12, 2), nullable=True),
        sa.Column('bank_account_info', sa.String(length=500), nullable=True),
        sa.Column('first_contact_date', sa.Date(), nullable=True),
        sa.Column('last_contact_date', sa.Date(), nullable=True),
        sa.Column('contract_start_date', sa.Date(), nullable=True),
        sa.Column('contract_end_date', sa.Date(), nullable=True),
        sa.Column('auto_renewal', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('assigned_procurement_rep', sa.String(length=255), nullable=True),
        sa.Column('performance_rating', sa.Numeric(3, 2), nullable=True),
        sa.Column('last_performance_review', sa.Date(), nullable=True),
        sa.Column('delivery_success_rate', sa.Integer(), nullable=True),
        sa.Column('average_delivery_time', sa.Numeric(5, 2), nullable=True),
        sa.Column('services_provided', sa.JSON(), nullable=True),
        sa.Column('certifications', sa.JSON(), nullable=True),
        sa.Column('capabilities', sa.JSON(), nullable=True),
        sa.Column('additional_contacts', sa.JSON(), nullable=True),
        sa.Column('communication_preferences', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('requirements', sa.Text(), nullable=True),
        sa.Column('compliance_notes', sa.Text(), nullable=True),
        sa.Column('lead_source', sa.String(length=100), nullable=True),
        sa.Column('insurance_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('insurance_expiry_date', sa.Date(), nullable=True),
        sa.Column('background_check_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('background_check_date', sa.Date(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vendor_id', name='uq_vendors_vendor_id'),
        sa.UniqueConstraint('email', name='uq_vendors_email'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vendors_company_name', 'vendors', ['company_name'])
    op.create_index('ix_vendors_status', 'vendors', ['status'])
    op.create_index('ix_vendors_priority', 'vendors', ['priority'])
    op.create_index('ix_vendors_status_priority', 'vendors', ['status', 'priority'])
    op.create_index('ix_vendors_type_status', 'vendors', ['vendor_type', 'status'])
    op.create_index('ix_vendors_deleted_at', 'vendors', ['deleted_at'])


def downgrade():
    op.drop_table('vendors')
    op.drop_table('customers')
    op.drop_table('session_tokens')
    op.drop_table('users')
