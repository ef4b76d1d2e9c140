"""Initial emergency access tables

Revision ID: a7c41e9d2b10
Revises:
Create Date: 2026-10-19 00:01:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'a7c41e9d2b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'medical_record',
        sa.Column('record_id', sa.UUID(), nullable=False),
        sa.Column('subject_id', sa.String(length=64), nullable=False),
        sa.Column('subject_name', sa.String(length=255), nullable=True),
        sa.Column('payload_envelope', sa.Text(), nullable=False, comment='AES-256-GCM envelope'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('last_updated', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('record_id'),
        sa.UniqueConstraint('subject_id', name='uq_medical_record_subject'),
    )

    op.create_table(
        'staff_access',
        sa.Column('entry_id', sa.UUID(), nullable=False),
        sa.Column('staff_id', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False, comment='doctor | nurse | admin'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='pending', comment='pending | approved | rejected'),
        sa.Column('approved_by', sa.String(length=64), nullable=True),
        sa.Column('approval_date', sa.DateTime(), nullable=True),
        sa.Column('specialization', sa.String(length=255), nullable=True),
        sa.Column('department', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('entry_id'),
        sa.UniqueConstraint('staff_id', name='uq_staff_access_staff'),
        sa.CheckConstraint("status IN ('pending', 'approved', 'rejected')", name='ck_staff_access_status'),
        sa.CheckConstraint("role IN ('doctor', 'nurse', 'admin')", name='ck_staff_access_role'),
    )

    op.create_table(
        'disclosure_audit',
        sa.Column('entry_id', sa.UUID(), nullable=False),
        sa.Column('record_id', sa.UUID(), nullable=False),
        sa.Column('principal_id', sa.String(length=64), nullable=False),
        sa.Column('principal_role', sa.String(length=20), nullable=True),
        sa.Column('action', sa.String(length=10), nullable=False, comment='scan | view'),
        sa.Column('accessed_at', sa.DateTime(), nullable=False, server_default=sa.text('NOW()')),
        sa.PrimaryKeyConstraint('entry_id'),
    )
    op.create_index('ix_disclosure_audit_record_id', 'disclosure_audit', ['record_id'], unique=False)
    op.create_index('ix_disclosure_audit_accessed_at', 'disclosure_audit', ['accessed_at'], unique=False)

    # Append-only: reject UPDATE and DELETE at the database level
    op.execute("""
        CREATE OR REPLACE FUNCTION disclosure_audit_append_only() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'disclosure_audit is append-only';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER trg_disclosure_audit_append_only
        BEFORE UPDATE OR DELETE ON disclosure_audit
        FOR EACH ROW EXECUTE FUNCTION disclosure_audit_append_only();
    """)


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_disclosure_audit_append_only ON disclosure_audit")
    op.execute("DROP FUNCTION IF EXISTS disclosure_audit_append_only()")
    op.drop_index('ix_disclosure_audit_accessed_at', table_name='disclosure_audit')
    op.drop_index('ix_disclosure_audit_record_id', table_name='disclosure_audit')
    op.drop_table('disclosure_audit')
    op.drop_table('staff_access')
    op.drop_table('medical_record')
