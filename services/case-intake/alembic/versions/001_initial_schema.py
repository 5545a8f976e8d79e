"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def create_enum_if_not_exists(enum_name, enum_values):
    """Create PostgreSQL ENUM type if it doesn't exist"""
    # Escape enum name and values for safety
    enum_name_escaped = enum_name.replace('"', '""')
    values_str = ", ".join(["'" + v.replace("'", "''") + "'" for v in enum_values])
    # Use DO block to check and create atomically
    op.execute(f"""
        DO $$ BEGIN
            IF NOT EXISTS (SELECT 1 FROM pg_type WHERE typname = '{enum_name_escaped}') THEN
                CREATE TYPE "{enum_name_escaped}" AS ENUM ({values_str});
            END IF;
        END $$;
    """)


def upgrade() -> None:
    # Ticket status type may already exist if the lab database was provisioned by hand
    create_enum_if_not_exists('ticketstatus', ['Open', 'Closed', 'Scheduled'])

    # Reference data
    op.create_table(
        'status_groups',
        sa.Column('status_group_id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
    )

    op.create_table(
        'statuses',
        sa.Column('status_id', sa.Integer(), primary_key=True),
        sa.Column('status_group_id', sa.Integer(), sa.ForeignKey('status_groups.status_group_id'), nullable=True),
        sa.Column('streamline_options', sa.String(255), nullable=True),
        sa.Column('doctor_view', sa.String(255), nullable=True),
        sa.Column('description', sa.String(1000), nullable=True),
    )

    op.create_table(
        'customers',
        sa.Column('customer_id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('account_number', sa.String(64), nullable=True),
        sa.Column('primary_doctor_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(64), nullable=True),
        sa.Column('address1', sa.String(255), nullable=True),
        sa.Column('address2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(128), nullable=True),
        sa.Column('state', sa.String(64), nullable=True),
        sa.Column('zip', sa.String(32), nullable=True),
    )

    op.create_table(
        'lab_users',
        sa.Column('user_id', sa.Integer(), primary_key=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.customer_id'), nullable=True, index=True),
        sa.Column('user_name', sa.String(255), nullable=True),
        sa.Column('user_login', sa.String(255), nullable=True, index=True),
        sa.Column('title', sa.String(32), nullable=True),
        sa.Column('first_name', sa.String(255), nullable=True),
        sa.Column('last_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('fax', sa.String(64), nullable=True),
        sa.Column('case_tracking_email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'customer_ship_tos',
        sa.Column('ship_to_id', sa.Integer(), primary_key=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.customer_id'), nullable=True, index=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('address1', sa.String(255), nullable=True),
        sa.Column('address2', sa.String(255), nullable=True),
        sa.Column('city', sa.String(128), nullable=True),
        sa.Column('state', sa.String(64), nullable=True),
        sa.Column('zip', sa.String(32), nullable=True),
        sa.Column('phone', sa.String(64), nullable=True),
        sa.Column('inbound_carrier_name', sa.String(255), nullable=True),
    )

    op.create_table(
        'providers',
        sa.Column('provider_id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('contact_name', sa.String(255), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('cc_email', sa.String(255), nullable=True),
    )

    op.create_table(
        'email_templates',
        sa.Column('email_template_id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('subject', sa.String(1000), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('default_from_address', sa.String(1000), nullable=True),
        sa.Column('default_to_address', sa.String(1000), nullable=True),
        sa.Column('default_cc_address', sa.String(1000), nullable=True),
        sa.Column('default_bcc_address', sa.String(1000), nullable=True),
        sa.Column('default_scheduled_status_id', sa.Integer(), nullable=True),
    )

    # Cases
    op.create_table(
        'cases',
        sa.Column('case_id', sa.String(64), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('lab_users.user_id'), nullable=True, index=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customers.customer_id'), nullable=True),
        sa.Column('lab_id', sa.Integer(), sa.ForeignKey('providers.provider_id'), nullable=True),
        sa.Column('ship_to_id', sa.Integer(), sa.ForeignKey('customer_ship_tos.ship_to_id'), nullable=True),
        sa.Column('ship_carrier_id', sa.Integer(), nullable=True),
        sa.Column('status_code', sa.Integer(), sa.ForeignKey('statuses.status_id'), nullable=True, index=True),
        sa.Column('patient_first_name', sa.String(255), nullable=True),
        sa.Column('patient_last_name', sa.String(255), nullable=True),
        sa.Column('patient_num', sa.String(255), nullable=True),
        sa.Column('shopify_email', sa.String(255), nullable=True),
        sa.Column('rx_instructions', sa.String(4000), nullable=True),
        sa.Column('date_received', sa.DateTime(), nullable=False, index=True),
        sa.Column('date_required_by', sa.DateTime(), nullable=True),
        sa.Column('date_estimated_return', sa.DateTime(), nullable=True),
        sa.Column('date_ship_to_lab', sa.DateTime(), nullable=True),
        sa.Column('ship_to_lab_track_num', sa.String(255), nullable=True),
        sa.Column('lab_ref_number', sa.String(255), nullable=True),
        sa.Column('invoice_date', sa.DateTime(), nullable=True),
        sa.Column('lab_invoice_fee', sa.Numeric(10, 2), nullable=True),
        sa.Column('clinic_po_number', sa.String(255), nullable=True),
        sa.Column('invoice_approved_for_payment', sa.String(1), nullable=False, server_default='N'),
        sa.Column('doctor_reviewed', sa.String(1), nullable=False, server_default='Y'),
        sa.Column('is_rush', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('line_items_applied', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('needs_item_review', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('case_type', sa.String(64), nullable=True),
    )

    op.create_table(
        'case_transactions',
        sa.Column('transaction_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('case_id', sa.String(64), sa.ForeignKey('cases.case_id'), nullable=False, index=True),
        sa.Column('employee_id', sa.String(255), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('status_code', sa.Integer(), nullable=False),
        sa.Column('ship_ref_num', sa.String(255), nullable=True),
        sa.Column('ship_company', sa.String(255), nullable=True),
        sa.Column('ship_carrier_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, index=True),
    )

    op.create_table(
        'case_items',
        sa.Column('case_item_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('case_id', sa.String(64), sa.ForeignKey('cases.case_id'), nullable=False, index=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('tooth', sa.String(64), nullable=False, server_default=''),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('shade', sa.String(64), nullable=True),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'case_item_teeth',
        sa.Column('case_item_tooth_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('case_item_id', sa.Integer(), sa.ForeignKey('case_items.case_item_id'), nullable=False, index=True),
        sa.Column('item_tooth', sa.String(32), nullable=False),
    )

    # Tickets
    op.create_table(
        'case_tickets',
        sa.Column('case_ticket_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('case_id', sa.String(64), sa.ForeignKey('cases.case_id'), nullable=False, index=True),
        sa.Column('ticket_number', sa.Integer(), nullable=False),
        sa.Column(
            'status',
            postgresql.ENUM('Open', 'Closed', 'Scheduled', name='ticketstatus', create_type=False),
            nullable=False,
        ),
        sa.Column('is_due_date_ticket', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('schedule_date', sa.DateTime(), nullable=True),
        sa.Column('schedule_status_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('case_id', 'ticket_number', name='uq_case_tickets_case_number'),
    )

    op.create_table(
        'case_ticket_details',
        sa.Column('case_ticket_detail_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('case_ticket_id', sa.Integer(), sa.ForeignKey('case_tickets.case_ticket_id'), nullable=False, index=True),
        sa.Column('assigned_to_user_id', sa.Integer(), nullable=True),
        sa.Column('detail_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('action', sa.String(32), nullable=False, server_default='Email'),
        sa.Column('from_address', sa.String(1000), nullable=True),
        sa.Column('to_address', sa.String(1000), nullable=True),
        sa.Column('cc_address', sa.String(1000), nullable=True),
        sa.Column('bcc_address', sa.String(1000), nullable=True),
        sa.Column('email_template_id', sa.Integer(), nullable=True),
        sa.Column('subject', sa.String(1000), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('case_status_code', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'ticket_assignment_logs',
        sa.Column('ticket_assignment_log_id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            'case_ticket_detail_id', sa.Integer(),
            sa.ForeignKey('case_ticket_details.case_ticket_detail_id'), nullable=False, index=True,
        ),
        sa.Column('assigned_to_user_id', sa.Integer(), nullable=True),
        sa.Column('assigned_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('ticket_assignment_logs')
    op.drop_table('case_ticket_details')
    op.drop_table('case_tickets')
    op.drop_table('case_item_teeth')
    op.drop_table('case_items')
    op.drop_table('case_transactions')
    op.drop_table('cases')
    op.drop_table('email_templates')
    op.drop_table('providers')
    op.drop_table('customer_ship_tos')
    op.drop_table('lab_users')
    op.drop_table('customers')
    op.drop_table('statuses')
    op.drop_table('status_groups')
    op.execute('DROP TYPE IF EXISTS ticketstatus')
