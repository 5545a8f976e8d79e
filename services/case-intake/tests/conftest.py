"""
Shared test fixtures: in-memory database, intake reference data, sample orders
"""
import os

# The app engine is created at import time; keep it off PostgreSQL in tests.
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from case_intake.core.config import settings
from case_intake.core.database import Base
from case_intake.core.security import Principal
from case_intake.models import (
    Case, Customer, CustomerShipTo, EmailTemplate, LabUser, Provider, Status, StatusGroup
)


def make_engine():
    """SQLite engine shared across threads, with working SAVEPOINTs"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_engine():
    engine = make_engine()
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Create test database session"""
    Session = sessionmaker(bind=db_engine, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def reference_data(db_session):
    """Rows the Shopify intake channel points at"""
    group = StatusGroup(status_group_id=1, name="In Production")
    status = Status(
        status_id=settings.INTAKE_INITIAL_STATUS_CODE,
        status_group_id=1,
        streamline_options="Received",
        doctor_view="Case Received",
        description="Case received from storefront",
    )
    customer = Customer(
        customer_id=settings.INTAKE_CUSTOMER_ID,
        name="Shopify Orders",
        display_name="Shopify Storefront",
        account_number="SHOP-001",
        primary_doctor_name="Dr. Jane Smith",
        email="billing@example.com",
        phone="555-0100",
        address1="100 Commerce St",
        address2="",
        city="Austin",
        state="TX",
        zip="78701",
    )
    user = LabUser(
        user_id=settings.INTAKE_LAB_USER_ID,
        customer_id=settings.INTAKE_CUSTOMER_ID,
        user_name="shopify",
        user_login="shopify.intake",
        title="Dr.",
        first_name="Jane",
        last_name="Smith",
        email="intake@example.com",
        fax="5550101",
        case_tracking_email="tracking@example.com",
        created_at=datetime(2023, 1, 9),
    )
    ship_to = CustomerShipTo(
        ship_to_id=settings.INTAKE_SHIP_TO_ID,
        customer_id=settings.INTAKE_CUSTOMER_ID,
        name="Smith Dental",
        address1="200 Main St",
        address2="Suite 4",
        city="Austin",
        state="TX",
        zip="78702",
        phone="555-0102",
        inbound_carrier_name="UPS",
    )
    lab = Provider(
        provider_id=settings.INTAKE_LAB_ID,
        name="Partner Lab",
        contact_name="Lee",
        email="lab@example.com",
        cc_email="lab-cc@example.com",
    )
    no_items_template = EmailTemplate(
        email_template_id=settings.NO_ITEMS_TEMPLATE_ID,
        name="No line items",
        subject="Case @@CASE_ID needs item review",
        message="Order for @@PATIENT_NAME had no encoded items. Ticket @@TICKET_NUMBER.",
        default_to_address="review@example.com",
    )
    db_session.add_all([group, status, customer, user, ship_to, lab, no_items_template])
    db_session.commit()
    return {"status": status, "customer": customer, "user": user, "ship_to": ship_to, "lab": lab}


@pytest.fixture
def seeded_case(db_session, reference_data):
    """An already-imported case"""
    case = Case(
        case_id="1001",
        user_id=settings.INTAKE_LAB_USER_ID,
        customer_id=settings.INTAKE_CUSTOMER_ID,
        lab_id=settings.INTAKE_LAB_ID,
        ship_to_id=settings.INTAKE_SHIP_TO_ID,
        ship_carrier_id=settings.INTAKE_CARRIER_ID,
        status_code=settings.INTAKE_INITIAL_STATUS_CODE,
        patient_first_name="John",
        patient_last_name="Doe",
        patient_num="1001",
        shopify_email="john@example.com",
        rx_instructions="Night guard",
        date_received=datetime(2024, 3, 5, 9, 30),
        date_required_by=datetime(2024, 3, 19, 9, 30),
        date_estimated_return=datetime(2024, 3, 19, 9, 30),
        lab_ref_number="LAB-77",
    )
    db_session.add(case)
    db_session.commit()
    return case


@pytest.fixture
def principal():
    return Principal(user_id=42, user_name="jdoe")


@pytest.fixture
def order_payload():
    """Order as the portal posts it (flattened lists)"""
    return {
        "name": "88675969",
        "email": "order@example.com",
        "note": "Please rush if possible",
        "customer": {"firstName": "John", "lastName": "Doe", "email": "john@example.com"},
        "lineItems": [
            {"sku": "--A1-UL-R33330.1--", "title": "Night Guard", "quantity": 1},
        ],
        "shippingLines": [{"code": "Standard", "title": "Standard Shipping"}],
    }
