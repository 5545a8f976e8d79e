"""
Reference data models (statuses, users, customers, ship-tos, labs)

These rows are maintained by the lab's back office; the intake service only
reads them, mostly to resolve template tokens.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer
from sqlalchemy.orm import relationship
from datetime import datetime
from case_intake.core.database import Base


class StatusGroup(Base):
    __tablename__ = "status_groups"

    status_group_id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)

    statuses = relationship("Status", back_populates="group")


class Status(Base):
    __tablename__ = "statuses"

    status_id = Column(Integer, primary_key=True)
    status_group_id = Column(Integer, ForeignKey("status_groups.status_group_id"), nullable=True)
    streamline_options = Column(String(255), nullable=True)  # lab-facing label
    doctor_view = Column(String(255), nullable=True)  # doctor-facing label
    description = Column(String(1000), nullable=True)

    group = relationship("StatusGroup", back_populates="statuses")


class Customer(Base):
    __tablename__ = "customers"

    customer_id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=True)
    display_name = Column(String(255), nullable=True)
    account_number = Column(String(64), nullable=True)
    primary_doctor_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    address1 = Column(String(255), nullable=True)
    address2 = Column(String(255), nullable=True)
    city = Column(String(128), nullable=True)
    state = Column(String(64), nullable=True)
    zip = Column(String(32), nullable=True)

    users = relationship("LabUser", back_populates="customer")
    ship_tos = relationship("CustomerShipTo", back_populates="customer")


class LabUser(Base):
    """A doctor, lab or admin login; cases are owned by one"""
    __tablename__ = "lab_users"

    user_id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.customer_id"), nullable=True, index=True)
    user_name = Column(String(255), nullable=True)
    user_login = Column(String(255), nullable=True, index=True)
    title = Column(String(32), nullable=True)  # e.g. "Dr."
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    fax = Column(String(64), nullable=True)
    case_tracking_email = Column(String(255), nullable=True)
    created_at = Column(DateTime, nullable=True, default=datetime.utcnow)

    customer = relationship("Customer", back_populates="users")


class CustomerShipTo(Base):
    __tablename__ = "customer_ship_tos"

    ship_to_id = Column(Integer, primary_key=True)
    customer_id = Column(Integer, ForeignKey("customers.customer_id"), nullable=True, index=True)
    name = Column(String(255), nullable=True)
    address1 = Column(String(255), nullable=True)
    address2 = Column(String(255), nullable=True)
    city = Column(String(128), nullable=True)
    state = Column(String(64), nullable=True)
    zip = Column(String(32), nullable=True)
    phone = Column(String(64), nullable=True)
    inbound_carrier_name = Column(String(255), nullable=True)

    customer = relationship("Customer", back_populates="ship_tos")


class Provider(Base):
    """A fabrication lab cases are routed to"""
    __tablename__ = "providers"

    provider_id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=True)
    contact_name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)
    cc_email = Column(String(255), nullable=True)
