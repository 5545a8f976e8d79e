"""
Case, case transaction and case item models
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Boolean, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime
from case_intake.core.database import Base


class ToothLocation:
    UPPER = "Upper"
    LOWER = "Lower"
    BOTH = "Upper, Lower"
    NONE = ""


class Case(Base):
    __tablename__ = "cases"

    # The Shopify order name doubles as the case key; the primary key is the
    # store-level guard against importing an order twice.
    case_id = Column(String(64), primary_key=True)
    user_id = Column(Integer, ForeignKey("lab_users.user_id"), nullable=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.customer_id"), nullable=True)
    lab_id = Column(Integer, ForeignKey("providers.provider_id"), nullable=True)
    ship_to_id = Column(Integer, ForeignKey("customer_ship_tos.ship_to_id"), nullable=True)
    ship_carrier_id = Column(Integer, nullable=True)
    status_code = Column(Integer, ForeignKey("statuses.status_id"), nullable=True, index=True)

    patient_first_name = Column(String(255), nullable=True)
    patient_last_name = Column(String(255), nullable=True)
    patient_num = Column(String(255), nullable=True)
    shopify_email = Column(String(255), nullable=True)
    rx_instructions = Column(String(4000), nullable=True)

    date_received = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    date_required_by = Column(DateTime, nullable=True)
    date_estimated_return = Column(DateTime, nullable=True)
    date_ship_to_lab = Column(DateTime, nullable=True)
    ship_to_lab_track_num = Column(String(255), nullable=True)
    lab_ref_number = Column(String(255), nullable=True)

    invoice_date = Column(DateTime, nullable=True)
    lab_invoice_fee = Column(Numeric(10, 2), nullable=True, default=0)
    clinic_po_number = Column(String(255), nullable=True)
    invoice_approved_for_payment = Column(String(1), nullable=False, default="N")
    doctor_reviewed = Column(String(1), nullable=False, default="Y")
    is_rush = Column(Boolean, nullable=False, default=False)

    # Review flags set once line-item processing has run
    line_items_applied = Column(Boolean, nullable=False, default=False)
    needs_item_review = Column(Boolean, nullable=False, default=False)
    case_type = Column(String(64), nullable=True)

    # Relationships
    status = relationship("Status")
    user = relationship("LabUser")
    transactions = relationship("CaseTransaction", back_populates="case", order_by="CaseTransaction.created_at")
    items = relationship("CaseItem", back_populates="case", order_by="CaseItem.case_item_id")
    tickets = relationship("CaseTicket", back_populates="case", order_by="CaseTicket.ticket_number")


class CaseTransaction(Base):
    """Append-only status/context history for a case"""
    __tablename__ = "case_transactions"

    transaction_id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(String(64), ForeignKey("cases.case_id"), nullable=False, index=True)
    employee_id = Column(String(255), nullable=True)
    user_id = Column(Integer, nullable=True)
    status_code = Column(Integer, nullable=False)
    ship_ref_num = Column(String(255), nullable=True)
    ship_company = Column(String(255), nullable=True)
    ship_carrier_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

    # Relationships
    case = relationship("Case", back_populates="transactions")


class CaseItem(Base):
    __tablename__ = "case_items"

    case_item_id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(String(64), ForeignKey("cases.case_id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    tooth = Column(String(64), nullable=False, default="")
    quantity = Column(Integer, nullable=False, default=1)
    shade = Column(String(64), nullable=True)
    unit_price = Column(Numeric(10, 2), nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    case = relationship("Case", back_populates="items")
    teeth = relationship("CaseItemTooth", back_populates="item", order_by="CaseItemTooth.case_item_tooth_id")


class CaseItemTooth(Base):
    __tablename__ = "case_item_teeth"

    case_item_tooth_id = Column(Integer, primary_key=True, autoincrement=True)
    case_item_id = Column(Integer, ForeignKey("case_items.case_item_id"), nullable=False, index=True)
    item_tooth = Column(String(32), nullable=False)  # "Upper" or "Lower"

    # Relationships
    item = relationship("CaseItem", back_populates="teeth")
