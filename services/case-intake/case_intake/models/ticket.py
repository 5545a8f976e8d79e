"""
Ticket, ticket detail, assignment log and email template models
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Boolean, Text, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum
from case_intake.core.database import Base


class TicketStatus(str, enum.Enum):
    OPEN = "Open"
    CLOSED = "Closed"
    SCHEDULED = "Scheduled"


class TicketAction(str, enum.Enum):
    EMAIL = "Email"


class EmailTemplate(Base):
    __tablename__ = "email_templates"

    email_template_id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=True)
    subject = Column(String(1000), nullable=True)
    message = Column(Text, nullable=True)
    default_from_address = Column(String(1000), nullable=True)
    default_to_address = Column(String(1000), nullable=True)
    default_cc_address = Column(String(1000), nullable=True)
    default_bcc_address = Column(String(1000), nullable=True)
    default_scheduled_status_id = Column(Integer, nullable=True)


class CaseTicket(Base):
    __tablename__ = "case_tickets"
    # Ticket numbers are allocated as max+1 per case; the constraint turns a
    # concurrent allocation of the same number into an IntegrityError.
    __table_args__ = (UniqueConstraint("case_id", "ticket_number", name="uq_case_tickets_case_number"),)

    case_ticket_id = Column(Integer, primary_key=True, autoincrement=True)
    case_id = Column(String(64), ForeignKey("cases.case_id"), nullable=False, index=True)
    ticket_number = Column(Integer, nullable=False)
    status = Column(
        SQLEnum(TicketStatus, values_callable=lambda members: [m.value for m in members]),
        nullable=False,
        default=TicketStatus.CLOSED,
    )
    is_due_date_ticket = Column(Boolean, nullable=False, default=False)
    schedule_date = Column(DateTime, nullable=True)
    schedule_status_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    case = relationship("Case", back_populates="tickets")
    details = relationship("CaseTicketDetail", back_populates="ticket", order_by="CaseTicketDetail.detail_number")


class CaseTicketDetail(Base):
    __tablename__ = "case_ticket_details"

    case_ticket_detail_id = Column(Integer, primary_key=True, autoincrement=True)
    case_ticket_id = Column(Integer, ForeignKey("case_tickets.case_ticket_id"), nullable=False, index=True)
    assigned_to_user_id = Column(Integer, nullable=True)
    detail_number = Column(Integer, nullable=False, default=1)
    action = Column(String(32), nullable=False, default=TicketAction.EMAIL.value)
    from_address = Column(String(1000), nullable=True)
    to_address = Column(String(1000), nullable=True)
    cc_address = Column(String(1000), nullable=True)
    bcc_address = Column(String(1000), nullable=True)
    email_template_id = Column(Integer, nullable=True)
    subject = Column(String(1000), nullable=True)
    message = Column(Text, nullable=True)
    created_by = Column(Integer, nullable=True)
    case_status_code = Column(Integer, nullable=True)  # snapshot at creation, not a live reference
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    ticket = relationship("CaseTicket", back_populates="details")
    assignment_logs = relationship(
        "TicketAssignmentLog",
        back_populates="detail",
        order_by="TicketAssignmentLog.ticket_assignment_log_id",
    )


class TicketAssignmentLog(Base):
    """Append-only history of who a ticket detail is assigned to"""
    __tablename__ = "ticket_assignment_logs"

    ticket_assignment_log_id = Column(Integer, primary_key=True, autoincrement=True)
    case_ticket_detail_id = Column(
        Integer, ForeignKey("case_ticket_details.case_ticket_detail_id"), nullable=False, index=True
    )
    assigned_to_user_id = Column(Integer, nullable=True)
    assigned_by_user_id = Column(Integer, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Relationships
    detail = relationship("CaseTicketDetail", back_populates="assignment_logs")
