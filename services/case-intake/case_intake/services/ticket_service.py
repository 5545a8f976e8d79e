"""
Ticket composer

Creates a case ticket with its first detail (an email) from an optional
template, resolving template tokens against the case and logging the
assignment. Sending the email is left to the caller, after commit.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import logging

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from case_intake.core.config import settings
from case_intake.core.errors import PersistenceError
from case_intake.core.outcome import Diagnostic
from case_intake.models import (
    Case, LabUser, EmailTemplate, CaseTicket, CaseTicketDetail, TicketAssignmentLog,
    TicketStatus, TicketAction,
)
from case_intake.services.token_resolver import resolve_tokens

logger = logging.getLogger(__name__)


@dataclass
class TicketOptions:
    """
    Options for a new ticket.

    ``subject``/``message``/``from_address`` replace the template's values and
    are tokenized; ``to``/``cc``/``bcc`` are appended to the template defaults.
    ``override_subject``/``override_message`` are applied last, untokenized.
    """
    case_id: str
    user_id: int
    template_id: Optional[int] = None
    ticket_status: TicketStatus = TicketStatus.CLOSED
    is_due_date_ticket: bool = False
    schedule_date: Optional[datetime] = None
    schedule_status_id: Optional[int] = None
    assigned_to_user_id: Optional[int] = None  # defaults to user_id
    from_address: Optional[str] = None
    to_address: Optional[str] = None
    cc_address: Optional[str] = None
    bcc_address: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None
    override_subject: Optional[str] = None
    override_message: Optional[str] = None
    send_email: bool = True


@dataclass(frozen=True)
class TicketNotification:
    """Everything the email transport needs, captured before the session closes"""
    case_ticket_detail_id: int
    ticket_number: str
    from_address: str
    to_address: str
    cc_address: str
    bcc_address: str
    subject: str
    message: str


@dataclass
class TicketResult:
    case_ticket_detail_id: int
    case_ticket_id: int
    ticket_number: str
    notification: Optional[TicketNotification] = None
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class _TicketContent:
    subject: Optional[str]
    message: Optional[str]
    from_address: Optional[str]
    to_address: Optional[str]
    cc_address: Optional[str]
    bcc_address: Optional[str]
    schedule_status_id: Optional[int]


def merge_addresses(*addresses: Optional[str]) -> str:
    """Semicolon-join the non-empty address lists"""
    return ";".join(address for address in addresses if address)


def next_ticket_number(db: Session, case_id: str) -> int:
    current = db.execute(
        select(func.coalesce(func.max(CaseTicket.ticket_number), 0)).where(CaseTicket.case_id == case_id)
    ).scalar_one()
    return int(current) + 1


def format_ticket_number(case_id: str, ticket_number: int, detail_number: int = 1) -> str:
    return f"{case_id}-{ticket_number}-{detail_number}"


def _template_content(
    db: Session, options: TicketOptions, diagnostics: List[Diagnostic]
) -> _TicketContent:
    content = _TicketContent(
        subject=options.subject,
        message=options.message,
        from_address=options.from_address,
        to_address=options.to_address,
        cc_address=options.cc_address,
        bcc_address=options.bcc_address,
        schedule_status_id=options.schedule_status_id,
    )
    if not options.template_id:
        return content

    template = db.get(EmailTemplate, options.template_id)
    if template is None:
        logger.warning("Email template %s not found for case %s", options.template_id, options.case_id)
        diagnostics.append(Diagnostic(
            code="TEMPLATE_NOT_FOUND",
            message=f"Email template {options.template_id} not found",
            context={"template_id": options.template_id, "case_id": options.case_id},
        ))
        return content

    content.subject = options.subject or template.subject
    content.message = options.message or template.message
    content.from_address = options.from_address or template.default_from_address
    content.to_address = merge_addresses(template.default_to_address, options.to_address)
    content.cc_address = merge_addresses(template.default_cc_address, options.cc_address)
    content.bcc_address = merge_addresses(template.default_bcc_address, options.bcc_address)

    if options.ticket_status == TicketStatus.SCHEDULED:
        content.schedule_status_id = options.schedule_status_id or template.default_scheduled_status_id
    return content


def _tokenize(
    db: Session, text: Optional[str], case_id: str, ticket_display: str, diagnostics: List[Diagnostic]
) -> str:
    resolved = resolve_tokens(db, text, case_id, ticket_display)
    diagnostics.extend(resolved.diagnostics)
    return resolved.value or ""


def _case_user_email(db: Session, case_id: str) -> Optional[str]:
    return db.execute(
        select(LabUser.email).join(Case, Case.user_id == LabUser.user_id).where(Case.case_id == case_id)
    ).scalar_one_or_none()


def _case_status_code(db: Session, case_id: str) -> Optional[int]:
    return db.execute(select(Case.status_code).where(Case.case_id == case_id)).scalar_one_or_none()


def log_assignment(db: Session, detail: CaseTicketDetail, assigned_to: int, assigned_by: int) -> bool:
    """Append an assignment log row unless the latest one already names this assignee"""
    latest = db.execute(
        select(TicketAssignmentLog.assigned_to_user_id)
        .where(TicketAssignmentLog.case_ticket_detail_id == detail.case_ticket_detail_id)
        .order_by(TicketAssignmentLog.ticket_assignment_log_id.desc())
        .limit(1)
    ).first()
    if latest is not None and latest[0] == assigned_to:
        return False

    db.add(TicketAssignmentLog(
        case_ticket_detail_id=detail.case_ticket_detail_id,
        assigned_to_user_id=assigned_to,
        assigned_by_user_id=assigned_by,
    ))
    db.flush()
    return True


def create_ticket(db: Session, options: TicketOptions, commit: bool = True) -> TicketResult:
    """
    Create a ticket and its first detail for a case.

    With ``commit=True`` the composer owns the unit of work: it commits, or
    rolls back and raises PersistenceError. With ``commit=False`` rows are only
    flushed and store errors propagate to the caller's transaction.
    """
    diagnostics: List[Diagnostic] = []
    case_id = options.case_id

    try:
        content = _template_content(db, options, diagnostics)

        number = next_ticket_number(db, case_id)
        display = format_ticket_number(case_id, number)

        from_address = _tokenize(db, content.from_address, case_id, display, diagnostics)
        to_address = _tokenize(db, content.to_address, case_id, display, diagnostics)
        subject = _tokenize(db, content.subject, case_id, display, diagnostics)
        message = _tokenize(db, content.message, case_id, display, diagnostics)

        if not from_address:
            from_address = settings.SUPPORT_EMAIL_ADDRESS
        if not to_address:
            to_address = _case_user_email(db, case_id) or settings.SUPPORT_EMAIL_ADDRESS

        status_code = _case_status_code(db, case_id)

        if options.override_subject:
            subject = options.override_subject
        if options.override_message:
            message = options.override_message

        assigned_to = options.assigned_to_user_id or options.user_id

        ticket = CaseTicket(
            case_id=case_id,
            ticket_number=number,
            status=options.ticket_status,
            is_due_date_ticket=options.is_due_date_ticket,
            schedule_date=options.schedule_date,
            schedule_status_id=content.schedule_status_id,
        )
        db.add(ticket)
        db.flush()

        detail = CaseTicketDetail(
            case_ticket_id=ticket.case_ticket_id,
            assigned_to_user_id=assigned_to,
            detail_number=1,
            action=TicketAction.EMAIL.value,
            from_address=from_address,
            to_address=to_address,
            cc_address=content.cc_address or "",
            bcc_address=content.bcc_address or "",
            email_template_id=options.template_id,
            subject=subject,
            message=message,
            created_by=options.user_id,
            case_status_code=status_code,
        )
        db.add(detail)
        db.flush()

        log_assignment(db, detail, assigned_to, options.user_id)
        ticket_id = ticket.case_ticket_id
        detail_id = detail.case_ticket_detail_id

        if commit:
            db.commit()
    except SQLAlchemyError as e:
        if not commit:
            raise
        db.rollback()
        logger.exception("Error creating ticket for case %s", case_id)
        raise PersistenceError(f"Failed to create ticket for case {case_id}; transaction rolled back") from e

    logger.info("Ticket created for case %s: detail %s", case_id, detail_id)

    notification = None
    if options.send_email:
        notification = TicketNotification(
            case_ticket_detail_id=detail_id,
            ticket_number=display,
            from_address=from_address,
            to_address=to_address,
            cc_address=content.cc_address or "",
            bcc_address=content.bcc_address or "",
            subject=subject,
            message=message,
        )

    return TicketResult(
        case_ticket_detail_id=detail_id,
        case_ticket_id=ticket_id,
        ticket_number=display,
        notification=notification,
        diagnostics=diagnostics,
    )
