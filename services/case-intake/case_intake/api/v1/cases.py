"""
Cases API endpoints
"""
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError
from typing import Optional, Dict, Any
from datetime import datetime

from case_intake.api.v1.common import render_diagnostics, validate_numeric_id
from case_intake.core.database import get_db
from case_intake.core.errors import CaseNotFoundError, ExtractionError
from case_intake.core.security import Principal, get_current_user
from case_intake.models import Case, Status, TicketStatus
from case_intake.schemas.order import Order
from case_intake.services.case_import import import_case
from case_intake.services.email_service import dispatch_ticket_notifications
from case_intake.services.ticket_service import TicketOptions, create_ticket

router = APIRouter()


class ReceiveCaseRequest(BaseModel):
    case_id: Optional[Any] = Field(default=None, alias="caseId")


class CreateCaseRequest(BaseModel):
    order_data: Optional[Dict[str, Any]] = Field(default=None, alias="orderData")


class TicketCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    template_id: Optional[int] = Field(default=None, alias="templateId")
    ticket_status: TicketStatus = Field(default=TicketStatus.CLOSED, alias="ticketStatus")
    is_due_date_ticket: bool = Field(default=False, alias="isDueDateTicket")
    schedule_date: Optional[datetime] = Field(default=None, alias="ticketScheduleDate")
    schedule_status_id: Optional[int] = Field(default=None, alias="ticketScheduleStatusId")
    assigned_to_user_id: Optional[int] = Field(default=None, alias="assignedToUserId")
    from_address: Optional[str] = Field(default=None, alias="fromAddress")
    to_address: Optional[str] = Field(default=None, alias="toAddress")
    cc_address: Optional[str] = Field(default=None, alias="ccAddress")
    bcc_address: Optional[str] = Field(default=None, alias="bccAddress")
    subject: Optional[str] = None
    message: Optional[str] = None
    override_subject: Optional[str] = Field(default=None, alias="overrideSubject")
    override_message: Optional[str] = Field(default=None, alias="overrideMessage")
    send_email: bool = Field(default=True, alias="sendEmail")


def case_summary(db: Session, case_id: str) -> Optional[Dict[str, Any]]:
    """Case row with its lab-facing status text, or None"""
    row = db.execute(
        select(Case, Status.streamline_options)
        .outerjoin(Status, Case.status_code == Status.status_id)
        .where(Case.case_id == case_id)
    ).first()
    if row is None:
        return None

    case, status_text = row
    return {
        "caseId": case.case_id,
        "patientFirstName": case.patient_first_name,
        "patientLastName": case.patient_last_name,
        "dateReceived": case.date_received.isoformat() if case.date_received else None,
        "dateRequiredBy": case.date_required_by.isoformat() if case.date_required_by else None,
        "isRushOrder": bool(case.is_rush),
        "statusCode": case.status_code,
        "statusStreamlineOptions": status_text,
        "needsItemReview": bool(case.needs_item_review),
    }


@router.post("/receive")
async def receive_case(
    request: ReceiveCaseRequest,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Check whether a case exists, or whether it still has to come from Shopify"""
    case_id = validate_numeric_id(request.case_id, "Case ID", code_prefix="CASE")
    summary = case_summary(db, case_id)

    return {
        "status": "success",
        "data": {
            "caseId": case_id,
            "exists": summary is not None,
            "caseData": summary,
            "shopifyRequired": summary is None,
        },
    }


@router.get("/{case_id}")
async def get_case(
    case_id: str,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Get case details"""
    summary = case_summary(db, case_id)
    if summary is None:
        raise CaseNotFoundError(case_id)
    return {"status": "success", "data": summary}


@router.post("", status_code=201)
async def create_case(
    request: CreateCaseRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Create a case from Shopify order data"""
    if not request.order_data:
        raise ExtractionError("orderData is required")

    try:
        order = Order.model_validate(request.order_data)
    except PydanticValidationError as e:
        raise ExtractionError(f"Failed to extract case data: {e.errors()[0].get('msg', 'invalid order')}")

    result = import_case(db, order, current_user)
    if result.notifications:
        background_tasks.add_task(dispatch_ticket_notifications, result.notifications)

    return {
        "status": "success",
        "message": "Case created successfully",
        "data": {
            "caseId": result.case_id,
            "orderNumber": result.order_number,
            "itemsCreated": result.items_created,
            "needsItemReview": result.needs_item_review,
            "diagnostics": render_diagnostics(result.diagnostics),
        },
    }


@router.post("/{case_id}/tickets", status_code=201)
async def create_case_ticket(
    case_id: str,
    request: TicketCreateRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
):
    """Create a ticket (status notification email) on a case"""
    if db.get(Case, case_id) is None:
        raise CaseNotFoundError(case_id)

    options = TicketOptions(
        case_id=case_id,
        user_id=current_user.user_id,
        **request.model_dump(by_alias=False),
    )
    result = create_ticket(db, options)
    if result.notification is not None:
        background_tasks.add_task(dispatch_ticket_notifications, [result.notification])

    return {
        "status": "success",
        "message": "Ticket created successfully",
        "data": {
            "ticketDetailId": result.case_ticket_detail_id,
            "ticketNumber": result.ticket_number,
            "diagnostics": render_diagnostics(result.diagnostics),
        },
    }
