"""
Case import orchestrator

Turns one Shopify order into a lab case in a single unit of work:

1. extract and validate case data (no writes on failure)
2. reject orders that were already imported
3. insert the case with the intake channel defaults
4. insert the opening case transaction
5. decode encoded SKUs into case items, or open a review ticket when there
   are none; failures here are contained in a savepoint and reported as
   diagnostics so the case itself still imports
6. commit
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from case_intake.core.config import settings
from case_intake.core.errors import DuplicateCaseError, PersistenceError
from case_intake.core.outcome import Diagnostic, Outcome
from case_intake.core.security import Principal
from case_intake.models import Case, CaseItem, CaseItemTooth, TicketStatus
from case_intake.schemas.order import Order
from case_intake.services.case_transaction_service import record_case_transaction
from case_intake.services.order_extractor import ExtractedCase, extract_case_data
from case_intake.services.sku_decoder import DecodedSku, collect_order_skus, decode_sku
from case_intake.services.ticket_service import TicketNotification, TicketOptions, create_ticket

logger = logging.getLogger(__name__)


@dataclass
class LineItemSummary:
    items_created: int = 0
    fallback_ticket_detail_id: Optional[int] = None
    notifications: List[TicketNotification] = field(default_factory=list)


@dataclass
class ImportResult:
    case_id: str
    order_number: str
    items_created: int = 0
    needs_item_review: bool = False
    fallback_ticket_detail_id: Optional[int] = None
    notifications: List[TicketNotification] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


def case_exists(db: Session, case_id: str) -> bool:
    return db.execute(select(Case.case_id).where(Case.case_id == case_id)).first() is not None


def build_case(extracted: ExtractedCase, now: datetime) -> Case:
    """
    New case row for the Shopify intake channel.

    Rush orders are required back sooner, but the estimated return date is
    the standard window either way.
    """
    required_days = settings.RUSH_REQUIRED_DAYS if extracted.is_rush else settings.STANDARD_REQUIRED_DAYS
    return Case(
        case_id=extracted.case_id,
        user_id=settings.INTAKE_LAB_USER_ID,
        customer_id=settings.INTAKE_CUSTOMER_ID,
        lab_id=settings.INTAKE_LAB_ID,
        ship_to_id=settings.INTAKE_SHIP_TO_ID,
        ship_carrier_id=settings.INTAKE_CARRIER_ID,
        status_code=settings.INTAKE_INITIAL_STATUS_CODE,
        patient_first_name=extracted.first_name,
        patient_last_name=extracted.last_name,
        patient_num=extracted.order_number,
        shopify_email=extracted.email,
        rx_instructions=extracted.instructions,
        date_received=now,
        date_required_by=now + timedelta(days=required_days),
        date_estimated_return=now + timedelta(days=settings.ESTIMATED_RETURN_DAYS),
        invoice_date=now,
        lab_invoice_fee=0,
        clinic_po_number=extracted.order_number,
        invoice_approved_for_payment="N",
        doctor_reviewed="Y",
        is_rush=extracted.is_rush,
    )


def add_case_item(db: Session, case_id: str, decoded: DecodedSku) -> CaseItem:
    """One case item plus a tooth row per arch it covers"""
    item = CaseItem(
        case_id=case_id,
        name=decoded.product,
        tooth=decoded.tooth_location,
        quantity=decoded.quantity,
        shade=decoded.shade,
    )
    db.add(item)
    db.flush()

    for arch in decoded.arches:
        db.add(CaseItemTooth(case_item_id=item.case_item_id, item_tooth=arch))
    db.flush()
    return item


def process_order_line_items(db: Session, order: Order, case_id: str, user_id: int) -> Outcome[LineItemSummary]:
    """
    Create case items for every encoded SKU in the order.

    Each SKU gets its own savepoint, so a bad one is skipped without losing
    the rest. An order with nothing decodable gets an open review ticket
    instead of items.
    """
    outcome = Outcome(value=LineItemSummary())

    decoded_skus = []
    for sku in collect_order_skus(order):
        decoded = decode_sku(sku)
        if decoded is None:
            logger.warning("Invalid SKU format: %s", sku)
            outcome.warn("INVALID_SKU", f"Invalid SKU format: {sku}", case_id=case_id, sku=sku)
            continue
        decoded_skus.append(decoded)

    if not decoded_skus:
        logger.info("No valid SKUs found for case %s, creating ticket", case_id)
        with db.begin_nested():
            ticket = create_ticket(
                db,
                TicketOptions(
                    case_id=case_id,
                    user_id=user_id,
                    template_id=settings.NO_ITEMS_TEMPLATE_ID,
                    ticket_status=TicketStatus.OPEN,
                ),
                commit=False,
            )
        outcome.diagnostics.extend(ticket.diagnostics)
        outcome.value.fallback_ticket_detail_id = ticket.case_ticket_detail_id
        if ticket.notification is not None:
            outcome.value.notifications.append(ticket.notification)
        return outcome

    for decoded in decoded_skus:
        try:
            with db.begin_nested():
                add_case_item(db, case_id, decoded)
        except SQLAlchemyError as e:
            logger.warning("Error processing SKU %s for case %s: %s", decoded.sku, case_id, e)
            outcome.warn("SKU_INSERT_FAILED", f"Error processing SKU {decoded.sku}", case_id=case_id, sku=decoded.sku)
            continue
        outcome.value.items_created += 1
        logger.info(
            "Processed SKU: %s -> Product: %s, Tooth: %s, Shade: %s",
            decoded.sku, decoded.product, decoded.tooth_location, decoded.shade,
        )

    return outcome


def import_case(db: Session, order: Order, principal: Principal, now: Optional[datetime] = None) -> ImportResult:
    """
    Import a Shopify order as a new case.

    Raises ExtractionError for unusable orders and DuplicateCaseError for
    orders already imported, both before anything is written, and
    PersistenceError when the store fails (the transaction is rolled back).
    """
    extracted = extract_case_data(order, principal.user_id)
    case_id = extracted.case_id
    now = now or datetime.utcnow()

    logger.info("Creating case from order %s", extracted.order_number)

    try:
        if case_exists(db, case_id):
            db.rollback()
            raise DuplicateCaseError(case_id)

        case = build_case(extracted, now)
        db.add(case)
        record_case_transaction(
            db,
            case_id=case_id,
            status_code=settings.INTAKE_INITIAL_STATUS_CODE,
            employee_id=principal.user_name,
            user_id=principal.user_id,
            ship_carrier_id=settings.INTAKE_CARRIER_ID,
        )
        db.flush()
    except IntegrityError as e:
        db.rollback()
        if case_exists(db, case_id):
            raise DuplicateCaseError(case_id) from e
        logger.exception("Error creating case %s", case_id)
        raise PersistenceError(f"Failed to create case {case_id}; transaction rolled back") from e
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error creating case %s", case_id)
        raise PersistenceError(f"Failed to create case {case_id}; transaction rolled back") from e

    result = ImportResult(case_id=case_id, order_number=extracted.order_number)

    try:
        with db.begin_nested():
            items = process_order_line_items(db, order, case_id, principal.user_id)
    except Exception as e:
        logger.exception("Error processing line items for case %s", case_id)
        result.diagnostics.append(Diagnostic(
            code="LINE_ITEMS_FAILED",
            message=f"Error processing line items: {e}",
            context={"case_id": case_id},
        ))
        result.needs_item_review = True
    else:
        result.diagnostics.extend(items.diagnostics)
        result.items_created = items.value.items_created
        result.fallback_ticket_detail_id = items.value.fallback_ticket_detail_id
        result.notifications.extend(items.value.notifications)
        # missing or partially inserted items need a human
        result.needs_item_review = (
            items.value.fallback_ticket_detail_id is not None
            or items.value.items_created == 0
            or items.has("SKU_INSERT_FAILED")
        )
        case.line_items_applied = True

    case.needs_item_review = result.needs_item_review
    case.case_type = settings.INTAKE_CASE_TYPE

    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("Error committing case %s", case_id)
        raise PersistenceError(f"Failed to create case {case_id}; transaction rolled back") from e

    logger.info("Case %s created successfully", case_id)
    return result
