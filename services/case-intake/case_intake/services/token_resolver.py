"""
Template token resolver

Replaces ``@@TOKEN`` placeholders in ticket text with live case data. One
denormalized row (case, status, status group, owning user, the user's customer,
ship-to and lab) feeds the whole token table.
"""
from datetime import date, datetime
from typing import Dict, Iterable, Optional, Union
import logging
import re

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from case_intake.core.config import settings
from case_intake.core.outcome import Outcome
from case_intake.models import Case, Status, StatusGroup, LabUser, Customer, CustomerShipTo, Provider

logger = logging.getLogger(__name__)

TOKEN_MARKER = "@@"
DATE_FORMAT = "%m/%d/%Y"


def format_date(value: Optional[Union[date, datetime]]) -> str:
    if value is None:
        return ""
    return value.strftime(DATE_FORMAT)


def format_address(
    name: Optional[str],
    address1: Optional[str],
    address2: Optional[str],
    city: Optional[str],
    state: Optional[str],
    zip_code: Optional[str],
) -> str:
    """
    Multi-line postal address.

    Name, line 1 and line 2 each get their own line, then ``City, ST 12345``.
    Blank parts are dropped together with their separators.
    """
    lines = [part for part in (name, address1) if part]
    if address2 and address2.strip():
        lines.append(address2)

    locality = " ".join(part for part in (f"{city}," if city else "", state, zip_code) if part)
    if locality:
        lines.append(locality)
    return "\r\n".join(lines)


def _join(*parts: Optional[str]) -> str:
    return " ".join(part or "" for part in parts).strip()


def build_token_map(
    case: Case,
    ticket_number: str,
    status: Optional[Status] = None,
    group: Optional[StatusGroup] = None,
    user: Optional[LabUser] = None,
    customer: Optional[Customer] = None,
    ship_to: Optional[CustomerShipTo] = None,
    lab: Optional[Provider] = None,
    today: Optional[date] = None,
) -> Dict[str, str]:
    """Token -> replacement text. Every value is a string, never None."""
    status = status or Status()
    group = group or StatusGroup()
    user = user or LabUser()
    customer = customer or Customer()
    ship_to = ship_to or CustomerShipTo()
    lab = lab or Provider()

    fax_email = f"{user.fax}@{settings.FAX_EMAIL_DOMAIN}" if user.fax else ""
    doctor_last = _join(user.title, user.last_name)

    return {
        "@@CASE_ID": str(case.case_id),
        "@@TODAY": format_date(today or date.today()),
        "@@TICKET_NUMBER": ticket_number or "",

        "@@PATIENT_NAME": (
            f"{case.patient_first_name or ''} {case.patient_last_name or ''} #{case.patient_num or ''}"
        ).strip(),
        "@@PATIENT_FIRST": case.patient_first_name or "",
        "@@PATIENT_LAST": case.patient_last_name or "",
        "@@PATIENT_NUMBER": case.patient_num or "",

        "@@DOCTOR_NAME": _join(user.title, user.first_name, user.last_name),
        "@@DOCTOR_LNAME": doctor_last,
        "@@DOCTOR_LASTNAME": doctor_last,
        "@@DOCTOR_LOGIN": user.user_login or "",
        "@@USERLOGIN": user.user_login or "",
        "@@DOCTOR_SUPPORT_EMAIL": user.email or "",
        "@@DOCTOR_TRACKING_EMAIL": user.case_tracking_email or "",
        "@@DOCTOR_FAX": user.fax or "",
        "@@DOCTOR_FAX_EMAIL": fax_email,
        "@@DOCTOR_ID": str(user.user_id) if user.user_id is not None else "",
        "@@CASEEMPLOYEEFIRST": user.first_name or "",
        "@@DATE_USER_CREATED": format_date(user.created_at),

        "@@CUSTOMER_NAME": customer.display_name or "",
        "@@CUSTOMER_ACCOUNT_NUMBER": customer.account_number or "",
        "@@PRIMARY_DOCTOR": customer.primary_doctor_name or "",
        "@@CUSTOMER_BILLING_EMAIL": customer.email or "",
        "@@CUSTOMER_ACCOUNTING_EMAIL": customer.email or "",
        "@@BILLINGPHONE": customer.phone or "",

        "@@CASECUSTOMERBILLTO": format_address(
            customer.name, customer.address1, customer.address2,
            customer.city, customer.state, customer.zip,
        ),
        "@@CASECUSTOMERSHIPTO": format_address(
            ship_to.name, ship_to.address1, ship_to.address2,
            ship_to.city, ship_to.state, ship_to.zip,
        ),
        "@@SHIPPINGPHONE": ship_to.phone or "",
        "@@INBOUND_CARRIER": ship_to.inbound_carrier_name or "",

        "@@STATUS_STREAMLINE_OPTIONS": status.streamline_options or "",
        "@@STATUS_DOCTOR_VIEW": status.doctor_view or "",
        "@@STATUS_DESCRIPTION": status.description or "",
        "@@STATUS_GROUP": group.name or "",
        "@@STATUS": status.doctor_view or "",

        "@@DATE_RECEIVED": format_date(case.date_received),
        "@@DUE_DATE": format_date(case.date_required_by),
        "@@DATE_DUE": format_date(case.date_required_by),
        "@@DATE_ESTIMATED_RETURN": format_date(case.date_estimated_return),
        "@@CASE_DATE_SHIP_TO_LAB": format_date(case.date_ship_to_lab),

        "@@LABNAME": lab.name or "",
        "@@LABCONTACTNAME1": lab.contact_name or "",
        "@@LABEMAIL": lab.email or "",
        "@@LABCCEMAIL": lab.cc_email or "",
        "@@LAB_REF_NUMBER": case.lab_ref_number or "",
        "@@CASE_SHIP_TO_LAB_TRACK_NUM": case.ship_to_lab_track_num or "",

        "@@SHOPIFY_EMAIL": case.shopify_email or "",
    }


def token_pattern(tokens: Iterable[str]) -> "re.Pattern[str]":
    """
    One alternation over every token, longest first, so ``@@STATUS`` can never
    match the head of ``@@STATUS_GROUP``.
    """
    ordered = sorted(tokens, key=len, reverse=True)
    return re.compile("|".join(re.escape(token) for token in ordered))


def substitute_tokens(text: str, mapping: Dict[str, str]) -> str:
    """Literal, global, single-pass replacement; replacement values are not re-scanned"""
    if not mapping:
        return text
    return token_pattern(mapping).sub(lambda match: mapping[match.group(0)], text)


def fetch_token_row(db: Session, case_id: str):
    statement = (
        select(Case, Status, StatusGroup, LabUser, Customer, CustomerShipTo, Provider)
        .select_from(Case)
        .outerjoin(Status, Case.status_code == Status.status_id)
        .outerjoin(StatusGroup, Status.status_group_id == StatusGroup.status_group_id)
        .outerjoin(LabUser, Case.user_id == LabUser.user_id)
        .outerjoin(Customer, LabUser.customer_id == Customer.customer_id)
        .outerjoin(CustomerShipTo, Case.ship_to_id == CustomerShipTo.ship_to_id)
        .outerjoin(Provider, Case.lab_id == Provider.provider_id)
        .where(Case.case_id == case_id)
    )
    return db.execute(statement).first()


def resolve_tokens(
    db: Session,
    text: Optional[str],
    case_id: str,
    ticket_number: str = "",
    today: Optional[date] = None,
) -> Outcome[str]:
    """
    Resolve every ``@@TOKEN`` in text against case data.

    Never raises: an unknown case or a failing query leaves the text as it was
    and is reported as a diagnostic on the outcome.
    """
    if not text or TOKEN_MARKER not in text:
        return Outcome(value=text or "")

    outcome = Outcome(value=text)
    try:
        # A failed read must not poison the caller's transaction
        with db.begin_nested():
            row = fetch_token_row(db, case_id)
    except SQLAlchemyError as e:
        logger.warning("Token replacement failed for case %s: %s", case_id, e)
        outcome.warn("TOKEN_QUERY_FAILED", f"Token replacement failed: {e}", case_id=case_id)
        return outcome

    if row is None:
        logger.warning("No case data found for case %s, returning original text", case_id)
        outcome.warn("TOKEN_CASE_NOT_FOUND", "No case data found for token replacement", case_id=case_id)
        return outcome

    case, status, group, user, customer, ship_to, lab = row
    mapping = build_token_map(
        case, ticket_number,
        status=status, group=group, user=user, customer=customer,
        ship_to=ship_to, lab=lab, today=today,
    )
    outcome.value = substitute_tokens(text, mapping)
    return outcome
