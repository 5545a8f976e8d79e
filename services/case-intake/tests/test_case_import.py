"""
Tests for importing Shopify orders as cases
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from case_intake.core.errors import DuplicateCaseError, ExtractionError
from case_intake.models import (
    Case, CaseItem, CaseItemTooth, CaseTicket, CaseTicketDetail, CaseTransaction, TicketStatus
)
from case_intake.schemas.order import Order
from case_intake.services import case_import
from case_intake.services.case_import import import_case

NOW = datetime(2024, 6, 3, 12, 0)


def test_import_creates_case_and_transaction(db_session, reference_data, principal, order_payload):
    result = import_case(db_session, Order.model_validate(order_payload), principal, now=NOW)

    assert result.case_id == "88675969"
    assert result.order_number == "88675969"

    case = db_session.get(Case, "88675969")
    assert case.user_id == 8437
    assert case.customer_id == 2283
    assert case.lab_id == 52
    assert case.ship_to_id == 2595
    assert case.ship_carrier_id == 102
    assert case.status_code == 10
    assert case.patient_first_name == "John"
    assert case.patient_num == "88675969"
    assert case.clinic_po_number == "88675969"
    assert case.shopify_email == "john@example.com"
    assert case.invoice_approved_for_payment == "N"
    assert case.doctor_reviewed == "Y"
    assert case.line_items_applied is True
    assert case.case_type == "Shopify"

    transactions = db_session.query(CaseTransaction).filter(CaseTransaction.case_id == "88675969").all()
    assert len(transactions) == 1
    assert transactions[0].employee_id == "jdoe"
    assert transactions[0].user_id == 42
    assert transactions[0].status_code == 10
    assert transactions[0].ship_carrier_id == 102


def test_second_import_is_rejected(db_session, reference_data, principal, order_payload):
    order = Order.model_validate(order_payload)
    import_case(db_session, order, principal)

    with pytest.raises(DuplicateCaseError) as exc_info:
        import_case(db_session, order, principal)

    assert exc_info.value.status_code == 409
    assert exc_info.value.message == "Case has already been imported"
    assert db_session.query(Case).count() == 1
    assert db_session.query(CaseTransaction).count() == 1


def test_store_level_duplicate_guard(db_session, reference_data, principal, order_payload, monkeypatch):
    order = Order.model_validate(order_payload)
    import_case(db_session, order, principal)
    db_session.expunge_all()

    real_case_exists = case_import.case_exists
    calls = []

    def racing_case_exists(db, case_id):
        # the first check loses the race: the row appears only at insert time
        calls.append(case_id)
        if len(calls) == 1:
            return False
        return real_case_exists(db, case_id)

    monkeypatch.setattr(case_import, "case_exists", racing_case_exists)

    with pytest.raises(DuplicateCaseError):
        import_case(db_session, order, principal)

    assert db_session.query(Case).count() == 1
    assert db_session.query(CaseTransaction).count() == 1


def test_encoded_sku_creates_item_and_teeth(db_session, reference_data, principal, order_payload):
    result = import_case(db_session, Order.model_validate(order_payload), principal)

    items = db_session.query(CaseItem).filter(CaseItem.case_id == "88675969").all()
    assert result.items_created == 1
    assert len(items) == 1
    assert items[0].name == "R33330.1"
    assert items[0].tooth == "Upper, Lower"
    assert items[0].quantity == 2
    assert items[0].shade == "A1"

    teeth = db_session.query(CaseItemTooth).filter(CaseItemTooth.case_item_id == items[0].case_item_id).all()
    assert [t.item_tooth for t in teeth] == ["Upper", "Lower"]
    assert db_session.query(CaseTicket).count() == 0
    assert result.needs_item_review is False


def test_note_and_line_item_skus_are_both_used(db_session, reference_data, principal, order_payload):
    order_payload["note"] = "Extra: --B2-L-R200--"

    result = import_case(db_session, Order.model_validate(order_payload), principal)

    names = [item.name for item in db_session.query(CaseItem).order_by(CaseItem.case_item_id)]
    assert names == ["R200", "R33330.1"]
    assert result.items_created == 2


def test_order_without_skus_gets_review_ticket(db_session, reference_data, principal, order_payload):
    order_payload["lineItems"] = [{"sku": "PLAIN-1", "title": "Plain product"}]

    result = import_case(db_session, Order.model_validate(order_payload), principal)

    assert db_session.query(CaseItem).count() == 0
    tickets = db_session.query(CaseTicket).all()
    assert len(tickets) == 1
    assert tickets[0].status == TicketStatus.OPEN
    detail = db_session.query(CaseTicketDetail).one()
    assert detail.email_template_id == 1363
    assert detail.subject == "Case 88675969 needs item review"
    assert detail.to_address == "review@example.com"

    case = db_session.get(Case, "88675969")
    assert case.needs_item_review is True
    assert case.line_items_applied is True
    assert result.fallback_ticket_detail_id == detail.case_ticket_detail_id
    assert len(result.notifications) == 1


def test_invalid_sku_is_skipped(db_session, reference_data, principal, order_payload):
    order_payload["lineItems"].append({"sku": "--A1-UL--", "title": "Broken code"})

    result = import_case(db_session, Order.model_validate(order_payload), principal)

    assert result.items_created == 1
    assert any(d.code == "INVALID_SKU" for d in result.diagnostics)


def test_failed_item_insert_does_not_stop_other_items(db_session, reference_data, principal, order_payload, monkeypatch):
    order_payload["note"] = "--B2-L-R200--"
    real_add_case_item = case_import.add_case_item

    def flaky_add_case_item(db, case_id, decoded):
        if decoded.product == "R200":
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return real_add_case_item(db, case_id, decoded)

    monkeypatch.setattr(case_import, "add_case_item", flaky_add_case_item)

    result = import_case(db_session, Order.model_validate(order_payload), principal)

    assert [item.name for item in db_session.query(CaseItem)] == ["R33330.1"]
    assert any(d.code == "SKU_INSERT_FAILED" for d in result.diagnostics)
    assert result.needs_item_review is True


def test_case_without_inserted_items_needs_review(db_session, reference_data, principal, order_payload, monkeypatch):
    def failing_add_case_item(db, case_id, decoded):
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(case_import, "add_case_item", failing_add_case_item)

    result = import_case(db_session, Order.model_validate(order_payload), principal)

    case = db_session.get(Case, "88675969")
    assert db_session.query(CaseItem).count() == 0
    assert result.items_created == 0
    assert result.needs_item_review is True
    assert case.needs_item_review is True
    assert any(d.code == "SKU_INSERT_FAILED" for d in result.diagnostics)


def test_line_item_failure_keeps_case(db_session, reference_data, principal, order_payload, monkeypatch):
    def broken(db, order, case_id, user_id):
        raise RuntimeError("template service exploded")

    monkeypatch.setattr(case_import, "process_order_line_items", broken)

    result = import_case(db_session, Order.model_validate(order_payload), principal)

    case = db_session.get(Case, "88675969")
    assert case is not None
    assert case.needs_item_review is True
    assert case.line_items_applied is False
    assert db_session.query(CaseTransaction).count() == 1
    assert any(d.code == "LINE_ITEMS_FAILED" for d in result.diagnostics)


def test_extraction_failure_writes_nothing(db_session, reference_data, principal, order_payload):
    order_payload["customer"] = None
    order_payload["email"] = None

    with pytest.raises(ExtractionError, match="Missing customer email"):
        import_case(db_session, Order.model_validate(order_payload), principal)

    assert db_session.query(Case).count() == 0
    assert db_session.query(CaseTransaction).count() == 0


def test_rush_dates(db_session, reference_data, principal, order_payload):
    order_payload["name"] = "5001"
    order_payload["shippingLines"] = [{"code": "RUSH", "title": "Rush"}]
    import_case(db_session, Order.model_validate(order_payload), principal, now=NOW)

    rush = db_session.get(Case, "5001")
    assert rush.is_rush is True
    assert rush.date_received == NOW
    assert rush.date_required_by == NOW + timedelta(days=7)
    assert rush.date_estimated_return == NOW + timedelta(days=14)


def test_standard_dates(db_session, reference_data, principal, order_payload):
    import_case(db_session, Order.model_validate(order_payload), principal, now=NOW)

    case = db_session.get(Case, "88675969")
    assert case.is_rush is False
    assert case.date_required_by == NOW + timedelta(days=14)
    assert case.date_estimated_return == NOW + timedelta(days=14)
