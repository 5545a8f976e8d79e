"""
Shopify order source endpoints
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from case_intake.api.v1.common import render_diagnostics, validate_numeric_id
from case_intake.core.database import get_db
from case_intake.core.security import Principal, get_current_user
from case_intake.services.case_import import import_case
from case_intake.services.email_service import dispatch_ticket_notifications
from case_intake.services.shopify_client import ShopifyClient, get_shopify_client

logger = logging.getLogger(__name__)

router = APIRouter()


class OrderRequest(BaseModel):
    order_id: Optional[Any] = Field(default=None, alias="orderId")


@router.post("/fetch-order")
async def fetch_order(
    request: OrderRequest,
    current_user: Principal = Depends(get_current_user),
    shopify: ShopifyClient = Depends(get_shopify_client),
):
    """Fetch an order from Shopify by its order number"""
    order_id = validate_numeric_id(request.order_id, "Order ID", code_prefix="ORDER")

    logger.info("Fetching order %s from Shopify", order_id)
    order_data = await shopify.fetch_order_payload_by_number(order_id)
    logger.info("Successfully fetched order %s from Shopify", order_id)

    return {
        "status": "success",
        "data": {
            "orderId": order_id,
            "orderData": order_data,
        },
    }


@router.post("/import-order", status_code=201)
async def import_order(
    request: OrderRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: Principal = Depends(get_current_user),
    shopify: ShopifyClient = Depends(get_shopify_client),
):
    """Fetch an order from Shopify and import it as a case"""
    order_id = validate_numeric_id(request.order_id, "Order ID", code_prefix="ORDER")

    order = await shopify.fetch_order_by_number(order_id)
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
