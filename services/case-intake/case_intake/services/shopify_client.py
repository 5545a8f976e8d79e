"""
Shopify Admin GraphQL client for order lookups
"""
import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from case_intake.core.config import settings
from case_intake.core.errors import (
    ConfigurationError, OrderNotFoundError, OrderSourceQueryError, TransientIntegrationError
)
from case_intake.schemas.order import Order

logger = logging.getLogger(__name__)

ORDER_FIELDS = """
    id
    name
    createdAt
    updatedAt
    processedAt
    displayFulfillmentStatus
    displayFinancialStatus
    email
    phone
    note
    customer {
      id
      firstName
      lastName
      email
      phone
    }
    billingAddress {
      firstName
      lastName
      address1
      address2
      city
      province
      zip
      country
    }
    shippingAddress {
      firstName
      lastName
      address1
      address2
      city
      province
      zip
      country
    }
    lineItems(first: 10) {
      edges {
        node {
          id
          title
          quantity
          sku
          variant {
            id
            title
            sku
          }
          product {
            id
            title
          }
        }
      }
    }
    shippingLines(first: 5) {
      edges {
        node {
          code
          title
        }
      }
    }
    totalPriceSet {
      shopMoney {
        amount
        currencyCode
      }
    }
"""

ORDER_BY_ID_QUERY = """
query FetchOrder($id: ID!) {
  order(id: $id) {%s}
}
""" % ORDER_FIELDS

ORDERS_SEARCH_QUERY = """
query SearchOrders($query: String!) {
  orders(first: 1, query: $query) {
    edges {
      node {%s}
    }
  }
}
""" % ORDER_FIELDS


class RateLimiter:
    """
    Bounded concurrency plus a minimum spacing between request starts.

    Owned by one client instance; clock and sleep are injectable so tests can
    run without real waiting.
    """

    def __init__(
        self,
        requests_per_second: float,
        max_concurrent: int,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.min_interval = 1.0 / requests_per_second if requests_per_second > 0 else 0.0
        self.max_concurrent = max_concurrent
        self._clock = clock
        self._sleep = sleep
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._spacing_lock = asyncio.Lock()
        self._last_request_at: Optional[float] = None

    async def acquire(self):
        await self._semaphore.acquire()
        try:
            async with self._spacing_lock:
                now = self._clock()
                if self._last_request_at is not None:
                    wait = self.min_interval - (now - self._last_request_at)
                    if wait > 0:
                        await self._sleep(wait)
                        now = self._clock()
                self._last_request_at = now
        except BaseException:
            self._semaphore.release()
            raise

    def release(self):
        self._semaphore.release()

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.release()


class ShopifyClient:
    """Order source backed by the Shopify Admin GraphQL API"""

    def __init__(
        self,
        shop_url: Optional[str] = None,
        access_token: Optional[str] = None,
        api_version: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.shop_url = shop_url if shop_url is not None else settings.SHOPIFY_SHOP_URL
        self.access_token = access_token if access_token is not None else settings.SHOPIFY_ACCESS_TOKEN
        self.api_version = api_version or settings.SHOPIFY_API_VERSION
        self.rate_limiter = rate_limiter or RateLimiter(
            settings.SHOPIFY_REQUESTS_PER_SECOND,
            settings.SHOPIFY_MAX_CONCURRENT_REQUESTS,
        )
        self.client = client or httpx.AsyncClient(timeout=settings.SHOPIFY_TIMEOUT_SECONDS)

    @property
    def endpoint(self) -> str:
        host = self.shop_url.replace("https://", "").replace("http://", "").rstrip("/")
        return f"https://{host}/admin/api/{self.api_version}/graphql.json"

    async def execute_graphql(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Run a GraphQL query and return its ``data`` object.

        Raises ConfigurationError without credentials, TransientIntegrationError
        on transport failures and OrderSourceQueryError on GraphQL errors.
        """
        if not self.shop_url or not self.access_token:
            raise ConfigurationError(
                "Missing Shopify credentials. Set SHOPIFY_SHOP_URL and SHOPIFY_ACCESS_TOKEN in environment variables."
            )

        headers = {
            "Content-Type": "application/json",
            "X-Shopify-Access-Token": self.access_token,
        }
        payload = {"query": query, "variables": variables or {}}

        async with self.rate_limiter:
            try:
                response = await self.client.post(self.endpoint, json=payload, headers=headers)
                response.raise_for_status()
                result = response.json()
            except httpx.TimeoutException as e:
                raise TransientIntegrationError(f"Shopify request timed out: {e}") from e
            except httpx.HTTPStatusError as e:
                raise TransientIntegrationError(
                    f"Shopify request failed with status {e.response.status_code}"
                ) from e
            except (httpx.HTTPError, ValueError) as e:
                raise TransientIntegrationError(f"Shopify request failed: {e}") from e

        call_limit = response.headers.get("x-shopify-shop-api-call-limit")
        if call_limit:
            logger.debug("Shopify API call limit: %s", call_limit)

        errors = result.get("errors")
        if errors:
            if isinstance(errors, list):
                messages = ", ".join(str(error.get("message", error)) for error in errors)
            else:
                messages = str(errors)
            raise OrderSourceQueryError(f"GraphQL Error: {messages}")

        return result.get("data") or {}

    async def fetch_order_payload_by_number(self, order_number: str) -> Dict[str, Any]:
        """Raw order node for a human-readable order number"""
        data = await self.execute_graphql(ORDERS_SEARCH_QUERY, {"query": f"name:{order_number}"})
        edges = (data.get("orders") or {}).get("edges") or []
        if not edges:
            raise OrderNotFoundError(str(order_number))
        return edges[0].get("node") or {}

    async def fetch_order_by_number(self, order_number: str) -> Order:
        payload = await self.fetch_order_payload_by_number(order_number)
        return Order.model_validate(payload)

    async def fetch_order_by_id(self, order_id: str) -> Order:
        """Look an order up by its numeric Shopify ID"""
        data = await self.execute_graphql(ORDER_BY_ID_QUERY, {"id": f"gid://shopify/Order/{order_id}"})
        if not data.get("order"):
            raise OrderNotFoundError(str(order_id))
        return Order.model_validate(data["order"])

    async def close(self):
        """Close HTTP client"""
        await self.client.aclose()


# Singleton instance
_shopify_client: Optional[ShopifyClient] = None


def get_shopify_client() -> ShopifyClient:
    """Get singleton Shopify client instance"""
    global _shopify_client
    if _shopify_client is None:
        _shopify_client = ShopifyClient()
    return _shopify_client
