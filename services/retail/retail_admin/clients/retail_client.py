"""
HTTP client for the Retail Admin service.

This module provides an async client that front ends use to manage customers,
products and orders, read the audit log and upload contract files.
"""
import httpx
from typing import Any, Dict, List, Optional, Tuple

RETAIL_SERVICE_URL = "http://retail:8000"
TIMEOUT = 5.0  # seconds

# (field name, alias) pairs sent as multipart form fields
CUSTOMER_FIELDS = (
    ("name", "Name"),
    ("surname", "Surname"),
    ("email", "Email"),
    ("phone_number", "PhoneNumber"),
    ("street_address", "StreetAddress"),
    ("city", "City"),
    ("province", "Province"),
    ("postal_code", "PostalCode"),
    ("country", "Country"),
)
PRODUCT_FIELDS = (
    ("product_name", "ProductName"),
    ("description", "Description"),
    ("price", "Price"),
    ("category", "Category"),
)


def form_fields(values: Dict[str, Any], fields) -> Dict[str, str]:
    """Translate snake_case values into the service's multipart field names."""
    form = {}
    for name, alias in fields:
        value = values.get(name, values.get(alias))
        if value is not None:
            form[alias] = str(value)
    return form


class RetailApiClient:
    """
    Async client for the Retail Admin HTTP API.

    Args:
        base_url: Service root URL
        timeout: Request timeout in seconds
        transport: Optional httpx transport (used by tests to call the app in-process)
    """

    def __init__(
        self,
        base_url: str = RETAIL_SERVICE_URL,
        timeout: float = TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def _get(self, path: str, params: Optional[dict] = None) -> Any:
        async with self._client() as client:
            response = await client.get(path, params=params)
            response.raise_for_status()
            return response.json()

    async def _get_or_none(self, path: str) -> Optional[dict]:
        async with self._client() as client:
            response = await client.get(path)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

    async def _delete(self, path: str) -> bool:
        async with self._client() as client:
            response = await client.delete(path)
            if response.status_code == 404:
                return False
            response.raise_for_status()
            return True

    async def _send_form(
        self,
        method: str,
        path: str,
        data: Dict[str, str],
        photo: Optional[Tuple[str, bytes]],
    ) -> Optional[dict]:
        files = {"file": photo} if photo else None
        async with self._client() as client:
            response = await client.request(method, path, data=data, files=files)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

    # Customers

    async def list_customers(self, province: Optional[str] = None) -> List[dict]:
        """
        Retrieve all customers, optionally only those in ``province``.

        Raises:
            httpx.HTTPError: If there's a network error or the service is unavailable
        """
        return await self._get("/api/customers", {"province": province} if province else None)

    async def get_customer(self, partition_key: str, row_key: str) -> Optional[dict]:
        """
        Get a customer by key.

        Returns:
            Customer data if found, None otherwise
        """
        return await self._get_or_none(f"/api/customers/{partition_key}/{row_key}")

    async def create_customer(self, customer: Dict[str, Any], photo: Optional[Tuple[str, bytes]] = None) -> dict:
        """
        Create a customer.

        Args:
            customer: Customer fields (snake_case or the service's field names)
            photo: Optional (filename, content) pair

        Returns:
            {"message", "partitionKey", "rowKey"}

        Raises:
            httpx.HTTPStatusError: On validation failure (400) or server errors
        """
        return await self._send_form("POST", "/api/customers", form_fields(customer, CUSTOMER_FIELDS), photo)

    async def update_customer(
        self,
        partition_key: str,
        row_key: str,
        changes: Dict[str, Any],
        photo: Optional[Tuple[str, bytes]] = None,
    ) -> Optional[dict]:
        return await self._send_form(
            "PUT",
            f"/api/customers/{partition_key}/{row_key}",
            form_fields(changes, CUSTOMER_FIELDS),
            photo,
        )

    async def delete_customer(self, partition_key: str, row_key: str) -> bool:
        return await self._delete(f"/api/customers/{partition_key}/{row_key}")

    # Products

    async def list_products(
        self,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> List[dict]:
        params = {}
        if category:
            params["category"] = category
        if min_price is not None:
            params["minPrice"] = str(min_price)
        if max_price is not None:
            params["maxPrice"] = str(max_price)
        return await self._get("/api/products", params or None)

    async def get_product(self, partition_key: str, row_key: str) -> Optional[dict]:
        return await self._get_or_none(f"/api/products/{partition_key}/{row_key}")

    async def create_product(self, product: Dict[str, Any], photo: Optional[Tuple[str, bytes]] = None) -> dict:
        return await self._send_form("POST", "/api/products", form_fields(product, PRODUCT_FIELDS), photo)

    async def update_product(
        self,
        partition_key: str,
        row_key: str,
        changes: Dict[str, Any],
        photo: Optional[Tuple[str, bytes]] = None,
    ) -> Optional[dict]:
        return await self._send_form(
            "PUT",
            f"/api/products/{partition_key}/{row_key}",
            form_fields(changes, PRODUCT_FIELDS),
            photo,
        )

    async def delete_product(self, partition_key: str, row_key: str) -> bool:
        return await self._delete(f"/api/products/{partition_key}/{row_key}")

    # Orders

    async def list_orders(self, **filters: str) -> List[dict]:
        """
        Retrieve orders.

        Args:
            filters: Query filters (customerPartitionKey, customerRowKey, status, startDate, endDate)
        """
        params = {k: v for k, v in filters.items() if v is not None}
        return await self._get("/api/orders", params or None)

    async def get_order(self, partition_key: str, row_key: str) -> Optional[dict]:
        return await self._get_or_none(f"/api/orders/{partition_key}/{row_key}")

    async def create_order(self, order: Dict[str, Any]) -> dict:
        """
        Create an order from a JSON body (camelCase keys).

        Raises:
            httpx.HTTPStatusError: If the customer or product cannot be resolved (400)
        """
        async with self._client() as client:
            response = await client.post("/api/orders", json=order)
            response.raise_for_status()
            return response.json()

    async def update_order(self, partition_key: str, row_key: str, changes: Dict[str, Any]) -> Optional[dict]:
        async with self._client() as client:
            response = await client.put(f"/api/orders/{partition_key}/{row_key}", json=changes)
            if response.status_code == 404:
                return None
            response.raise_for_status()
            return response.json()

    async def delete_order(self, partition_key: str, row_key: str) -> bool:
        return await self._delete(f"/api/orders/{partition_key}/{row_key}")

    # Audit log and file share

    async def get_messages(self, entity_type: Optional[str] = None, action: Optional[str] = None) -> List[dict]:
        """
        Peek at the most recent audit log entries (at most 30).
        """
        params = {}
        if entity_type:
            params["entityType"] = entity_type
        if action:
            params["action"] = action
        return await self._get("/api/queue/messages", params or None)

    async def upload_audit_log(self, action: str, entity_type: str, details: Optional[dict] = None) -> dict:
        async with self._client() as client:
            response = await client.post(
                "/api/queue/auditlog",
                json={"Action": action, "EntityType": entity_type, "Details": details or {}},
            )
            response.raise_for_status()
            return response.json()

    async def upload_file(self, filename: str, content: bytes) -> dict:
        """
        Upload a contract file to the file share.

        Returns:
            {"message", "fileName", "shareName"}
        """
        async with self._client() as client:
            response = await client.post("/api/fileshare/upload", files={"file": (filename, content)})
            response.raise_for_status()
            return response.json()
