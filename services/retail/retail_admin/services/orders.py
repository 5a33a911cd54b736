"""
Order management.

Order totals are always computed here, from the current price of the
referenced product; any total sent by the caller is ignored.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
from .. import models, schemas, validators
from ..audit import AuditLogger
from ..crud import TableStore
from ..errors import StorageError, ValidationError
from .customers import CustomerService
from .products import ProductService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
ORDER_FIELDS = [
    "customer_partition_key",
    "customer_row_key",
    "product_partition_key",
    "product_row_key",
    "quantity",
    "order_date",
    "order_status",
]


def compute_total(price: Decimal, quantity: int) -> Decimal:
    """Total amount of an order line: unit price times quantity, in cents."""
    return (Decimal(str(price)) * quantity).quantize(CENTS)


def naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Order dates are stored as naive UTC; convert aware datetimes before comparing or storing."""
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class OrderService:
    """
    Args:
        table: Order entity store
        customers: Customer service, used to resolve order references
        products: Product service, used to resolve order references and prices
        audit: Audit logger for the "Order" entity type
    """

    def __init__(self, table: TableStore, customers: CustomerService, products: ProductService, audit: AuditLogger):
        self.table = table
        self.customers = customers
        self.products = products
        self.audit = audit

    def list_orders(self) -> List[models.Order]:
        try:
            return self.table.list()
        except StorageError as e:
            self.audit.log_error("GetAllOrders", e)
            raise StorageError("Failed to retrieve orders") from e

    def get_order(self, partition_key: str, row_key: str) -> Optional[models.Order]:
        if not partition_key or not row_key:
            return None
        try:
            return self.table.get(partition_key, row_key)
        except StorageError as e:
            self.audit.log_error(f"GetOrderById - {partition_key}/{row_key}", e)
            raise StorageError("Failed to retrieve order") from e

    def orders_by_customer(self, customer_partition_key: str, customer_row_key: str) -> List[models.Order]:
        return [
            o for o in self.list_orders()
            if o.customer_partition_key == customer_partition_key and o.customer_row_key == customer_row_key
        ]

    def orders_by_status(self, status: str) -> List[models.Order]:
        wanted = (status or "").lower()
        return [o for o in self.list_orders() if (o.order_status or "").lower() == wanted]

    def orders_by_date_range(self, start_date: datetime, end_date: datetime) -> List[models.Order]:
        start_date, end_date = naive_utc(start_date), naive_utc(end_date)
        return [o for o in self.list_orders() if start_date <= o.order_date <= end_date]

    def total_sales(self, start_date: Optional[datetime] = None, end_date: Optional[datetime] = None) -> Decimal:
        """
        Sum of order totals, excluding cancelled orders.

        Args:
            start_date: Only count orders placed on or after this time
            end_date: Only count orders placed on or before this time
        """
        start_date, end_date = naive_utc(start_date), naive_utc(end_date)
        total = Decimal("0")
        for order in self.list_orders():
            if start_date is not None and order.order_date < start_date:
                continue
            if end_date is not None and order.order_date > end_date:
                continue
            if (order.order_status or "").lower() == schemas.OrderStatus.CANCELLED.value.lower():
                continue
            total += Decimal(str(order.total_amount))
        return total.quantize(CENTS)

    def validate_order(self, order: schemas.OrderBase) -> None:
        is_valid, error = validators.validate_order(order)
        if not is_valid:
            raise ValidationError(error)

    def resolve(self, order: schemas.OrderBase):
        """
        Resolve the customer and product an order refers to.

        Raises:
            ValidationError: If either reference does not resolve
        """
        customer = self.customers.get_customer(order.customer_partition_key, order.customer_row_key)
        if customer is None:
            raise ValidationError("Customer not found")
        product = self.products.get_product(order.product_partition_key, order.product_row_key)
        if product is None:
            raise ValidationError("Product not found")
        return customer, product

    def create_order(self, data: schemas.OrderCreate) -> models.Order:
        """
        Create an order.

        The customer and product must exist. The total is the product's current
        price times the quantity. New orders always start as Pending; any supplied
        status is ignored.

        Raises:
            ValidationError: If the input is invalid or a reference does not resolve
            StorageError: If the order could not be stored
        """
        self.validate_order(data.model_copy(update={"order_status": None}))
        customer, product = self.resolve(data)

        order = models.Order(
            customer_partition_key=data.customer_partition_key,
            customer_row_key=data.customer_row_key,
            product_partition_key=data.product_partition_key,
            product_row_key=data.product_row_key,
            quantity=data.quantity,
            order_date=naive_utc(data.order_date) or datetime.utcnow(),
            total_amount=compute_total(product.price, data.quantity),
            order_status=schemas.OrderStatus.PENDING.value,
        )
        try:
            self.table.insert(order)
        except StorageError as e:
            logger.error(f"Failed to create order: {e}")
            self.audit.log_error("CreateOrder", e)
            raise StorageError("Failed to create order") from e

        logger.info(f"Order created: {order.partition_key}/{order.row_key} total={order.total_amount}")
        self.audit.log("Order Created", self.details(order, customer, product))
        return order

    def update_order(self, partition_key: str, row_key: str, changes: schemas.OrderUpdate) -> Optional[models.Order]:
        """
        Update an order with the fields present in ``changes``.

        The total is recomputed from the referenced product's current price.

        Returns:
            Updated order, or None if no order matches
        """
        existing = self.get_order(partition_key, row_key)
        if existing is None:
            return None

        updates = changes.model_dump(exclude_unset=True, include=set(ORDER_FIELDS))
        updates = {key: value for key, value in updates.items() if value is not None}
        if "order_date" in updates:
            updates["order_date"] = naive_utc(updates["order_date"])
        current = {name: getattr(existing, name) for name in ORDER_FIELDS}
        merged = schemas.OrderBase(**{**current, **updates})
        self.validate_order(merged)
        product = self.products.get_product(merged.product_partition_key, merged.product_row_key)
        if product is None:
            raise ValidationError("Product not found")
        # Customers are weak references; a deleted customer does not block updates
        customer = self.customers.get_customer(merged.customer_partition_key, merged.customer_row_key)

        try:
            for key, value in updates.items():
                setattr(existing, key, value)
            existing.total_amount = compute_total(product.price, merged.quantity)
            order = self.table.update(existing)
        except StorageError as e:
            logger.error(f"Failed to update order {partition_key}/{row_key}: {e}")
            self.audit.log_error("UpdateOrder", e)
            raise StorageError("Failed to update order") from e

        logger.info(f"Order updated: {partition_key}/{row_key}")
        self.audit.log("Order Updated", self.details(order, customer, product))
        return order

    def update_order_status(self, partition_key: str, row_key: str, status: str) -> Optional[models.Order]:
        """
        Change only the status of an order.

        Returns:
            Updated order, or None if no order matches
        """
        is_valid, error = validators.validate_order_status(status)
        if not is_valid:
            raise ValidationError(error)

        order = self.get_order(partition_key, row_key)
        if order is None:
            return None

        old_status = order.order_status
        try:
            order.order_status = status
            order = self.table.update(order)
        except StorageError as e:
            self.audit.log_error(f"UpdateOrderStatus - {partition_key}/{row_key}", e)
            raise StorageError("Failed to update order status") from e

        logger.info(f"Order {partition_key}/{row_key} status changed from {old_status} to {status}")
        self.audit.log("Order Status Updated", {
            "PartitionKey": partition_key,
            "RowKey": row_key,
            "OldStatus": old_status,
            "NewStatus": status,
        })
        return order

    def delete_order(self, partition_key: str, row_key: str) -> bool:
        """
        Delete an order.

        Returns:
            True if the order was deleted, False if it does not exist
        """
        order = self.get_order(partition_key, row_key)
        if order is None:
            return False

        amount = str(order.total_amount)
        try:
            self.table.delete(partition_key, row_key)
        except StorageError as e:
            self.audit.log_error(f"DeleteOrder - {partition_key}/{row_key}", e)
            raise StorageError("Failed to delete order") from e

        logger.info(f"Order deleted: {partition_key}/{row_key}")
        self.audit.log("Order Deleted", {"PartitionKey": partition_key, "RowKey": row_key, "OrderAmount": amount})
        return True

    @staticmethod
    def details(order: models.Order, customer: Optional[models.Customer] = None,
                product: Optional[models.Product] = None) -> Dict[str, Any]:
        return {
            "PartitionKey": order.partition_key,
            "RowKey": order.row_key,
            "CustomerName": f"{customer.name} {customer.surname}" if customer else "Unknown",
            "ProductName": product.product_name if product else "Unknown",
            "Quantity": order.quantity,
            "TotalAmount": str(order.total_amount),
            "OrderStatus": order.order_status,
        }
