"""
Pydantic schemas for request/response validation in the Retail Admin service.

JSON payloads use camelCase keys (``partitionKey``, ``rowKey``...); snake_case
keys are accepted on input as well. Business validation lives in
``validators.py`` so that all input fields are optional here.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class OrderStatus(str, Enum):
    """Lifecycle states of an order."""
    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class CamelModel(BaseModel):
    """Base schema serialising with camelCase keys."""

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True


class CustomerBase(CamelModel):
    """Customer attributes supplied by callers."""
    name: Optional[str] = None
    surname: Optional[str] = None
    email: Optional[str] = None
    phone_number: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class CustomerCreate(CustomerBase):
    """Schema for creating a new customer."""
    pass


class CustomerUpdate(CustomerBase):
    """Schema for updating a customer. Empty fields leave the stored value unchanged."""
    pass


class Customer(CustomerBase):
    """
    Schema for customer responses.

    Attributes:
        partition_key (str): Partition the customer lives in (province)
        row_key (str): Unique identifier
        timestamp (datetime): Time of the last write
        customer_photo_url (str): Public URL of the photo, if any
    """
    partition_key: str
    row_key: str
    timestamp: Optional[datetime] = None
    customer_photo_url: Optional[str] = None


class ProductBase(CamelModel):
    """Product attributes supplied by callers."""
    product_name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    category: Optional[str] = None


class ProductCreate(ProductBase):
    """Schema for creating a new product."""
    pass


class ProductUpdate(ProductBase):
    """Schema for updating a product. Empty fields leave the stored value unchanged."""
    pass


class Product(ProductBase):
    """Schema for product responses."""
    partition_key: str
    row_key: str
    timestamp: Optional[datetime] = None
    product_photo_url: Optional[str] = None


class OrderBase(CamelModel):
    """Order attributes supplied by callers."""
    customer_partition_key: Optional[str] = None
    customer_row_key: Optional[str] = None
    product_partition_key: Optional[str] = None
    product_row_key: Optional[str] = None
    quantity: Optional[int] = None
    order_date: Optional[datetime] = None
    order_status: Optional[str] = None
    # Accepted for compatibility with older clients; always recomputed.
    total_amount: Optional[Decimal] = None


class OrderCreate(OrderBase):
    """Schema for creating a new order."""
    pass


class OrderUpdate(OrderBase):
    """Schema for updating an order. Only provided fields are changed."""
    pass


class OrderStatusUpdate(CamelModel):
    """Schema for changing only the status of an order."""
    status: str


class Order(CamelModel):
    """
    Schema for order responses.

    Attributes:
        partition_key (str): Order month (YYYY-MM)
        row_key (str): Unique identifier
        total_amount (Decimal): Product price multiplied by quantity
        order_status (str): Current status
    """
    partition_key: str
    row_key: str
    timestamp: Optional[datetime] = None
    customer_partition_key: str
    customer_row_key: str
    product_partition_key: str
    product_row_key: str
    quantity: int
    order_date: datetime
    total_amount: Decimal
    order_status: str


class EntityCreated(CamelModel):
    """Response returned after an entity has been created."""
    message: str
    partition_key: str
    row_key: str


class Message(CamelModel):
    """Plain acknowledgement response."""
    message: str


class AuditLogEntry(CamelModel):
    """
    An audit message read back from the queue.

    Attributes:
        message_id (str): Queue-assigned message identifier
        insertion_time (datetime): When the message was enqueued
        message_text (str): Decoded JSON text of the message
        payload (dict): Parsed message, or None if the text is not valid JSON
    """
    message_id: str
    insertion_time: Optional[datetime] = None
    message_text: str
    payload: Optional[Dict[str, Any]] = None


class SalesTotal(CamelModel):
    """Total sales over an optional date range."""
    total_sales: Decimal
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class FileUploaded(CamelModel):
    """Response returned after a file has been stored in the file share."""
    message: str
    file_name: str
    share_name: str
