"""
SQLAlchemy ORM models for the Retail Admin service.

Every entity is addressed by a composite key of (partition_key, row_key). The
row key is a generated UUID; the partition key groups related rows and is
derived once, at insert time, from a grouping field of the entity.
"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Numeric
from .database import Base


class Customer(Base):
    """
    Customer model.

    Attributes:
        partition_key (str): Customer's province, or "Unknown"
        row_key (str): Unique identifier
        timestamp (datetime): Time of the last write
        name, surname, email, street_address (str): Mandatory fields
        phone_number, city, province, postal_code, country (str): Optional fields
        customer_photo_url (str): Public URL of the customer's photo (optional)
    """
    __tablename__ = "customers"

    DEFAULT_PARTITION = "Unknown"

    partition_key = Column(String, primary_key=True)
    row_key = Column(String, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    name = Column(String, nullable=False)
    surname = Column(String, nullable=False)
    email = Column(String, nullable=False)
    phone_number = Column(String, nullable=True)
    street_address = Column(String, nullable=False)
    city = Column(String, nullable=True)
    province = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    country = Column(String, nullable=True)
    customer_photo_url = Column(String, nullable=True)

    def grouping_value(self):
        return self.province


class Product(Base):
    """
    Product model.

    Attributes:
        partition_key (str): Product category, or "General"
        row_key (str): Unique identifier
        timestamp (datetime): Time of the last write
        product_name (str): Unique product name
        description (str): Free-text description
        price (Decimal): Unit price
        category (str): Product category
        product_photo_url (str): Public URL of the product photo (optional)
    """
    __tablename__ = "products"

    DEFAULT_PARTITION = "General"

    partition_key = Column(String, primary_key=True)
    row_key = Column(String, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    product_name = Column(String, nullable=False)
    description = Column(String, nullable=True)
    price = Column(Numeric(12, 2), nullable=False, default=0)
    category = Column(String, nullable=True)
    product_photo_url = Column(String, nullable=True)

    def grouping_value(self):
        return self.category


class Order(Base):
    """
    Order model.

    Orders reference one customer and one product by their composite keys.
    The references are not enforced; deleting a customer or product leaves
    its orders untouched.

    Attributes:
        partition_key (str): Order month, formatted YYYY-MM
        row_key (str): Unique identifier
        timestamp (datetime): Time of the last write
        customer_partition_key, customer_row_key (str): Customer reference
        product_partition_key, product_row_key (str): Product reference
        quantity (int): Units ordered
        order_date (datetime): When the order was placed
        total_amount (Decimal): Product price multiplied by quantity
        order_status (str): Pending, Processing, Shipped, Delivered or Cancelled
    """
    __tablename__ = "orders"

    DEFAULT_PARTITION = "Unknown"

    partition_key = Column(String, primary_key=True)
    row_key = Column(String, primary_key=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)
    customer_partition_key = Column(String, nullable=False)
    customer_row_key = Column(String, nullable=False)
    product_partition_key = Column(String, nullable=False)
    product_row_key = Column(String, nullable=False)
    quantity = Column(Integer, nullable=False)
    order_date = Column(DateTime, nullable=False, default=datetime.utcnow)
    total_amount = Column(Numeric(14, 2), nullable=False, default=0)
    order_status = Column(String, nullable=False, default="Pending")

    def grouping_value(self):
        return self.order_date.strftime("%Y-%m") if self.order_date else None
