"""
Business validation for customers, products and orders.

Each validator returns a ``(is_valid, error_message)`` tuple and never touches
storage; uniqueness checks live in the services.
"""
import re
from decimal import Decimal
from typing import Tuple
from . import schemas

MAX_PRICE = Decimal("1000000")
CENTS = Decimal("0.01")

PHONE_PATTERN = re.compile(r"^\+?[0-9\s\-().]{7,20}$")
ORDER_STATUSES = [status.value for status in schemas.OrderStatus]


def email_pattern(domain: str) -> "re.Pattern":
    """Case-insensitive pattern for addresses in ``domain``."""
    return re.compile(r"^[a-zA-Z0-9._&+-]+@" + re.escape(domain) + r"$", re.IGNORECASE)


def domain_error(domain: str) -> str:
    if domain.lower() == "gmail.com":
        return "Only Gmail addresses are allowed"
    return f"Only @{domain} addresses are allowed"


def validate_customer(customer: schemas.CustomerBase, email_domain: str = "gmail.com") -> Tuple[bool, str]:
    """
    Validate customer fields for business rules.

    Args:
        customer: Customer fields (complete record, after merging any update)
        email_domain: The only email domain customers may register with

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not customer.name:
        return False, "Name is required"

    if not customer.surname:
        return False, "Surname is required"

    if not customer.email:
        return False, "Email is required"

    if not customer.street_address:
        return False, "Street address is required"

    if "@" not in customer.email:
        return False, "Please enter a valid email address."

    if not email_pattern(email_domain).match(customer.email):
        return False, domain_error(email_domain)

    if customer.phone_number and not PHONE_PATTERN.match(customer.phone_number):
        return False, "Please enter a valid phone number."

    return True, ""


def validate_product(product: schemas.ProductBase) -> Tuple[bool, str]:
    """
    Validate product fields for business rules.

    Args:
        product: Product fields (complete record, after merging any update)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not product.product_name:
        return False, "ProductName is required"

    price = product.price if product.price is not None else Decimal("0")

    if price < 0:
        return False, "Price cannot be negative"

    if price > MAX_PRICE:
        return False, "Price cannot exceed R1,000,000"

    if price != price.quantize(CENTS):
        return False, "Price cannot have more than 2 decimal places"

    return True, ""


def validate_order(order: schemas.OrderBase) -> Tuple[bool, str]:
    """
    Validate order fields for business rules.

    Args:
        order: Order fields (complete record, after merging any update)

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not order.customer_partition_key or not order.customer_row_key:
        return False, "Customer and Product information are required"

    if not order.product_partition_key or not order.product_row_key:
        return False, "Customer and Product information are required"

    if order.quantity is None or order.quantity <= 0:
        return False, "Quantity must be greater than zero"

    if order.order_status:
        return validate_order_status(order.order_status)

    return True, ""


def validate_order_status(status: str) -> Tuple[bool, str]:
    """
    Check that ``status`` is one of the known order statuses.

    Args:
        status: Status name, e.g. "Shipped"

    Returns:
        Tuple of (is_valid, error_message)
    """
    if status not in ORDER_STATUSES:
        return False, f"Unknown status: {status}. Expected one of {', '.join(ORDER_STATUSES)}"

    return True, ""
