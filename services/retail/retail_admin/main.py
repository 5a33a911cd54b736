"""
Retail Admin Service API

This module implements the FastAPI application for administering an online
store: customers, products and orders, their photos, a contracts file share
and a queue-backed audit log.

Endpoints:
    GET /healthz: Health check endpoint for orchestration systems
    /api/customers, /api/products: CRUD with multipart forms (optional photo)
    /api/orders: CRUD with JSON bodies
    GET /api/reports/sales: Total sales over an optional date range
    /api/queue/messages, /api/queue/auditlog: Audit log read/write
    /api/fileshare/...: Contract file upload, listing, download and deletion

Run with:
    uvicorn --factory retail_admin.main:create_app
"""
import logging
import mimetypes
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional
import redis
from fastapi import APIRouter, Body, Depends, FastAPI, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response, StreamingResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.engine import Engine

from . import database, models, schemas
from .config import Settings
from .dependencies import (
    get_audit_log_service,
    get_contract_service,
    get_customer_service,
    get_order_service,
    get_product_service,
)
from .errors import RetailError
from .services.audit_log import AuditLogService
from .services.contracts import ContractService
from .services.customers import CustomerService
from .services.orders import OrderService
from .services.products import ProductService
from .storage.blobs import CUSTOMER_PHOTOS, PRODUCT_PHOTOS, BlobStore, LocalBlobStore, UploadedFile, build_blob_store
from .storage.fileshare import FileShare
from .storage.queue import AuditQueue

logger = logging.getLogger(__name__)

router = APIRouter()


def read_upload(file: Optional[UploadFile]) -> Optional[UploadedFile]:
    """Read an optional multipart file into memory."""
    if file is None or not file.filename:
        return None
    return UploadedFile(file.filename, file.file.read())


def parse_price(value: str) -> Decimal:
    try:
        price = Decimal(value.strip())
    except (InvalidOperation, AttributeError):
        raise HTTPException(status_code=400, detail="Price must be a valid number")
    if not price.is_finite():
        raise HTTPException(status_code=400, detail="Price must be a valid number")
    return price


@router.get("/healthz", response_model=dict)
def health():
    """
    Health check endpoint for the retail admin service.

    Returns:
        dict: {"status": "healthy"} when the service is operational.
    """
    return {"status": "healthy"}


# -----------------------
# Customers
# -----------------------

@router.get("/api/customers", response_model=List[schemas.Customer])
def list_customers(
    province: Optional[str] = None,
    service: CustomerService = Depends(get_customer_service),
):
    """
    List all customers, optionally only those in one province.

    Args:
        province: Province to filter by (case-insensitive)
        service: Customer service (injected)
    """
    if province:
        return service.customers_by_province(province)
    return service.list_customers()


@router.get("/api/customers/{partition_key}/{row_key}", response_model=schemas.Customer)
def get_customer(partition_key: str, row_key: str, service: CustomerService = Depends(get_customer_service)):
    """
    Get a single customer by key.

    Raises:
        HTTPException: 404 if customer not found
    """
    customer = service.get_customer(partition_key, row_key)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.post("/api/customers", response_model=schemas.EntityCreated)
def create_customer(
    name: str = Form("", alias="Name"),
    surname: str = Form("", alias="Surname"),
    email: str = Form("", alias="Email"),
    phone_number: str = Form("", alias="PhoneNumber"),
    street_address: str = Form("", alias="StreetAddress"),
    city: str = Form("", alias="City"),
    province: str = Form("", alias="Province"),
    postal_code: str = Form("", alias="PostalCode"),
    country: str = Form("", alias="Country"),
    file: Optional[UploadFile] = File(None),
    service: CustomerService = Depends(get_customer_service),
):
    """
    Create a customer from a multipart form, with an optional photo.

    Returns:
        Message with the new customer's partitionKey and rowKey

    Raises:
        HTTPException: 400 if Name or Email is missing
    """
    logger.info("Creating a new customer")
    if not name or not email:
        raise HTTPException(status_code=400, detail="Name and Email are required")

    data = schemas.CustomerCreate(
        name=name,
        surname=surname,
        email=email,
        phone_number=phone_number or None,
        street_address=street_address,
        city=city or None,
        province=province or None,
        postal_code=postal_code or None,
        country=country or None,
    )
    customer = service.create_customer(data, read_upload(file))
    return schemas.EntityCreated(
        message="Customer created successfully",
        partition_key=customer.partition_key,
        row_key=customer.row_key,
    )


@router.put("/api/customers/{partition_key}/{row_key}", response_model=schemas.Message)
def update_customer(
    partition_key: str,
    row_key: str,
    name: str = Form("", alias="Name"),
    surname: str = Form("", alias="Surname"),
    email: str = Form("", alias="Email"),
    phone_number: str = Form("", alias="PhoneNumber"),
    street_address: str = Form("", alias="StreetAddress"),
    city: str = Form("", alias="City"),
    province: str = Form("", alias="Province"),
    postal_code: str = Form("", alias="PostalCode"),
    country: str = Form("", alias="Country"),
    file: Optional[UploadFile] = File(None),
    service: CustomerService = Depends(get_customer_service),
):
    """
    Update a customer. Only non-empty form fields overwrite stored values.

    Raises:
        HTTPException: 404 if customer not found
    """
    logger.info(f"Updating customer: {partition_key}/{row_key}")
    changes = schemas.CustomerUpdate(
        name=name,
        surname=surname,
        email=email,
        phone_number=phone_number,
        street_address=street_address,
        city=city,
        province=province,
        postal_code=postal_code,
        country=country,
    )
    customer = service.update_customer(partition_key, row_key, changes, read_upload(file))
    if customer is None:
        logger.warning(f"Customer not found for PartitionKey: {partition_key}, RowKey: {row_key}")
        raise HTTPException(status_code=404, detail="Customer not found")
    return schemas.Message(message="Customer updated successfully")


@router.delete("/api/customers/{partition_key}/{row_key}", response_model=schemas.Message)
def delete_customer(partition_key: str, row_key: str, service: CustomerService = Depends(get_customer_service)):
    """
    Delete a customer and its photo.

    Raises:
        HTTPException: 404 if customer not found
    """
    if not service.delete_customer(partition_key, row_key):
        raise HTTPException(status_code=404, detail="Customer not found")
    return schemas.Message(message="Customer deleted successfully")


# -----------------------
# Products
# -----------------------

@router.get("/api/products", response_model=List[schemas.Product])
def list_products(
    category: Optional[str] = None,
    min_price: Optional[Decimal] = Query(None, alias="minPrice"),
    max_price: Optional[Decimal] = Query(None, alias="maxPrice"),
    service: ProductService = Depends(get_product_service),
):
    """
    List products, optionally filtered by category and/or price range.

    Args:
        category: Category to filter by (case-insensitive)
        min_price: Lowest price to include
        max_price: Highest price to include
    """
    if min_price is not None or max_price is not None:
        products = service.products_by_price_range(
            min_price if min_price is not None else Decimal("0"),
            max_price if max_price is not None else Decimal("Infinity"),
        )
    else:
        products = service.list_products()
    if category:
        products = [p for p in products if (p.category or "").lower() == category.lower()]
    return products


@router.get("/api/products/{partition_key}/{row_key}", response_model=schemas.Product)
def get_product(partition_key: str, row_key: str, service: ProductService = Depends(get_product_service)):
    product = service.get_product(partition_key, row_key)
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.post("/api/products", response_model=schemas.EntityCreated)
def create_product(
    product_name: str = Form("", alias="ProductName"),
    description: str = Form("", alias="Description"),
    price: str = Form("", alias="Price"),
    category: str = Form("", alias="Category"),
    file: Optional[UploadFile] = File(None),
    service: ProductService = Depends(get_product_service),
):
    """
    Create a product from a multipart form, with an optional photo.

    Raises:
        HTTPException: 400 if ProductName is missing or Price is not a number
    """
    logger.info("Creating a new product")
    if not product_name:
        raise HTTPException(status_code=400, detail="ProductName is required")

    data = schemas.ProductCreate(
        product_name=product_name,
        description=description or None,
        price=parse_price(price),
        category=category or None,
    )
    product = service.create_product(data, read_upload(file))
    return schemas.EntityCreated(
        message="Product created successfully",
        partition_key=product.partition_key,
        row_key=product.row_key,
    )


@router.put("/api/products/{partition_key}/{row_key}", response_model=schemas.Message)
def update_product(
    partition_key: str,
    row_key: str,
    product_name: str = Form("", alias="ProductName"),
    description: str = Form("", alias="Description"),
    price: str = Form("", alias="Price"),
    category: str = Form("", alias="Category"),
    file: Optional[UploadFile] = File(None),
    service: ProductService = Depends(get_product_service),
):
    """
    Update a product. Only non-empty form fields overwrite stored values.

    Raises:
        HTTPException: 404 if product not found
    """
    logger.info(f"Updating product: {partition_key}/{row_key}")
    changes = schemas.ProductUpdate(
        product_name=product_name,
        description=description,
        price=parse_price(price) if price else None,
        category=category,
    )
    product = service.update_product(partition_key, row_key, changes, read_upload(file))
    if product is None:
        logger.warning(f"Product not found for PartitionKey: {partition_key}, RowKey: {row_key}")
        raise HTTPException(status_code=404, detail="Product not found")
    return schemas.Message(message="Product updated successfully")


@router.delete("/api/products/{partition_key}/{row_key}", response_model=schemas.Message)
def delete_product(partition_key: str, row_key: str, service: ProductService = Depends(get_product_service)):
    if not service.delete_product(partition_key, row_key):
        raise HTTPException(status_code=404, detail="Product not found")
    return schemas.Message(message="Product deleted successfully")


# -----------------------
# Orders
# -----------------------

@router.get("/api/orders", response_model=List[schemas.Order])
def list_orders(
    customer_partition_key: Optional[str] = Query(None, alias="customerPartitionKey"),
    customer_row_key: Optional[str] = Query(None, alias="customerRowKey"),
    status: Optional[str] = None,
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    service: OrderService = Depends(get_order_service),
):
    """
    List orders, optionally filtered by customer, status and/or date range.
    """
    if customer_partition_key and customer_row_key:
        orders = service.orders_by_customer(customer_partition_key, customer_row_key)
    elif status:
        orders = service.orders_by_status(status)
    else:
        orders = service.list_orders()

    if status:
        orders = [o for o in orders if (o.order_status or "").lower() == status.lower()]
    if start_date is not None or end_date is not None:
        in_range = {
            (o.partition_key, o.row_key)
            for o in service.orders_by_date_range(start_date or datetime.min, end_date or datetime.max)
        }
        orders = [o for o in orders if (o.partition_key, o.row_key) in in_range]
    return orders


@router.get("/api/orders/{partition_key}/{row_key}", response_model=schemas.Order)
def get_order(partition_key: str, row_key: str, service: OrderService = Depends(get_order_service)):
    order = service.get_order(partition_key, row_key)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/api/orders", response_model=schemas.EntityCreated)
def create_order(order: schemas.OrderCreate, service: OrderService = Depends(get_order_service)):
    """
    Create an order. The total is computed from the product's current price.

    Raises:
        HTTPException: 400 if references are missing or do not resolve, or quantity <= 0
    """
    logger.info("Creating a new order")
    db_order = service.create_order(order)
    return schemas.EntityCreated(
        message="Order created successfully",
        partition_key=db_order.partition_key,
        row_key=db_order.row_key,
    )


@router.put("/api/orders/{partition_key}/{row_key}", response_model=schemas.Message)
def update_order(
    partition_key: str,
    row_key: str,
    order: schemas.OrderUpdate,
    service: OrderService = Depends(get_order_service),
):
    """
    Update an order. Only fields present in the body are changed; the total is recomputed.

    Raises:
        HTTPException: 404 if order not found
    """
    logger.info(f"Updating order: {partition_key}/{row_key}")
    if service.update_order(partition_key, row_key, order) is None:
        logger.warning(f"Order not found for PartitionKey: {partition_key}, RowKey: {row_key}")
        raise HTTPException(status_code=404, detail="Order not found")
    return schemas.Message(message="Order updated successfully")


@router.patch("/api/orders/{partition_key}/{row_key}/status", response_model=schemas.Order)
def update_order_status(
    partition_key: str,
    row_key: str,
    body: schemas.OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
):
    order = service.update_order_status(partition_key, row_key, body.status)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.delete("/api/orders/{partition_key}/{row_key}", response_model=schemas.Message)
def delete_order(partition_key: str, row_key: str, service: OrderService = Depends(get_order_service)):
    if not service.delete_order(partition_key, row_key):
        raise HTTPException(status_code=404, detail="Order not found")
    return schemas.Message(message="Order deleted successfully")


@router.get("/api/reports/sales", response_model=schemas.SalesTotal)
def total_sales(
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    service: OrderService = Depends(get_order_service),
):
    """
    Total sales (excluding cancelled orders) over an optional date range.
    """
    return schemas.SalesTotal(
        total_sales=service.total_sales(start_date, end_date),
        start_date=start_date,
        end_date=end_date,
    )


# -----------------------
# Audit log
# -----------------------

@router.get("/api/queue/messages", response_model=List[schemas.AuditLogEntry])
def get_messages(
    entity_type: Optional[str] = Query(None, alias="entityType"),
    action: Optional[str] = None,
    service: AuditLogService = Depends(get_audit_log_service),
):
    """
    Peek at up to 30 audit entries. Entries are not removed from the queue.

    Args:
        entity_type: Only entries for this entity type
        action: Only entries with this action
    """
    if entity_type:
        entries = service.by_entity_type(entity_type)
    elif action:
        entries = service.by_action(action)
    else:
        entries = service.recent_entries()
    if entity_type and action:
        entries = [e for e in entries if str((e.payload or {}).get("Action", "")).lower() == action.lower()]
    logger.info(f"Retrieved {len(entries)} messages from queue")
    return entries


@router.get("/api/queue/messages/export")
def export_messages(format: str = "json", service: AuditLogService = Depends(get_audit_log_service)):
    """
    Export the current audit window as JSON or CSV.

    Returns:
        audit_logs.json or audit_logs.csv as an attachment
    """
    if format.lower() == "csv":
        content, media_type, filename = service.export_csv(), "text/csv", "audit_logs.csv"
    else:
        content, media_type, filename = service.export_json(), "application/json", "audit_logs.json"
    return StreamingResponse(
        iter([content]),
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/api/queue/messages/{message_id}", response_model=schemas.AuditLogEntry)
def get_message(message_id: str, service: AuditLogService = Depends(get_audit_log_service)):
    entry = service.get_entry(message_id)
    if entry is None:
        raise HTTPException(status_code=404, detail="Audit log entry not found")
    return entry


@router.post("/api/queue/auditlog", response_model=schemas.Message)
def upload_audit_log(
    log_data: Optional[Dict[str, Any]] = Body(None),
    service: AuditLogService = Depends(get_audit_log_service),
):
    """
    Append an arbitrary {Action, EntityType, Details} entry to the audit log.

    Raises:
        HTTPException: 400 if no body is supplied
    """
    if not log_data:
        raise HTTPException(status_code=400, detail="Log data is required")
    service.send(
        log_data.get("Action", "Unknown"),
        log_data.get("EntityType", "Unknown"),
        log_data.get("Details", {}),
    )
    logger.info("Audit log uploaded successfully")
    return schemas.Message(message="Audit log uploaded successfully")


# -----------------------
# File share
# -----------------------

@router.post("/api/fileshare/upload", response_model=schemas.FileUploaded)
def upload_file(file: Optional[UploadFile] = File(None), service: ContractService = Depends(get_contract_service)):
    """
    Store a single uploaded file in the contracts file share.

    Raises:
        HTTPException: 400 if no file is uploaded or the file is rejected
    """
    logger.info("Uploading file to File Share")
    upload = read_upload(file)
    if upload is None:
        raise HTTPException(status_code=400, detail="No file uploaded")
    stored = service.upload(upload.filename, upload.content)
    return schemas.FileUploaded(message="File uploaded successfully", file_name=stored, share_name=service.share_name)


@router.get("/api/fileshare/files", response_model=List[str])
def list_files(service: ContractService = Depends(get_contract_service)):
    return service.list_files()


@router.get("/api/fileshare/files/{file_name}")
def download_file(file_name: str, service: ContractService = Depends(get_contract_service)):
    data = service.download(file_name)
    media_type = mimetypes.guess_type(file_name)[0] or "application/octet-stream"
    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f"attachment; filename={file_name}"},
    )


@router.delete("/api/fileshare/files/{file_name}", response_model=schemas.Message)
def delete_file(file_name: str, service: ContractService = Depends(get_contract_service)):
    if not service.delete(file_name):
        raise HTTPException(status_code=404, detail=f"File '{file_name}' not found.")
    return schemas.Message(message="File deleted successfully")


# -----------------------
# Application factory
# -----------------------

def handle_retail_error(request: Request, exc: RetailError) -> JSONResponse:
    """Map service errors to HTTP responses; server-side failures are logged."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc} ({exc.__cause__ or 'no cause'})")
    return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")


def create_app(
    settings: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    redis_client: Optional[redis.Redis] = None,
    customer_photos: Optional[BlobStore] = None,
    product_photos: Optional[BlobStore] = None,
    file_share: Optional[FileShare] = None,
) -> FastAPI:
    """
    Build the application and its storage clients.

    Any client not passed in is created from ``settings`` (read from the
    environment when omitted).

    Returns:
        FastAPI: The configured application
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    engine = engine or database.build_engine(settings.database_url)
    models.Base.metadata.create_all(bind=engine)

    if redis_client is None:
        redis_client = redis.from_url(settings.redis_url, decode_responses=True)
    if customer_photos is None:
        customer_photos = build_blob_store(settings, CUSTOMER_PHOTOS)
    if product_photos is None:
        product_photos = build_blob_store(settings, PRODUCT_PHOTOS)
    if file_share is None:
        file_share = FileShare(settings.fileshare_root, settings.fileshare_name)
    file_share.create_if_not_exists()

    app = FastAPI(title="retail-admin-service")
    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = database.build_session_factory(engine)
    app.state.audit_queue = AuditQueue(redis_client, settings.audit_queue_name, settings.audit_queue_maxlen)
    app.state.customer_photos = customer_photos
    app.state.product_photos = product_photos
    app.state.file_share = file_share

    app.add_exception_handler(RetailError, handle_retail_error)
    app.include_router(router)

    if isinstance(customer_photos, LocalBlobStore):
        customer_photos.create_if_not_exists()
        app.mount("/media", StaticFiles(directory=str(customer_photos.root)), name="media")

    logger.info(f"retail-admin-service configured (blob backend: {type(customer_photos).__name__})")
    return app
