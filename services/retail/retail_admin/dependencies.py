"""
FastAPI dependencies assembling the per-request services.

Long-lived clients (engine, Redis, blob containers, file share) are created
once by the application factory and kept on ``app.state``; services are cheap
and built per request around the request's database session.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from . import crud
from .audit import AuditLogger
from .database import get_db
from .services.audit_log import AuditLogService
from .services.contracts import ContractService
from .services.customers import CustomerService
from .services.orders import OrderService
from .services.products import ProductService


def _audit(request: Request, entity_type: str) -> AuditLogger:
    return AuditLogger(request.app.state.audit_queue, entity_type)


def get_customer_service(request: Request, db: Session = Depends(get_db)) -> CustomerService:
    return CustomerService(
        crud.customers_table(db),
        request.app.state.customer_photos,
        _audit(request, "Customer"),
        email_domain=request.app.state.settings.allowed_email_domain,
    )


def get_product_service(request: Request, db: Session = Depends(get_db)) -> ProductService:
    return ProductService(crud.products_table(db), request.app.state.product_photos, _audit(request, "Product"))


def get_order_service(
    request: Request,
    db: Session = Depends(get_db),
    customers: CustomerService = Depends(get_customer_service),
    products: ProductService = Depends(get_product_service),
) -> OrderService:
    return OrderService(crud.orders_table(db), customers, products, _audit(request, "Order"))


def get_audit_log_service(request: Request) -> AuditLogService:
    return AuditLogService(request.app.state.audit_queue)


def get_contract_service(request: Request) -> ContractService:
    return ContractService(request.app.state.file_share, _audit(request, "Contract"))
