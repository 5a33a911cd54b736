import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from retail_admin import crud, database, models
from retail_admin.audit import AuditLogger
from retail_admin.config import Settings
from retail_admin.main import create_app
from retail_admin.services.audit_log import AuditLogService
from retail_admin.services.contracts import ContractService
from retail_admin.services.customers import CustomerService
from retail_admin.services.orders import OrderService
from retail_admin.services.products import ProductService
from retail_admin.storage.blobs import CUSTOMER_PHOTOS, PRODUCT_PHOTOS, LocalBlobStore
from retail_admin.storage.fileshare import FileShare
from retail_admin.storage.queue import AuditQueue

MEDIA_URL = "http://testserver/media"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = database.build_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def redis_client():
    return fakeredis.FakeRedis(decode_responses=True)


@pytest.fixture
def queue(redis_client):
    return AuditQueue(redis_client, "audit-queue")


@pytest.fixture
def customer_photos(tmp_path):
    store = LocalBlobStore(str(tmp_path / "blobs"), CUSTOMER_PHOTOS, MEDIA_URL)
    store.create_if_not_exists()
    return store


@pytest.fixture
def product_photos(tmp_path):
    store = LocalBlobStore(str(tmp_path / "blobs"), PRODUCT_PHOTOS, MEDIA_URL)
    store.create_if_not_exists()
    return store


@pytest.fixture
def file_share(tmp_path):
    share = FileShare(str(tmp_path / "shares"), "retail-fileshare")
    share.create_if_not_exists()
    return share


@pytest.fixture
def customer_service(db, customer_photos, queue):
    return CustomerService(crud.customers_table(db), customer_photos, AuditLogger(queue, "Customer"))


@pytest.fixture
def product_service(db, product_photos, queue):
    return ProductService(crud.products_table(db), product_photos, AuditLogger(queue, "Product"))


@pytest.fixture
def order_service(db, customer_service, product_service, queue):
    return OrderService(crud.orders_table(db), customer_service, product_service, AuditLogger(queue, "Order"))


@pytest.fixture
def audit_log_service(queue):
    return AuditLogService(queue)


@pytest.fixture
def contract_service(file_share, queue):
    return ContractService(file_share, AuditLogger(queue, "Contract"))


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        blob_root=str(tmp_path / "blobs"),
        public_base_url=MEDIA_URL,
        fileshare_root=str(tmp_path / "shares"),
        log_level="DEBUG",
    )


@pytest.fixture
def app(settings, engine, redis_client, customer_photos, product_photos, file_share):
    return create_app(
        settings,
        engine=engine,
        redis_client=redis_client,
        customer_photos=customer_photos,
        product_photos=product_photos,
        file_share=file_share,
    )


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def customer_form():
    """Builder for a valid customer multipart form."""
    def build(**overrides):
        form = {
            "Name": "Thandi",
            "Surname": "Mokoena",
            "Email": "thandi@gmail.com",
            "PhoneNumber": "+27 82 555 0101",
            "StreetAddress": "12 Long Street",
            "City": "Johannesburg",
            "Province": "Gauteng",
            "PostalCode": "2001",
            "Country": "South Africa",
        }
        form.update(overrides)
        return form
    return build
