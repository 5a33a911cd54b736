"""
Tests for the storage layer: entity tables, photo blobs, the audit queue and
the contracts file share.
"""
import base64
import json
from decimal import Decimal

import boto3
import fakeredis
import pytest
from botocore.stub import ANY, Stubber

from retail_admin import crud, models
from retail_admin.errors import LoggingError, StorageError, ValidationError
from retail_admin.storage.blobs import S3BlobStore, blob_name_from_url, content_type_for
from retail_admin.storage.queue import AuditQueue


def make_customer(**overrides):
    fields = dict(
        name="Sipho",
        surname="Dlamini",
        email="sipho@gmail.com",
        street_address="1 Main Road",
        province="Western Cape",
    )
    fields.update(overrides)
    return models.Customer(**fields)


# -----------------------
# Entity tables
# -----------------------

def test_insert_assigns_keys_from_grouping_field(db):
    """Inserting derives the partition from the grouping field and a fresh row key."""
    table = crud.customers_table(db)
    customer = table.insert(make_customer())

    assert customer.partition_key == "Western Cape"
    assert len(customer.row_key) == 36
    assert customer.timestamp is not None
    assert table.get("Western Cape", customer.row_key).email == "sipho@gmail.com"


def test_insert_uses_default_partition(db):
    customer = crud.customers_table(db).insert(make_customer(province=None))
    product = crud.products_table(db).insert(models.Product(product_name="Mug", price=Decimal("12.50")))

    assert customer.partition_key == "Unknown"
    assert product.partition_key == "General"


def test_get_missing_returns_none(db):
    assert crud.customers_table(db).get("Nowhere", "missing") is None


def test_update_overwrites_without_changing_keys(db):
    table = crud.customers_table(db)
    customer = table.insert(make_customer())
    row_key = customer.row_key

    customer.city = "Cape Town"
    customer.province = "Gauteng"
    table.update(customer)

    stored = table.get("Western Cape", row_key)
    assert stored.city == "Cape Town"
    assert stored.province == "Gauteng"
    assert len(table.list()) == 1


def test_delete_missing_entity_raises(db):
    with pytest.raises(StorageError):
        crud.customers_table(db).delete("Western Cape", "missing")


def test_delete_removes_entity(db):
    table = crud.products_table(db)
    product = table.insert(models.Product(product_name="Lamp", price=Decimal("99.99"), category="Home"))

    table.delete(product.partition_key, product.row_key)

    assert table.list() == []


# -----------------------
# Blobs
# -----------------------

def test_blob_name_from_url():
    assert blob_name_from_url("http://host/media/customer-photos/abc_face%20one.png") == "abc_face one.png"
    assert blob_name_from_url("") == ""
    assert blob_name_from_url(None) == ""
    assert blob_name_from_url("http://host/media/customer-photos/..%2Fsecret") == ""


def test_content_type_for():
    assert content_type_for("photo.JPG") == "image/jpeg"
    assert content_type_for("photo.webp") == "image/webp"
    assert content_type_for("notes.bin") == "application/octet-stream"


def test_local_upload_exists_delete(customer_photos):
    url = customer_photos.upload("face.png", b"\x89PNG")

    assert url.startswith("http://testserver/media/customer-photos/")
    assert url.endswith("_face.png")
    assert customer_photos.exists(url)
    assert customer_photos.list_urls() == [url]

    assert customer_photos.delete(url) is True
    assert not customer_photos.exists(url)
    assert customer_photos.delete(url) is False


def test_local_uploads_of_same_name_do_not_collide(customer_photos):
    first = customer_photos.upload("face.png", b"one")
    second = customer_photos.upload("face.png", b"two")

    assert first != second
    assert len(customer_photos.list_urls()) == 2


def test_local_delete_unparseable_url(customer_photos):
    assert customer_photos.delete("not a url/") is False


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_s3_upload_sets_content_type(s3_client):
    store = S3BlobStore(s3_client, "product-photos", public_base_url="https://cdn.example.com")
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "put_object",
            {},
            {"Bucket": "product-photos", "Key": ANY, "Body": ANY, "ContentType": "image/png"},
        )
        url = store.upload("widget.png", b"data")
        stubber.assert_no_pending_responses()

    assert url.startswith("https://cdn.example.com/product-photos/")
    assert url.endswith("_widget.png")


def test_s3_delete_missing_object_returns_false(s3_client):
    store = S3BlobStore(s3_client, "product-photos", public_base_url="https://cdn.example.com")
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("head_object", service_error_code="404", http_status_code=404)
        assert store.delete("https://cdn.example.com/product-photos/gone.png") is False


def test_s3_delete_existing_object(s3_client):
    store = S3BlobStore(s3_client, "product-photos", public_base_url="https://cdn.example.com")
    with Stubber(s3_client) as stubber:
        stubber.add_response("head_object", {}, {"Bucket": "product-photos", "Key": "abc_w.png"})
        stubber.add_response("delete_object", {}, {"Bucket": "product-photos", "Key": "abc_w.png"})
        assert store.delete("https://cdn.example.com/product-photos/abc_w.png") is True
        stubber.assert_no_pending_responses()


def test_s3_access_denied_is_a_storage_error(s3_client):
    store = S3BlobStore(s3_client, "product-photos", public_base_url="https://cdn.example.com")
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("head_object", service_error_code="403", http_status_code=403)
        with pytest.raises(StorageError):
            store.exists("https://cdn.example.com/product-photos/abc_w.png")


def test_s3_create_bucket_when_missing(s3_client):
    store = S3BlobStore(s3_client, "customer-photos", public_base_url="https://cdn.example.com")
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("head_bucket", service_error_code="404", http_status_code=404)
        stubber.add_response("create_bucket", {}, {"Bucket": "customer-photos"})
        store.create_if_not_exists()
        stubber.assert_no_pending_responses()


def test_s3_list_urls(s3_client):
    store = S3BlobStore(s3_client, "customer-photos", public_base_url="https://cdn.example.com")
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "a_one.png"}, {"Key": "b_two.png"}], "IsTruncated": False},
            {"Bucket": "customer-photos"},
        )
        urls = store.list_urls()

    assert urls == [
        "https://cdn.example.com/customer-photos/a_one.png",
        "https://cdn.example.com/customer-photos/b_two.png",
    ]


# -----------------------
# Audit queue
# -----------------------

def test_messages_are_base64_encoded_json(queue, redis_client):
    message_id = queue.append({"Action": "Test", "EntityType": "Thing"})

    (_, fields), = redis_client.xrange("audit-queue")
    assert json.loads(base64.b64decode(fields["body"])) == {"Action": "Test", "EntityType": "Thing"}

    entry = queue.get(message_id)
    assert entry.message_id == message_id
    assert entry.payload == {"Action": "Test", "EntityType": "Thing"}
    assert entry.insertion_time is not None


def test_peek_is_capped_and_non_destructive(queue):
    for i in range(35):
        queue.append({"Action": f"Action {i}", "EntityType": "Thing"})

    first = queue.peek_recent()
    second = queue.peek_recent()

    assert len(first) == 30
    assert [e.message_id for e in first] == [e.message_id for e in second]
    assert first[0].payload["Action"] == "Action 0"


def test_peek_empty_queue(queue):
    assert queue.peek_recent() == []


def test_raw_messages_are_returned_as_text(queue, redis_client):
    message_id = redis_client.xadd("audit-queue", {"body": "not base64!"})

    entry = queue.get(message_id)

    assert entry.message_text == "not base64!"
    assert entry.payload is None


def test_get_unknown_or_malformed_id(queue):
    assert queue.get("1-0") is None
    assert queue.get("abc") is None


def test_append_failure_raises_logging_error():
    server = fakeredis.FakeServer()
    server.connected = False
    queue = AuditQueue(fakeredis.FakeRedis(server=server, decode_responses=True))

    with pytest.raises(LoggingError):
        queue.append({"Action": "Test"})


# -----------------------
# File share
# -----------------------

def test_file_share_round_trip(file_share):
    name = file_share.upload("contract.pdf", b"%PDF-1.7")

    assert name == "contract.pdf"
    assert file_share.exists("contract.pdf")
    assert file_share.list_files() == ["contract.pdf"]
    assert file_share.download("contract.pdf") == b"%PDF-1.7"
    assert file_share.delete("contract.pdf") is True
    assert file_share.download("contract.pdf") is None
    assert file_share.delete("contract.pdf") is False


def test_file_share_strips_directories(file_share):
    assert file_share.upload("../../etc/contract.txt", b"x") == "contract.txt"
    assert file_share.list_files() == ["contract.txt"]


def test_file_share_requires_a_name(file_share):
    with pytest.raises(ValidationError):
        file_share.upload("", b"x")
