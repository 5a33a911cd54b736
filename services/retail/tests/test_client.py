"""
Tests for the async API client, run against the application in-process
through httpx's ASGI transport.
"""
from decimal import Decimal

import httpx
import pytest

from retail_admin.clients.retail_client import RetailApiClient, form_fields, CUSTOMER_FIELDS


@pytest.fixture
def api(app):
    return RetailApiClient("http://testserver", transport=httpx.ASGITransport(app=app))


def test_form_fields_uses_service_names():
    form = form_fields({"name": "Thandi", "postal_code": 2001, "city": None}, CUSTOMER_FIELDS)
    assert form == {"Name": "Thandi", "PostalCode": "2001"}


@pytest.mark.anyio
async def test_customer_product_order_flow(api, customer_form):
    customer = await api.create_customer(customer_form(), photo=("face.png", b"png"))
    product = await api.create_product({"product_name": "Widget", "price": "10.00", "category": "Tools"})

    order = await api.create_order({
        "customerPartitionKey": customer["partitionKey"],
        "customerRowKey": customer["rowKey"],
        "productPartitionKey": product["partitionKey"],
        "productRowKey": product["rowKey"],
        "quantity": 3,
    })

    stored = await api.get_order(order["partitionKey"], order["rowKey"])
    assert Decimal(stored["totalAmount"]) == Decimal("30.00")
    assert len(await api.list_orders(status="Pending")) == 1

    fetched = await api.get_customer(customer["partitionKey"], customer["rowKey"])
    assert fetched["customerPhotoUrl"]

    await api.update_customer(customer["partitionKey"], customer["rowKey"], {"city": "Cape Town"})
    assert (await api.get_customer(customer["partitionKey"], customer["rowKey"]))["city"] == "Cape Town"

    assert await api.delete_order(order["partitionKey"], order["rowKey"]) is True
    assert await api.delete_customer(customer["partitionKey"], customer["rowKey"]) is True
    assert await api.get_customer(customer["partitionKey"], customer["rowKey"]) is None


@pytest.mark.anyio
async def test_missing_entities(api):
    assert await api.get_product("Tools", "missing") is None
    assert await api.update_product("Tools", "missing", {"price": "5"}) is None
    assert await api.delete_product("Tools", "missing") is False


@pytest.mark.anyio
async def test_validation_errors_raise(api, customer_form):
    with pytest.raises(httpx.HTTPStatusError) as error:
        await api.create_customer(customer_form(Email="thandi@yahoo.com"))
    assert error.value.response.status_code == 400


@pytest.mark.anyio
async def test_audit_log_and_file_upload(api):
    await api.upload_audit_log("Login", "User", {"User": "admin"})
    uploaded = await api.upload_file("lease.pdf", b"%PDF")

    assert uploaded["fileName"] == "lease.pdf"
    messages = await api.get_messages(entity_type="User")
    assert [m["payload"]["Action"] for m in messages] == ["Login"]
    assert len(await api.get_messages()) == 2
