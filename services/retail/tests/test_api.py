"""
End-to-end tests of the HTTP API using FastAPI's TestClient.

Storage is in-process: SQLite for the tables, fakeredis for the audit queue
and temporary directories for photos and contracts.
"""
from decimal import Decimal


def create_customer(client, form, **files):
    response = client.post("/api/customers", data=form, files=files or None)
    assert response.status_code == 200, response.text
    return response.json()


def create_product(client, **overrides):
    form = {"ProductName": "Widget", "Description": "A widget", "Price": "10.00", "Category": "Tools"}
    form.update(overrides)
    response = client.post("/api/products", data=form)
    assert response.status_code == 200, response.text
    return response.json()


def test_health_check(client):
    response = client.get("/healthz")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


# -----------------------
# Customers
# -----------------------

def test_create_and_get_customer(client, customer_form):
    created = create_customer(client, customer_form())

    assert created["message"] == "Customer created successfully"
    assert created["partitionKey"] == "Gauteng"

    response = client.get(f"/api/customers/{created['partitionKey']}/{created['rowKey']}")
    assert response.status_code == 200
    customer = response.json()
    assert customer["email"] == "thandi@gmail.com"
    assert customer["phoneNumber"] == "+27 82 555 0101"
    assert customer["customerPhotoUrl"] is None


def test_create_customer_requires_name_and_email(client, customer_form):
    response = client.post("/api/customers", data=customer_form(Name=""))

    assert response.status_code == 400
    assert response.json()["detail"] == "Name and Email are required"


def test_create_customer_rejects_other_email_domains(client, customer_form):
    response = client.post("/api/customers", data=customer_form(Email="thandi@yahoo.com"))

    assert response.status_code == 400
    assert response.json()["detail"] == "Only Gmail addresses are allowed"


def test_create_customer_duplicate_email(client, customer_form):
    create_customer(client, customer_form())

    response = client.post("/api/customers", data=customer_form(Name="Other"))

    assert response.status_code == 400
    assert response.json()["detail"] == "Email address already exists"


def test_customer_photo_is_served(client, customer_form):
    created = create_customer(client, customer_form(), file=("face.png", b"\x89PNG", "image/png"))
    customer = client.get(f"/api/customers/{created['partitionKey']}/{created['rowKey']}").json()

    url = customer["customerPhotoUrl"]
    assert url.startswith("http://testserver/media/customer-photos/")
    response = client.get(url)
    assert response.status_code == 200
    assert response.content == b"\x89PNG"


def test_partial_update_customer(client, customer_form):
    created = create_customer(client, customer_form())
    path = f"/api/customers/{created['partitionKey']}/{created['rowKey']}"

    response = client.put(path, data={"City": "Cape Town"})

    assert response.status_code == 200
    assert response.json() == {"message": "Customer updated successfully"}
    customer = client.get(path).json()
    assert customer["city"] == "Cape Town"
    assert customer["name"] == "Thandi"
    assert customer["province"] == "Gauteng"


def test_update_missing_customer(client):
    response = client.put("/api/customers/Gauteng/missing", data={"City": "Cape Town"})
    assert response.status_code == 404


def test_delete_customer_with_photo(client, customer_form, customer_photos):
    created = create_customer(client, customer_form(), file=("face.png", b"png", "image/png"))
    path = f"/api/customers/{created['partitionKey']}/{created['rowKey']}"
    url = client.get(path).json()["customerPhotoUrl"]

    response = client.delete(path)

    assert response.status_code == 200
    assert client.get(path).status_code == 404
    assert not customer_photos.exists(url)
    assert client.delete(path).status_code == 404


def test_list_customers_by_province(client, customer_form):
    create_customer(client, customer_form())
    create_customer(client, customer_form(Email="pieter@gmail.com", Province="Western Cape"))

    assert len(client.get("/api/customers").json()) == 2
    only = client.get("/api/customers", params={"province": "western cape"}).json()
    assert [c["email"] for c in only] == ["pieter@gmail.com"]


# -----------------------
# Products
# -----------------------

def test_create_product_and_filter(client):
    created = create_product(client)
    create_product(client, ProductName="Sofa", Price="4500", Category="Furniture")

    assert created["partitionKey"] == "Tools"
    product = client.get(f"/api/products/Tools/{created['rowKey']}").json()
    assert Decimal(product["price"]) == Decimal("10.00")

    tools = client.get("/api/products", params={"category": "tools"}).json()
    assert [p["productName"] for p in tools] == ["Widget"]
    pricey = client.get("/api/products", params={"minPrice": "100"}).json()
    assert [p["productName"] for p in pricey] == ["Sofa"]


def test_create_product_with_invalid_price(client):
    response = client.post("/api/products", data={"ProductName": "Widget", "Price": "ten"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Price must be a valid number"


def test_create_product_with_negative_price(client):
    response = client.post("/api/products", data={"ProductName": "Widget", "Price": "-1"})

    assert response.status_code == 400
    assert response.json()["detail"] == "Price cannot be negative"


def test_update_and_delete_product(client):
    created = create_product(client)
    path = f"/api/products/Tools/{created['rowKey']}"

    assert client.put(path, data={"Price": "12.50"}).status_code == 200
    assert Decimal(client.get(path).json()["price"]) == Decimal("12.50")

    assert client.delete(path).status_code == 200
    assert client.get(path).status_code == 404


# -----------------------
# Orders
# -----------------------

def place_order(client, customer, product, **overrides):
    body = {
        "customerPartitionKey": customer["partitionKey"],
        "customerRowKey": customer["rowKey"],
        "productPartitionKey": product["partitionKey"],
        "productRowKey": product["rowKey"],
        "quantity": 3,
    }
    body.update(overrides)
    return client.post("/api/orders", json=body)


def test_order_lifecycle(client, customer_form):
    customer = create_customer(client, customer_form())
    product = create_product(client)

    response = place_order(client, customer, product)
    assert response.status_code == 200, response.text
    created = response.json()
    path = f"/api/orders/{created['partitionKey']}/{created['rowKey']}"

    order = client.get(path).json()
    assert Decimal(order["totalAmount"]) == Decimal("30.00")
    assert order["orderStatus"] == "Pending"

    assert client.put(path, json={"quantity": 4}).status_code == 200
    assert Decimal(client.get(path).json()["totalAmount"]) == Decimal("40.00")

    response = client.patch(f"{path}/status", json={"status": "Shipped"})
    assert response.status_code == 200
    assert response.json()["orderStatus"] == "Shipped"

    assert client.delete(path).status_code == 200
    assert client.get(path).status_code == 404


def test_order_with_unknown_product(client, customer_form):
    customer = create_customer(client, customer_form())
    product = {"partitionKey": "Tools", "rowKey": "missing"}

    response = place_order(client, customer, product)

    assert response.status_code == 400
    assert response.json()["detail"] == "Product not found"


def test_order_with_zero_quantity(client, customer_form):
    customer = create_customer(client, customer_form())
    product = create_product(client)

    response = place_order(client, customer, product, quantity=0)

    assert response.status_code == 400
    assert response.json()["detail"] == "Quantity must be greater than zero"


def test_order_filters_and_sales_report(client, customer_form):
    customer = create_customer(client, customer_form())
    product = create_product(client)
    place_order(client, customer, product)
    cancelled = place_order(client, customer, product, quantity=1).json()
    client.patch(f"/api/orders/{cancelled['partitionKey']}/{cancelled['rowKey']}/status", json={"status": "Cancelled"})
    place_order(client, customer, product, quantity=2, orderDate="2020-01-15T10:00:00Z")

    by_customer = client.get("/api/orders", params={
        "customerPartitionKey": customer["partitionKey"],
        "customerRowKey": customer["rowKey"],
    }).json()
    assert len(by_customer) == 3

    cancelled = client.get("/api/orders", params={"status": "cancelled"}).json()
    assert [o["quantity"] for o in cancelled] == [1]

    in_2020 = client.get("/api/orders", params={"startDate": "2020-01-01T00:00:00", "endDate": "2020-12-31T00:00:00"})
    assert [o["partitionKey"] for o in in_2020.json()] == ["2020-01"]

    report = client.get("/api/reports/sales").json()
    assert Decimal(report["totalSales"]) == Decimal("50.00")


# -----------------------
# Audit log
# -----------------------

def test_messages_reflect_changes(client, customer_form):
    create_customer(client, customer_form())
    create_product(client)

    messages = client.get("/api/queue/messages").json()
    assert [m["payload"]["Action"] for m in messages] == ["Customer Created", "Product Created"]
    assert messages[0]["payload"]["EntityType"] == "Customer"
    assert messages[0]["insertionTime"]

    # Reading does not consume
    assert len(client.get("/api/queue/messages").json()) == 2

    products = client.get("/api/queue/messages", params={"entityType": "Product"}).json()
    assert [m["payload"]["Action"] for m in products] == ["Product Created"]


def test_message_window_is_capped(client):
    for i in range(32):
        client.post("/api/queue/auditlog", json={"Action": f"Ping {i}", "EntityType": "Test"})

    assert len(client.get("/api/queue/messages").json()) == 30


def test_upload_audit_log_defaults(client):
    response = client.post("/api/queue/auditlog", json={"Action": "Login"})
    assert response.status_code == 200

    message, = client.get("/api/queue/messages").json()
    assert message["payload"]["EntityType"] == "Unknown"
    assert message["payload"]["Details"] == {}

    fetched = client.get(f"/api/queue/messages/{message['messageId']}")
    assert fetched.status_code == 200
    assert fetched.json()["messageText"] == message["messageText"]


def test_upload_audit_log_requires_body(client):
    response = client.post("/api/queue/auditlog")
    assert response.status_code == 400


def test_get_unknown_message(client):
    assert client.get("/api/queue/messages/1-0").status_code == 404


def test_export_messages(client):
    client.post("/api/queue/auditlog", json={"Action": "Login", "EntityType": "User"})

    csv_response = client.get("/api/queue/messages/export", params={"format": "csv"})
    assert csv_response.status_code == 200
    assert csv_response.headers["content-type"].startswith("text/csv")
    assert csv_response.text.splitlines()[0] == "MessageId,InsertionTime,MessageText"

    json_response = client.get("/api/queue/messages/export")
    assert "audit_logs.json" in json_response.headers["content-disposition"]
    assert json_response.json()[0]["payload"]["Action"] == "Login"


# -----------------------
# File share
# -----------------------

def test_contract_file_lifecycle(client):
    response = client.post("/api/fileshare/upload", files={"file": ("lease.pdf", b"%PDF-1.7", "application/pdf")})

    assert response.status_code == 200
    assert response.json() == {
        "message": "File uploaded successfully",
        "fileName": "lease.pdf",
        "shareName": "retail-fileshare",
    }
    assert client.get("/api/fileshare/files").json() == ["lease.pdf"]

    download = client.get("/api/fileshare/files/lease.pdf")
    assert download.status_code == 200
    assert download.content == b"%PDF-1.7"

    assert client.delete("/api/fileshare/files/lease.pdf").status_code == 200
    assert client.get("/api/fileshare/files/lease.pdf").status_code == 404

    actions = [m["payload"]["Action"] for m in client.get("/api/queue/messages").json()]
    assert actions == ["Contract Uploaded", "Contract Deleted"]


def test_upload_without_file(client):
    response = client.post("/api/fileshare/upload")

    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


def test_upload_rejects_other_file_types(client):
    response = client.post("/api/fileshare/upload", files={"file": ("run.exe", b"MZ", "application/octet-stream")})

    assert response.status_code == 400
    assert response.json()["detail"].startswith("Please upload a valid contract file")
