from fastapi.testclient import TestClient

from app.main import app


def _post_intent(client, resource, **data):
    resp = client.post(f"/admin/resources/{resource}/table", data=data, follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == f"/admin/resources/{resource}"
    return resp


def _product_form(**overrides):
    form = {
        "name": "Desk Mat",
        "description": "Felt desk mat",
        "price": "24.50",
        "category": "home",
        "stock": "40",
        "sku": "DM-0001",
        "image": "",
    }
    form.update(overrides)
    return form


def test_admin_root_redirects_to_resources(client):
    resp = client.get("/admin", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/resources"


def test_home_lists_registered_resources(client):
    resp = client.get("/admin/resources")
    assert resp.status_code == 200
    for title in ("Users", "Products", "Orders"):
        assert title in resp.text


def test_list_page_renders_formatted_rows(client):
    resp = client.get("/admin/resources/products")
    assert resp.status_code == 200
    assert "12 items found" in resp.text
    assert "Laptop Pro 15" in resp.text
    assert "$1,299.00" in resp.text
    assert "Throw Blanket" not in resp.text


def test_search_intent_filters_rows(client):
    _post_intent(client, "products", intent="search", search="lamp")
    resp = client.get("/admin/resources/products")
    assert "1 item found" in resp.text
    assert "Desk Lamp" in resp.text
    assert "Laptop Pro 15" not in resp.text


def test_sort_and_page_intents(client):
    _post_intent(client, "products", intent="sort", field="price")
    text = client.get("/admin/resources/products").text
    assert text.index("Cotton T-Shirt") < text.index("Wireless Mouse")
    assert 'aria-sort="ascending"' in text

    _post_intent(client, "products", intent="page", page="2")
    text = client.get("/admin/resources/products").text
    assert "Rain Jacket" in text
    assert "Laptop Pro 15" in text
    assert "Cotton T-Shirt" not in text


def test_filter_and_clear_filters(client):
    _post_intent(client, "orders", intent="filter", field="status", value="pending")
    text = client.get("/admin/resources/orders").text
    assert "2 items found" in text
    assert "Status: Pending" in text

    _post_intent(client, "orders", intent="clear_filters")
    assert "6 items found" in client.get("/admin/resources/orders").text


def test_date_range_filter(client):
    _post_intent(
        client, "orders", intent="filter", field="created_at", value_from="2024-03-15", value_to=""
    )
    text = client.get("/admin/resources/orders").text
    assert "3 items found" in text
    assert 'value="2024-03-15"' in text


def test_invalid_intent_renders_error_page(client):
    resp = client.post("/admin/resources/products/table", data={"intent": "page", "page": "two"})
    assert resp.status_code == 400
    assert "Invalid page: two" in resp.text


def test_create_flow(client):
    resp = client.get("/admin/resources/products/new")
    assert resp.status_code == 200
    assert "New Products" in resp.text

    resp = client.post("/admin/resources/products", data=_product_form(), follow_redirects=False)
    assert resp.status_code == 303

    text = client.get("/admin/resources/products").text
    assert "13 items found" in text
    assert "Products record created" in text
    assert client.get("/api/resources/products/13").json()["price"] == 24.5


def test_create_with_errors_rerenders_form(client):
    resp = client.post(
        "/admin/resources/products", data=_product_form(name="", price="cheap")
    )
    assert resp.status_code == 422
    assert "Name is required" in resp.text
    assert "Price must be a number" in resp.text
    assert 'value="cheap"' in resp.text
    assert client.get("/api/resources/products").json()["total"] == 12


def test_edit_flow(client):
    resp = client.get("/admin/resources/products/1/edit")
    assert resp.status_code == 200
    assert 'value="Laptop Pro 15"' in resp.text

    resp = client.post(
        "/admin/resources/products/1",
        data=_product_form(name="Laptop Pro 16", price="1399", category="electronics"),
        follow_redirects=False,
    )
    assert resp.status_code == 303
    record = client.get("/api/resources/products/1").json()
    assert record["name"] == "Laptop Pro 16"
    assert record["price"] == 1399


def test_update_missing_record_is_404(client):
    resp = client.post("/admin/resources/products/404", data=_product_form())
    assert resp.status_code == 404


def test_detail_page(client):
    resp = client.get("/admin/resources/orders/1")
    assert resp.status_code == 200
    assert "ORD-1001" in resp.text
    assert "Delivered" in resp.text
    assert "$1,328.99" in resp.text


def test_detail_for_missing_record_renders_404(client):
    resp = client.get("/admin/resources/orders/999")
    assert resp.status_code == 404
    assert "Record 999 not found" in resp.text
    assert "Reference ID:" in resp.text


def test_delete_requires_confirmation(client):
    resp = client.get("/admin/resources/users/2/delete")
    assert resp.status_code == 200
    assert "Delete: 1 item. This cannot be undone." in resp.text
    assert "manager@example.com" in resp.text

    resp = client.post("/admin/resources/users/2/delete")
    assert resp.status_code == 409
    assert client.get("/api/resources/users/2").status_code == 200

    resp = client.post(
        "/admin/resources/users/2/delete", data={"confirm": "true"}, follow_redirects=False
    )
    assert resp.status_code == 303
    assert client.get("/api/resources/users/2").status_code == 404
    assert "Users record deleted" in client.get("/admin/resources/users").text


def test_bulk_delete_flow(client):
    client.get("/admin/resources/products")
    _post_intent(client, "products", intent="toggle", record_id="1")
    _post_intent(client, "products", intent="toggle", record_id="2")
    assert "2 selected" in client.get("/admin/resources/products").text

    resp = client.post("/admin/resources/products/bulk/delete")
    assert resp.status_code == 200
    assert "Delete selected: 2 items. This cannot be undone." in resp.text
    assert 'name="ids" value="1"' in resp.text
    assert 'name="ids" value="2"' in resp.text
    assert client.get("/api/resources/products").json()["total"] == 12

    resp = client.post(
        "/admin/resources/products/bulk/delete",
        data={"confirm": "true", "ids": ["1", "2"]},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    text = client.get("/admin/resources/products").text
    assert "Deleted 2 items" in text
    assert "10 items found" in text
    assert "0 selected" in text


def test_bulk_delete_without_selection_is_rejected(client):
    resp = client.post("/admin/resources/products/bulk/delete")
    assert resp.status_code == 400
    assert "No records selected" in resp.text


def test_custom_bulk_action(client):
    client.get("/admin/resources/users")
    _post_intent(client, "users", intent="toggle", record_id="1")
    resp = client.post("/admin/resources/users/bulk/deactivate", follow_redirects=False)
    assert resp.status_code == 303
    assert client.get("/api/resources/users/1").json()["is_active"] is False


def test_unknown_bulk_action_is_404(client):
    assert client.post("/admin/resources/users/bulk/promote").status_code == 404


def test_cancel_closes_dialogs(client):
    client.get("/admin/resources/products/new")
    resp = client.post("/admin/resources/products/cancel", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/resources/products"


def test_export_csv_uses_current_filters(client):
    _post_intent(client, "products", intent="filter", field="category", value="books")
    resp = client.get("/admin/resources/products/export.csv")
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/csv")
    assert 'filename="products_export.csv"' in resp.headers["content-disposition"]
    lines = resp.text.strip().splitlines()
    assert lines[0] == "ID,Name,Price,Category,Stock,SKU,Created At"
    assert lines[1] == "8,Python Cookbook,$49.99,Books,23,BK-1001,03/01/2024"
    assert len(lines) == 3


def test_login_required_when_token_configured(client, monkeypatch, open_admin):
    from app.services import auth_dependencies
    from app.web.auth import routes as auth_routes

    secured = open_admin.model_copy(update={"admin_session_token": "s3cret"})
    monkeypatch.setattr(auth_dependencies, "settings", secured)
    monkeypatch.setattr(auth_routes, "settings", secured)

    resp = client.get("/admin/resources/users", follow_redirects=False)
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/login?next=%2Fadmin%2Fresources%2Fusers"

    resp = client.post("/admin/login", data={"token": "wrong", "next": "/admin/resources/users"})
    assert resp.status_code == 401
    assert "Invalid access token" in resp.text

    resp = client.post(
        "/admin/login",
        data={"token": "s3cret", "next": "/admin/resources/users"},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert resp.headers["location"] == "/admin/resources/users"
    assert "session_token" in resp.headers["set-cookie"]

    assert client.get("/admin/resources/users").status_code == 200

    client.get("/admin/logout")
    assert client.get("/admin/resources/users", follow_redirects=False).status_code == 303


def test_login_rejects_external_next(client):
    resp = client.post(
        "/admin/login", data={"token": "x", "next": "//evil.example"}, follow_redirects=False
    )
    assert resp.headers["location"] == "/admin/resources"


def test_bulk_delete_confirms_only_the_listed_records(client):
    client.get("/admin/resources/products")
    _post_intent(client, "products", intent="toggle", record_id="1")
    _post_intent(client, "products", intent="toggle", record_id="2")
    resp = client.post("/admin/resources/products/bulk/delete")
    assert "Delete selected: 2 items. This cannot be undone." in resp.text

    _post_intent(client, "products", intent="select_all")
    assert "10 selected" in client.get("/admin/resources/products").text

    resp = client.post(
        "/admin/resources/products/bulk/delete",
        data={"confirm": "true", "ids": ["1", "2"]},
        follow_redirects=False,
    )
    assert resp.status_code == 303
    assert client.get("/api/resources/products").json()["total"] == 10
    assert client.get("/api/resources/products/1").status_code == 404
    assert client.get("/api/resources/products/3").status_code == 200


def test_bulk_delete_with_changed_ids_is_rejected(client):
    client.get("/admin/resources/products")
    _post_intent(client, "products", intent="toggle", record_id="1")
    _post_intent(client, "products", intent="toggle", record_id="2")
    client.post("/admin/resources/products/bulk/delete")

    resp = client.post(
        "/admin/resources/products/bulk/delete",
        data={"confirm": "true", "ids": ["1", "2", "3"]},
    )
    assert resp.status_code == 409
    assert "The selection changed" in resp.text

    resp = client.post("/admin/resources/products/bulk/delete", data={"confirm": "true"})
    assert resp.status_code == 409
    assert client.get("/api/resources/products").json()["total"] == 12


def test_custom_bulk_action_clears_selection(client):
    client.get("/admin/resources/orders")
    _post_intent(client, "orders", intent="toggle", record_id="4")
    _post_intent(client, "orders", intent="toggle", record_id="6")
    assert "2 selected" in client.get("/admin/resources/orders").text

    resp = client.post("/admin/resources/orders/bulk/mark_shipped", follow_redirects=False)
    assert resp.status_code == 303

    text = client.get("/admin/resources/orders").text
    assert "0 selected" in text
    assert text.count("Mark shipped: 2 selected") == 1
    assert "Orders record updated" not in text
    for record_id in ("4", "6"):
        assert client.get(f"/api/resources/orders/{record_id}").json()["status"] == "shipped"


def test_table_state_is_kept_per_browser(client):
    _post_intent(client, "products", intent="search", search="lamp")
    _post_intent(client, "products", intent="toggle", record_id="10")
    assert "admin_view" in client.cookies

    other = TestClient(app, raise_server_exceptions=False)
    text = other.get("/admin/resources/products").text
    assert "12 items found" in text
    assert "0 selected" in text

    _post_intent(other, "products", intent="toggle", record_id="1")
    resp = other.post("/admin/resources/products/bulk/delete")
    assert "Delete selected: 1 item." in resp.text
    assert 'name="ids" value="1"' in resp.text

    text = client.get("/admin/resources/products").text
    assert "1 item found" in text
    assert "1 selected" in text
