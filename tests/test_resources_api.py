import json


def test_list_returns_data_and_total(client):
    resp = client.get("/api/resources/products", params={"limit": 5})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 12
    assert len(body["data"]) == 5


def test_list_supports_search_filters_and_sort(client):
    resp = client.get(
        "/api/resources/products",
        params={
            "search": "o",
            "filters": json.dumps({"category": "books"}),
            "sort": "price",
            "order": "desc",
        },
    )
    assert resp.status_code == 200
    names = [row["name"] for row in resp.json()["data"]]
    assert names == ["Design Patterns", "Python Cookbook"]


def test_list_supports_operator_filters(client):
    filters = json.dumps({"price": {"operator": "between", "value": {"from": 40, "to": 60}}})
    resp = client.get("/api/resources/products", params={"filters": filters, "sort": "price"})
    assert [row["price"] for row in resp.json()["data"]] == [45, 49.99, 54, 60]


def test_list_rejects_malformed_filters(client):
    resp = client.get("/api/resources/products", params={"filters": "{oops"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid JSON in filters payload"


def test_unknown_resource_is_404(client):
    resp = client.get("/api/resources/invoices")
    assert resp.status_code == 404
    assert resp.json()["code"] == "http_404"


def test_schema_describes_fields_and_flags(client):
    resp = client.get("/api/resources/users/schema")
    assert resp.status_code == 200
    schema = resp.json()
    assert schema["key"] == "users"
    role = next(field for field in schema["fields"] if field["key"] == "role")
    assert role["value_type"] == "enum"
    assert role["filter_control"] == "select"
    assert [option["value"] for option in role["enum_options"]] == ["admin", "manager", "user"]
    assert schema["bulk_actions"] == ["deactivate", "delete"]
    assert schema["flags"]["enable_export"] is True


def test_get_record_and_missing_record(client):
    assert client.get("/api/resources/orders/3").json()["order_number"] == "ORD-1003"

    resp = client.get("/api/resources/orders/300")
    assert resp.status_code == 404
    body = resp.json()
    assert body["code"] == "not_found"
    assert body["message"] == "Record 300 not found"
    assert body["request_id"]


def test_create_validates_and_stamps_dates(client):
    resp = client.post(
        "/api/resources/orders",
        json={
            "order_number": "ORD-2000",
            "customer_id": "2",
            "customer_name": "John Manager",
            "total": 10,
            "status": "pending",
            "unknown_key": "dropped",
        },
    )
    assert resp.status_code == 201
    record = resp.json()
    assert record["id"] == "7"
    assert "unknown_key" not in record
    assert record["created_at"]
    assert record["updated_at"]


def test_create_rejects_invalid_payload(client):
    resp = client.post("/api/resources/orders", json={"order_number": "ORD-2001", "total": -5})
    assert resp.status_code == 422
    body = resp.json()
    assert body["code"] == "validation_error"
    assert body["details"]["total"] == "Total cannot be negative"
    assert "customer_name" in body["details"]


def test_create_rejects_non_object_body(client):
    resp = client.post("/api/resources/orders", json=[1, 2])
    assert resp.status_code == 400


def test_patch_is_partial_and_keeps_id(client):
    resp = client.patch("/api/resources/orders/4", json={"status": "shipped", "id": "99"})
    assert resp.status_code == 200
    record = resp.json()
    assert record["id"] == "4"
    assert record["status"] == "shipped"
    assert record["order_number"] == "ORD-1004"


def test_patch_rejects_bad_enum(client):
    resp = client.patch("/api/resources/orders/4", json={"status": "lost"})
    assert resp.status_code == 422
    assert resp.json()["details"] == {"status": "Select a valid status"}


def test_delete_and_bulk_delete(client):
    assert client.delete("/api/resources/users/4").status_code == 204
    assert client.delete("/api/resources/users/4").status_code == 404

    resp = client.post("/api/resources/users/bulk-delete", json={"ids": ["2", "3", "77"]})
    assert resp.status_code == 200
    assert resp.json() == {"ids": ["2", "3", "77"], "deleted": 2}
    assert client.get("/api/resources/users").json()["total"] == 1


def test_bulk_delete_requires_ids(client):
    resp = client.post("/api/resources/users/bulk-delete", json={"ids": []})
    assert resp.status_code == 422


def test_table_view_and_intents(client):
    view = client.get("/api/resources/products/view").json()
    assert view["found_label"] == "12 items found"
    assert view["pagination"]["total_pages"] == 2
    assert len(view["rows"]) == 10

    view = client.post(
        "/api/resources/products/view/intents", json={"intent": "filter", "field": "category", "value": "home"}
    ).json()
    assert view["found_label"] == "3 items found"
    assert view["active_filters"] == ["Category: Home"]

    view = client.post("/api/resources/products/view/intents", json={"intent": "select_all"}).json()
    assert view["selected_count"] == 3
    assert view["all_selected"] is True


def test_unknown_intent_is_rejected(client):
    resp = client.post("/api/resources/products/view/intents", json={"intent": "explode"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Unknown table intent: explode"


def test_api_requires_token_when_configured(client, monkeypatch, open_admin):
    from app.services import auth_dependencies

    secured = open_admin.model_copy(update={"admin_session_token": "s3cret"})
    monkeypatch.setattr(auth_dependencies, "settings", secured)

    resp = client.get("/api/resources/users")
    assert resp.status_code == 401
    assert resp.json()["code"] == "unauthorized"

    resp = client.get("/api/resources/users", headers={"Authorization": "Bearer s3cret"})
    assert resp.status_code == 200


def test_responses_carry_request_id(client):
    resp = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert resp.json() == {"status": "ok"}
    assert resp.headers["X-Request-ID"] == "abc123"
