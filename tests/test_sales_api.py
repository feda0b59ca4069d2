import inspect
from decimal import Decimal

from app.config.settings import settings
from app.modules.sales import router as sales_router
from app.shared.database.models import InventoryChange, Product


def post_sale(client, headers, items, **extra):
    payload = {"items": items}
    payload.update(extra)
    return client.post("/api/v1/sales", json=payload, headers=headers)


def test_checkout_creates_sale(client, seller_headers, make_product, db):
    a = make_product(unit_price=Decimal("2500"))
    b = make_product(box_price=Decimal("4500"), stock_boxes=2, units_per_box=10)

    r = post_sale(
        client, seller_headers,
        [
            {"product_id": a.id, "quantity": 2, "sale_unit_type": "unit"},
            {"product_id": b.id, "quantity": 1, "sale_unit_type": "box"},
        ],
        discount_percent=10,
        customer={"name": "María Gómez", "national_id": "1020304050"},
        payment_method="Tarjeta"
    )

    assert r.status_code == 201
    sale = r.json()
    assert sale["success"] is True
    assert sale["invoice_number"].startswith("FAC-")
    assert Decimal(sale["subtotal"]) == Decimal("9500")
    assert Decimal(sale["discount_amount"]) == Decimal("950")
    assert Decimal(sale["grand_total"]) == Decimal("8550")
    assert sale["payment_method"] == "tarjeta"
    assert sale["currency"] == "COP"
    assert Decimal(sale["tax_amount"]) == Decimal("0")
    assert sale["customer"]["name"] == "María Gómez"
    assert sale["status"] == "completed"
    assert [i["base_units"] for i in sale["items"]] == [2, 10]

    product = db.query(Product).filter(Product.id == b.id).populate_existing().one()
    assert (product.stock_boxes, product.stock_loose_units) == (1, 0)


def test_walk_in_customer(client, seller_headers, make_product):
    product = make_product()
    r = post_sale(client, seller_headers, [{"product_id": product.id, "quantity": 1}])
    assert r.status_code == 201
    assert r.json()["customer"] is None


def test_empty_cart(client, seller_headers):
    r = post_sale(client, seller_headers, [])
    assert r.status_code == 400
    assert r.json()["errorKind"] == "EmptyCart"
    assert r.json()["success"] is False


def test_box_sale_on_unit_only_product(client, seller_headers, make_product):
    product = make_product(sale_mode="unit")
    r = post_sale(client, seller_headers, [{"product_id": product.id, "quantity": 1, "sale_unit_type": "box"}])
    assert r.status_code == 400
    assert r.json()["errorKind"] == "InvalidSaleUnit"


def test_insufficient_stock(client, seller_headers, make_product, db):
    product = make_product(stock_boxes=3, units_per_box=10, stock_loose_units=3)
    r = post_sale(client, seller_headers, [{"product_id": product.id, "quantity": 40}])

    assert r.status_code == 409
    body = r.json()
    assert body["errorKind"] == "InsufficientStock"
    assert body["details"]["available_units"] == 33
    assert body["details"]["available_breakdown"] == "3 cajas y 3 unidades sueltas"

    db.refresh(product)
    assert product.stock_total_units == 33


def test_invalid_discount(client, seller_headers, make_product):
    product = make_product()
    r = post_sale(client, seller_headers, [{"product_id": product.id, "quantity": 1}], discount_percent=101)
    assert r.status_code == 400
    assert r.json()["errorKind"] == "InvalidDiscount"


def test_unknown_product(client, seller_headers):
    r = post_sale(client, seller_headers, [{"product_id": 777, "quantity": 1}])
    assert r.status_code == 404
    assert r.json()["errorKind"] == "ProductNotFound"


def test_missing_price_for_box(client, seller_headers, make_product):
    product = make_product(box_price=None)
    r = post_sale(client, seller_headers, [{"product_id": product.id, "quantity": 1, "sale_unit_type": "box"}])
    assert r.json()["errorKind"] == "NoPriceForSaleMode"


def test_malformed_line(client, seller_headers):
    r = post_sale(client, seller_headers, [{"product_id": 1, "quantity": 0}])
    assert r.status_code == 422
    assert r.json()["errorKind"] == "InvalidRequest"


def test_list_and_get_sales(client, seller_headers, make_product):
    product = make_product()
    first = post_sale(client, seller_headers, [{"product_id": product.id, "quantity": 1}]).json()
    second = post_sale(client, seller_headers, [{"product_id": product.id, "quantity": 2}]).json()

    listed = client.get("/api/v1/sales", headers=seller_headers).json()
    assert listed["count"] == 2
    assert [s["id"] for s in listed["sales"]] == [second["sale_id"], first["sale_id"]]
    assert Decimal(listed["total_amount"]) == Decimal("1500")

    today = client.get("/api/v1/sales/today", headers=seller_headers).json()
    assert today["count"] == 2

    detail = client.get(f"/api/v1/sales/{first['sale_id']}", headers=seller_headers)
    assert detail.status_code == 200
    assert detail.json()["items"][0]["quantity"] == 1

    assert client.get("/api/v1/sales/9999", headers=seller_headers).status_code == 404


def test_confirm_pending_sale(client, seller_headers, admin_headers, make_product):
    product = make_product()
    sale = post_sale(
        client, seller_headers, [{"product_id": product.id, "quantity": 1}], requires_confirmation=True
    ).json()
    assert sale["status"] == "pending"

    r = client.post(f"/api/v1/sales/{sale['sale_id']}/status", json={"status": "completed"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["status"] == "completed"

    again = client.post(f"/api/v1/sales/{sale['sale_id']}/status", json={"status": "cancelled"}, headers=admin_headers)
    assert again.status_code == 400


def test_seller_cannot_change_status(client, seller_headers, make_product):
    product = make_product()
    sale = post_sale(
        client, seller_headers, [{"product_id": product.id, "quantity": 1}], requires_confirmation=True
    ).json()
    r = client.post(f"/api/v1/sales/{sale['sale_id']}/status", json={"status": "completed"}, headers=seller_headers)
    assert r.status_code == 403


def test_cancel_keeps_stock_by_default(client, seller_headers, admin_headers, make_product, db):
    product = make_product(stock_boxes=1, units_per_box=10)
    sale = post_sale(
        client, seller_headers, [{"product_id": product.id, "quantity": 4}], requires_confirmation=True
    ).json()

    r = client.post(
        f"/api/v1/sales/{sale['sale_id']}/status",
        json={"status": "cancelled", "notes": "Cliente desistió"},
        headers=admin_headers
    )
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert r.json()["cancelled_at"] is not None
    assert "Cliente desistió" in r.json()["notes"]

    db.refresh(product)
    assert product.stock_total_units == 6


def test_cancel_restores_stock_when_enabled(client, seller_headers, admin_headers, make_product, db, monkeypatch):
    monkeypatch.setattr(settings, "restore_stock_on_cancel", True)
    product = make_product(stock_boxes=2, units_per_box=10, stock_loose_units=3)
    sale = post_sale(
        client, seller_headers,
        [
            {"product_id": product.id, "quantity": 1, "sale_unit_type": "box"},
            {"product_id": product.id, "quantity": 5, "sale_unit_type": "unit"},
        ],
        requires_confirmation=True
    ).json()

    r = client.post(f"/api/v1/sales/{sale['sale_id']}/status", json={"status": "cancelled"}, headers=admin_headers)
    assert r.status_code == 200

    db.refresh(product)
    assert product.stock_total_units == 23
    changes = db.query(InventoryChange).filter(
        InventoryChange.product_id == product.id,
        InventoryChange.change_type == "cancellation"
    ).count()
    assert changes == 2


def test_cancel_restores_sold_units_after_packaging_change(client, seller_headers, admin_headers, make_product, db, monkeypatch):
    monkeypatch.setattr(settings, "restore_stock_on_cancel", True)
    product = make_product(stock_boxes=2, units_per_box=10)
    sale = post_sale(
        client, seller_headers,
        [{"product_id": product.id, "quantity": 1, "sale_unit_type": "box"}],
        requires_confirmation=True
    ).json()
    assert sale["items"][0]["base_units"] == 10

    # El proveedor cambia el empaque antes de la cancelación
    r = client.put(
        f"/api/v1/products/{product.id}/stock",
        json={"stock_boxes": 1, "units_per_box": 20},
        headers=admin_headers
    )
    assert r.json()["product"]["stock_total_units"] == 20

    r = client.post(f"/api/v1/sales/{sale['sale_id']}/status", json={"status": "cancelled"}, headers=admin_headers)
    assert r.status_code == 200

    db.refresh(product)
    assert (product.stock_boxes, product.stock_loose_units, product.stock_total_units) == (1, 10, 30)


def test_commit_routes_run_in_threadpool():
    endpoints = {route.name: route.endpoint for route in sales_router.routes}

    assert not inspect.iscoroutinefunction(endpoints["create_sale"])
    assert not inspect.iscoroutinefunction(endpoints["update_sale_status"])
