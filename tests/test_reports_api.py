from datetime import date
from decimal import Decimal

from app.modules.reports.service import ReportService


def sell(client, headers, product_id, quantity, **extra):
    payload = {"items": [{"product_id": product_id, "quantity": quantity}]}
    payload.update(extra)
    r = client.post("/api/v1/sales", json=payload, headers=headers)
    assert r.status_code == 201
    return r.json()


def test_stats(client, seller_headers, make_product):
    product = make_product(unit_price=Decimal("1000"))
    make_product(stock_boxes=0, units_per_box=10, stock_loose_units=2, min_stock=5)
    sell(client, seller_headers, product.id, 3)
    sell(client, seller_headers, product.id, 1, requires_confirmation=True)

    stats = client.get("/api/v1/reports/stats", headers=seller_headers).json()
    assert stats["active_products"] == 2
    assert stats["low_stock_products"] == 1
    assert stats["today_sales_count"] == 1
    assert Decimal(stats["today_sales_amount"]) == Decimal("3000")
    assert stats["pending_sales"] == 1
    assert stats["active_users"] == 1


def test_low_stock(client, seller_headers, make_product):
    make_product(name="Con stock", stock_boxes=5, units_per_box=10)
    low = make_product(name="Casi agotado", stock_boxes=0, units_per_box=10, stock_loose_units=3, min_stock=5)

    r = client.get("/api/v1/reports/low-stock", headers=seller_headers).json()
    assert [p["product_id"] for p in r["products"]] == [low.id]
    assert r["products"][0]["stock_description"] == "0 cajas y 3 unidades sueltas"

    r = client.get("/api/v1/reports/low-stock", params={"threshold": 100}, headers=seller_headers).json()
    assert r["count"] == 2


def test_sales_summary(client, seller_headers, admin_headers, make_product):
    a = make_product(name="Acetaminofén", unit_price=Decimal("500"))
    b = make_product(name="Ibuprofeno", unit_price=Decimal("800"))
    sell(client, seller_headers, a.id, 4, discount_percent=10)
    sell(client, seller_headers, b.id, 1)

    r = client.get("/api/v1/reports/sales-summary", params={"period": "week"}, headers=admin_headers)
    assert r.status_code == 200
    summary = r.json()
    assert summary["sales_count"] == 2
    assert Decimal(summary["subtotal"]) == Decimal("2800")
    assert Decimal(summary["discount_total"]) == Decimal("200")
    assert Decimal(summary["grand_total"]) == Decimal("2600")
    assert summary["top_products"][0]["product_name"] == "Acetaminofén"
    assert summary["top_products"][0]["base_units_sold"] == 4

    assert client.get("/api/v1/reports/sales-summary", params={"period": "year"}, headers=admin_headers).status_code == 422
    assert client.get("/api/v1/reports/sales-summary", headers=seller_headers).status_code == 403


def test_period_ranges():
    wednesday = date(2024, 5, 15)
    start, end = ReportService.period_range("week", today=wednesday)
    assert (start.date(), end.date()) == (date(2024, 5, 13), date(2024, 5, 16))

    start, _ = ReportService.period_range("month", today=wednesday)
    assert start.date() == date(2024, 5, 1)

    start, end = ReportService.period_range("today", today=wednesday)
    assert (end - start).days == 1
