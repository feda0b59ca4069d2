import threading
from decimal import Decimal

import pytest

from app.core.exceptions import (
    CommitTimeout, EmptyCart, InsufficientStock, InvalidDiscount,
    PersistenceFailure, ProductNotFound, StockChangedDuringCheckout
)
from app.modules.sales.commit_service import SaleCommitService
from app.modules.sales.schemas import CheckoutRequest
from app.shared.database.models import InventoryChange, Product, Sale
from app.shared.services.product_locks import ProductLockRegistry


def checkout(*items, **kwargs):
    return CheckoutRequest(
        items=[
            {"product_id": pid, "quantity": qty, "sale_unit_type": unit}
            for pid, qty, unit in items
        ],
        **kwargs
    )


def service(db, **kwargs):
    kwargs.setdefault("locks", ProductLockRegistry())
    return SaleCommitService(db, **kwargs)


def stock_of(db, product_id):
    product = db.query(Product).filter(Product.id == product_id).populate_existing().one()
    return product.stock_boxes, product.stock_loose_units, product.stock_total_units


def test_commit_deducts_stock_and_records_sale(db, seller, make_product):
    a = make_product(unit_price=Decimal("2500"), stock_boxes=3, units_per_box=10, stock_loose_units=3)
    b = make_product(box_price=Decimal("4500"), stock_boxes=2, units_per_box=10)

    sale = service(db).commit(
        checkout((a.id, 2, "unit"), (b.id, 1, "box"), discount_percent=10),
        seller_id=seller.id
    )

    assert sale.id is not None
    assert sale.status == "completed"
    assert sale.subtotal == Decimal("9500")
    assert sale.discount_amount == Decimal("950")
    assert sale.grand_total == Decimal("8550")
    assert sale.invoice_number.startswith("FAC-")
    assert [item.position for item in sale.items] == [0, 1]
    assert sale.items[1].base_units == 10

    assert stock_of(db, a.id) == (3, 1, 31)
    assert stock_of(db, b.id) == (1, 0, 10)

    changes = db.query(InventoryChange).filter(InventoryChange.reference_id == sale.id).all()
    assert {c.product_id for c in changes} == {a.id, b.id}
    assert all(c.change_type == "sale" for c in changes)


def test_deduct_opens_boxes_on_checkout(db, seller, make_product):
    product = make_product(stock_boxes=3, units_per_box=10, stock_loose_units=3)

    service(db).commit(checkout((product.id, 25, "unit")), seller_id=seller.id)

    assert stock_of(db, product.id) == (0, 8, 8)


def test_empty_cart_fails_before_reading_products(db, seller):
    class NoDb:
        def query(self, *args, **kwargs):
            raise AssertionError("no debe consultar la base de datos")

    with pytest.raises(EmptyCart):
        SaleCommitService(NoDb(), locks=ProductLockRegistry()).commit(checkout(), seller_id=seller.id)


def test_invalid_discount_rejected_before_lines(db, seller):
    with pytest.raises(InvalidDiscount):
        service(db).commit(checkout((9999, 1, "unit"), discount_percent=150), seller_id=seller.id)


def test_failed_validation_leaves_no_trace(db, seller, make_product):
    ok = make_product(stock_boxes=1, units_per_box=10)
    short = make_product(stock_boxes=0, units_per_box=10, stock_loose_units=2)

    with pytest.raises(InsufficientStock) as exc:
        service(db).commit(checkout((ok.id, 5, "unit"), (short.id, 3, "unit")), seller_id=seller.id)

    assert exc.value.details["line_index"] == 1
    assert stock_of(db, ok.id) == (1, 0, 10)
    assert db.query(Sale).count() == 0


def test_unknown_product_in_cart(db, seller, make_product):
    product = make_product()
    with pytest.raises(ProductNotFound) as exc:
        service(db).commit(checkout((product.id, 1, "unit"), (424242, 1, "unit")), seller_id=seller.id)
    assert exc.value.details["line_index"] == 1


def test_lines_of_same_product_are_validated_together(db, seller, make_product):
    product = make_product(stock_boxes=0, units_per_box=10, stock_loose_units=5)

    with pytest.raises(InsufficientStock):
        service(db).commit(checkout((product.id, 3, "unit"), (product.id, 3, "unit")), seller_id=seller.id)

    sale = service(db).commit(checkout((product.id, 3, "unit"), (product.id, 2, "unit")), seller_id=seller.id)
    assert len(sale.items) == 2
    assert stock_of(db, product.id) == (0, 0, 0)


def test_second_checkout_fails_when_stock_changed(db, seller, make_product):
    product = make_product(stock_boxes=0, units_per_box=10, stock_loose_units=5)
    commit_service = service(db)

    first = commit_service.prepare(checkout((product.id, 5, "unit")))
    second = commit_service.prepare(checkout((product.id, 5, "unit")))

    commit_service.finalize(first, seller_id=seller.id)
    with pytest.raises(StockChangedDuringCheckout) as exc:
        commit_service.finalize(second, seller_id=seller.id)

    assert exc.value.details["rolled_back"] is True
    assert stock_of(db, product.id) == (0, 0, 0)
    assert db.query(Sale).count() == 1


def test_mid_loop_failure_rolls_back_applied_lines(db, seller, make_product):
    a = make_product(stock_boxes=1, units_per_box=10)
    b = make_product(stock_boxes=1, units_per_box=10)
    commit_service = service(db)
    prepared = commit_service.prepare(checkout((a.id, 4, "unit"), (b.id, 4, "unit")))

    # Otra operación vacía el segundo producto después de validar
    db.query(Product).filter(Product.id == b.id).update(
        {Product.stock_boxes: 0, Product.stock_total_units: 0, Product.version: Product.version + 1},
        synchronize_session=False
    )
    db.commit()

    with pytest.raises(StockChangedDuringCheckout) as exc:
        commit_service.finalize(prepared, seller_id=seller.id)

    assert exc.value.details["applied_lines"] == [{"line_index": 0, "product_id": a.id, "units": 4}]
    assert exc.value.details["rolled_back"] is True
    assert stock_of(db, a.id) == (1, 0, 10)
    assert db.query(Sale).count() == 0


def test_restock_after_validation_does_not_block_checkout(db, seller, make_product):
    product = make_product(stock_boxes=1, units_per_box=10)
    commit_service = service(db)
    prepared = commit_service.prepare(checkout((product.id, 4, "unit")))

    # Reabastecimiento entre la validación y el descuento: cambia la versión
    db.query(Product).filter(Product.id == product.id).update(
        {Product.stock_boxes: 2, Product.stock_total_units: 20, Product.version: Product.version + 1},
        synchronize_session=False
    )
    db.commit()

    sale = commit_service.finalize(prepared, seller_id=seller.id)

    assert sale.status == "completed"
    assert stock_of(db, product.id) == (1, 6, 16)


def test_product_deactivated_during_checkout(db, seller, make_product):
    product = make_product()
    commit_service = service(db)
    prepared = commit_service.prepare(checkout((product.id, 1, "unit")))

    db.query(Product).filter(Product.id == product.id).update({Product.is_active: False}, synchronize_session=False)
    db.commit()

    with pytest.raises(StockChangedDuringCheckout):
        commit_service.finalize(prepared, seller_id=seller.id)


def test_deadline_exceeded_raises_timeout(db, seller, make_product):
    product = make_product(stock_boxes=1, units_per_box=10)
    ticks = iter([0.0, 0.0, 100.0, 100.0, 100.0])
    commit_service = service(db, commit_timeout=1.0, clock=lambda: next(ticks))

    with pytest.raises(CommitTimeout) as exc:
        commit_service.commit(checkout((product.id, 1, "unit")), seller_id=seller.id)

    assert exc.value.details["rolled_back"] is True
    assert stock_of(db, product.id) == (1, 0, 10)


def test_locked_product_times_out(db, seller, make_product):
    product = make_product()
    locks = ProductLockRegistry()
    commit_service = service(db, locks=locks, lock_timeout=0.05)
    prepared = commit_service.prepare(checkout((product.id, 1, "unit")))

    held = threading.Event()
    release = threading.Event()

    def hold_lock():
        with locks.hold([product.id], timeout=1):
            held.set()
            release.wait(2)

    worker = threading.Thread(target=hold_lock)
    worker.start()
    held.wait(1)
    try:
        with pytest.raises(CommitTimeout):
            commit_service.finalize(prepared, seller_id=seller.id)
    finally:
        release.set()
        worker.join()

    assert stock_of(db, product.id) == (10, 0, 100)


def test_database_error_becomes_persistence_failure(db, seller, make_product, monkeypatch):
    product = make_product()
    commit_service = service(db)
    prepared = commit_service.prepare(checkout((product.id, 2, "unit")))

    from sqlalchemy.exc import OperationalError

    def broken_insert(*args, **kwargs):
        raise OperationalError("INSERT INTO sales", {}, Exception("disk I/O error"))

    monkeypatch.setattr(commit_service.repository, "insert_sale", broken_insert)

    with pytest.raises(PersistenceFailure) as exc:
        commit_service.finalize(prepared, seller_id=seller.id)

    assert exc.value.details["applied_lines"][0]["product_id"] == product.id
    assert stock_of(db, product.id) == (10, 0, 100)


def test_requires_confirmation_creates_pending_sale(db, seller, make_product):
    product = make_product()
    sale = service(db).commit(checkout((product.id, 1, "unit"), requires_confirmation=True), seller_id=seller.id)
    assert sale.status == "pending"
