#!/usr/bin/env python3
"""
Script para cargar un catálogo de demostración

Incluye productos que se venden solo por unidad, solo por caja y de ambas formas.
"""
from decimal import Decimal
from dotenv import load_dotenv

load_dotenv()

from app.config.database import Base, SessionLocal, engine
from app.shared.database.models import Product
from app.shared.services.inventory_service import InventoryService, StockLevels

DEMO_PRODUCTS = [
    {
        "name": "Acetaminofén 500mg", "category": "Analgésicos", "manufacturer": "Genfar",
        "internal_code": "ACE500", "barcode": "7702057001234",
        "unit_price": "500", "box_price": "4500",
        "purchase_unit_price": "300", "purchase_box_price": "2800",
        "stock_boxes": 20, "units_per_box": 10, "stock_loose_units": 4, "sale_mode": "both"
    },
    {
        "name": "Ibuprofeno 400mg", "category": "Antiinflamatorios", "manufacturer": "MK",
        "internal_code": "IBU400", "barcode": "7702057005678",
        "unit_price": "800", "box_price": "7000",
        "purchase_unit_price": "450", "purchase_box_price": "4200",
        "stock_boxes": 12, "units_per_box": 10, "stock_loose_units": 0, "sale_mode": "both"
    },
    {
        "name": "Amoxicilina 500mg", "category": "Antibióticos", "manufacturer": "La Santé",
        "internal_code": "AMX500", "barcode": "7703153009012",
        "unit_price": "1200", "box_price": "13500",
        "purchase_unit_price": "700", "purchase_box_price": "8000",
        "stock_boxes": 6, "units_per_box": 12, "stock_loose_units": 0,
        "sale_mode": "box", "requires_prescription": True
    },
    {
        "name": "Suero oral 500ml", "category": "Hidratación", "manufacturer": "Pedialyte",
        "internal_code": "SUE500", "barcode": "7501031311309",
        "unit_price": "9500", "box_price": None,
        "purchase_unit_price": "6000", "purchase_box_price": None,
        "stock_boxes": 0, "units_per_box": 1, "stock_loose_units": 3, "sale_mode": "unit"
    },
]

def seed_products():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        created = 0
        for data in DEMO_PRODUCTS:
            if db.query(Product).filter(Product.internal_code == data["internal_code"]).first():
                print(f"✅ Ya existe: {data['name']}")
                continue

            fields = dict(data)
            for price in ("unit_price", "box_price", "purchase_unit_price", "purchase_box_price"):
                fields[price] = Decimal(fields[price]) if fields[price] is not None else None

            product = Product(**fields)
            InventoryService.set_stock_levels(
                product, data["stock_boxes"], data["units_per_box"], data["stock_loose_units"]
            )
            db.add(product)
            db.flush()
            InventoryService.record_change(
                db,
                product_id=product.id,
                change_type="initial",
                before=StockLevels(0, product.units_per_box, 0),
                after=StockLevels.of(product),
                notes="Catálogo de demostración"
            )
            created += 1
            print(f"💊 {product.name}: {product.stock_total_units} unidades ({product.sale_mode})")

        db.commit()
        print(f"\n🎉 {created} productos creados")

    except Exception as e:
        db.rollback()
        print(f"❌ Error cargando productos: {e}")
        raise

    finally:
        db.close()

if __name__ == "__main__":
    seed_products()
