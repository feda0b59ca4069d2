from typing import Any, Dict, Optional
from datetime import datetime
from sqlalchemy.orm import Session
import logging

from app.core.exceptions import InsufficientStock
from app.shared.database.models import Product, InventoryChange
from app.shared.services.unit_conversion import (
    describe_stock, normalize_units_per_box, to_total_units
)

logger = logging.getLogger(__name__)


class StockLevels:
    """Copia suelta de los campos de stock de un producto"""

    def __init__(self, stock_boxes: int, units_per_box: int, stock_loose_units: int):
        self.stock_boxes = stock_boxes
        self.units_per_box = normalize_units_per_box(units_per_box)
        self.stock_loose_units = stock_loose_units
        self.stock_total_units = to_total_units(stock_boxes, units_per_box, stock_loose_units)

    @classmethod
    def of(cls, product) -> "StockLevels":
        return cls(product.stock_boxes, product.units_per_box, product.stock_loose_units)


class InventoryService:
    """
    Libro de stock por producto.

    Las operaciones puras trabajan sobre cualquier objeto con los atributos
    ``stock_boxes``, ``units_per_box``, ``stock_loose_units`` y
    ``stock_total_units`` (un ``Product`` o un ``StockLevels``). Las operaciones
    con ``db`` no hacen commit: lo decide quien las llama.
    """

    # ==================== OPERACIONES PURAS ====================

    @staticmethod
    def recompute_total(product) -> int:
        product.stock_total_units = to_total_units(
            product.stock_boxes, product.units_per_box, product.stock_loose_units
        )
        return product.stock_total_units

    @staticmethod
    def can_deduct(product, units_needed: int) -> bool:
        return product.stock_total_units >= units_needed

    @staticmethod
    def insufficient_stock_error(product, units_needed: int, details: Optional[Dict[str, Any]] = None) -> InsufficientStock:
        return InsufficientStock(
            available_units=product.stock_total_units,
            requested_units=units_needed,
            breakdown=describe_stock(product.stock_boxes, product.stock_loose_units),
            details=details
        )

    @staticmethod
    def deduct(product, units_needed: int) -> Dict[str, int]:
        """
        Descontar unidades base abriendo cajas cuando las sueltas no alcanzan.

        Returns:
            Dict con las cajas y unidades sueltas descontadas (para compensar)

        Raises:
            InsufficientStock: Si el total disponible no cubre lo pedido
        """
        if units_needed < 0:
            raise ValueError("units_needed no puede ser negativo")
        if not InventoryService.can_deduct(product, units_needed):
            raise InventoryService.insufficient_stock_error(product, units_needed)

        units_per_box = normalize_units_per_box(product.units_per_box)
        boxes = product.stock_boxes
        loose = product.stock_loose_units - units_needed

        if loose < 0:
            deficit = -loose
            boxes_to_open = -(-deficit // units_per_box)
            if boxes_to_open > boxes:
                # Solo ocurre si stock_total_units no reflejaba los campos reales
                InventoryService.recompute_total(product)
                raise InventoryService.insufficient_stock_error(product, units_needed)
            boxes -= boxes_to_open
            loose += boxes_to_open * units_per_box

        delta = {
            "boxes": product.stock_boxes - boxes,
            "loose_units": product.stock_loose_units - loose
        }
        product.stock_boxes = boxes
        product.stock_loose_units = loose
        InventoryService.recompute_total(product)
        return delta

    @staticmethod
    def restore(product, boxes: int, loose_units: int) -> None:
        """Inverso exacto de un delta devuelto por deduct()"""
        product.stock_boxes += boxes
        product.stock_loose_units += loose_units
        InventoryService.recompute_total(product)

    @staticmethod
    def set_stock_levels(product, stock_boxes: int, units_per_box: int, stock_loose_units: int) -> None:
        """Reabastecimiento: sobrescribe los niveles absolutos tras validarlos"""
        if stock_boxes < 0 or stock_loose_units < 0:
            raise ValueError("El stock no puede ser negativo")
        if units_per_box < 1:
            raise ValueError("Las unidades por caja deben ser al menos 1")
        product.stock_boxes = stock_boxes
        product.units_per_box = units_per_box
        product.stock_loose_units = stock_loose_units
        InventoryService.recompute_total(product)

    # ==================== PERSISTENCIA ====================

    @staticmethod
    def get_product_for_update(db: Session, product_id: int) -> Optional[Product]:
        """Lectura fresca con bloqueo de fila (SELECT FOR UPDATE)"""
        return db.query(Product).filter(
            Product.id == product_id
        ).populate_existing().with_for_update().first()

    @staticmethod
    def update_stock_fields(
        db: Session,
        product_id: int,
        expected_version: int,
        levels: StockLevels
    ) -> Optional[Product]:
        """
        Escritura condicional de los campos de stock.

        Solo aplica si la versión del producto sigue siendo ``expected_version``.

        Returns:
            Product actualizado, o None si otra escritura ganó la carrera
        """
        updated = db.query(Product).filter(
            Product.id == product_id,
            Product.version == expected_version
        ).update(
            {
                Product.stock_boxes: levels.stock_boxes,
                Product.units_per_box: levels.units_per_box,
                Product.stock_loose_units: levels.stock_loose_units,
                Product.stock_total_units: levels.stock_total_units,
                Product.version: Product.version + 1
            },
            synchronize_session=False
        )

        if updated == 0:
            logger.warning(f"Conflicto de versión en producto {product_id} (esperada {expected_version})")
            return None

        product = db.get(Product, product_id)
        db.refresh(product)
        return product

    @staticmethod
    def record_change(
        db: Session,
        product_id: int,
        change_type: str,
        before: StockLevels,
        after: StockLevels,
        user_id: Optional[int] = None,
        reference_id: Optional[int] = None,
        notes: Optional[str] = None
    ) -> InventoryChange:
        """Agregar fila de auditoría a la sesión (sin commit)"""
        change = InventoryChange(
            product_id=product_id,
            change_type=change_type,
            boxes_before=before.stock_boxes,
            boxes_after=after.stock_boxes,
            loose_units_before=before.stock_loose_units,
            loose_units_after=after.stock_loose_units,
            quantity_before=before.stock_total_units,
            quantity_after=after.stock_total_units,
            user_id=user_id,
            reference_id=reference_id,
            notes=notes,
            created_at=datetime.now()
        )
        db.add(change)
        return change
