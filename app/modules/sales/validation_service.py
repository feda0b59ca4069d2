# app/modules/sales/validation_service.py
from decimal import Decimal
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.core.exceptions import (
    NoPriceForSaleMode, PersistenceFailure, ProductNotFound, InvalidSaleUnit
)
from app.shared.database.models import Product
from app.shared.services.inventory_service import InventoryService
from app.shared.services.unit_conversion import SALE_UNIT_BOX, required_base_units

logger = logging.getLogger(__name__)


class ValidatedLine:
    """Línea de carrito ya validada y valorizada contra el producto actual"""

    def __init__(
        self,
        line_index: int,
        product_id: int,
        product_name: str,
        quantity: int,
        sale_unit_type: str,
        units_needed: int,
        unit_price: Decimal,
        line_total: Decimal
    ):
        self.line_index = line_index
        self.product_id = product_id
        self.product_name = product_name
        self.quantity = quantity
        self.sale_unit_type = sale_unit_type
        self.units_needed = units_needed
        self.unit_price = unit_price
        self.line_total = line_total

    def as_dict(self) -> Dict[str, Any]:
        return {
            "line_index": self.line_index,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "sale_unit_type": self.sale_unit_type,
            "units_needed": self.units_needed,
            "unit_price": self.unit_price,
            "line_total": self.line_total
        }

    def __eq__(self, other):
        if not isinstance(other, ValidatedLine):
            return NotImplemented
        return self.as_dict() == other.as_dict()


class SaleLineValidator:
    """Valida una línea del carrito: legalidad, unidades base y precio a cobrar"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def get_applicable_price(product: Product, sale_unit_type: str) -> Decimal:
        if sale_unit_type == SALE_UNIT_BOX:
            if product.box_price is None:
                raise NoPriceForSaleMode(product.id, sale_unit_type)
            return Decimal(str(product.box_price))
        return Decimal(str(product.unit_price))

    @staticmethod
    def check_line(
        product: Product,
        quantity: int,
        sale_unit_type: str,
        line_index: int = 0,
        already_reserved_units: int = 0
    ) -> ValidatedLine:
        """
        Validar una línea contra un producto ya cargado. No modifica nada.

        Args:
            already_reserved_units: Unidades del mismo producto pedidas por
                líneas anteriores del mismo carrito

        Raises:
            InvalidSaleUnit, NoPriceForSaleMode, InsufficientStock
        """
        try:
            units_needed = required_base_units(
                quantity, sale_unit_type, product.units_per_box, product.sale_mode
            )
        except InvalidSaleUnit as e:
            e.details.update({"product_id": product.id, "line_index": line_index})
            raise

        unit_price = SaleLineValidator.get_applicable_price(product, sale_unit_type)

        total_needed = units_needed + already_reserved_units
        if not InventoryService.can_deduct(product, total_needed):
            raise InventoryService.insufficient_stock_error(
                product,
                total_needed,
                details={"product_id": product.id, "product_name": product.name, "line_index": line_index}
            )

        return ValidatedLine(
            line_index=line_index,
            product_id=product.id,
            product_name=product.name,
            quantity=quantity,
            sale_unit_type=sale_unit_type,
            units_needed=units_needed,
            unit_price=unit_price,
            line_total=unit_price * quantity
        )

    def validate_line(
        self,
        product_id: int,
        quantity: int,
        sale_unit_type: str,
        line_index: int = 0,
        already_reserved_units: int = 0
    ) -> ValidatedLine:
        """Cargar el producto y validar la línea"""
        product = self._load_product(product_id)
        if product is None or not product.is_active:
            raise ProductNotFound(product_id, line_index)

        return self.check_line(
            product, quantity, sale_unit_type, line_index, already_reserved_units
        )

    def _load_product(self, product_id: int) -> Optional[Product]:
        try:
            return self.db.query(Product).filter(
                Product.id == product_id
            ).populate_existing().first()
        except SQLAlchemyError as e:
            logger.exception(f"Error leyendo producto {product_id}")
            raise PersistenceFailure(
                "No se pudo leer el producto",
                {"product_id": product_id, "error": str(e)}
            )
