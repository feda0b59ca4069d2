# app/core/exceptions.py
"""
Errores de dominio del flujo de venta.

Cada error lleva un ``error_kind`` estable que el cliente puede usar para
decidir qué mostrar, un mensaje legible y un diccionario opcional de detalles.
El handler registrado en ``app.core.middleware`` los serializa como::

    {"success": false, "errorKind": "...", "message": "...", "details": {...}}
"""
from typing import Any, Dict, Optional


class SaleError(Exception):
    """Base de la taxonomía de errores de venta"""
    error_kind = "SaleError"
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "errorKind": self.error_kind,
            "message": self.message,
            "details": self.details
        }


class EmptyCart(SaleError):
    error_kind = "EmptyCart"

    def __init__(self, message: str = "Debe incluir al menos un producto"):
        super().__init__(message)


class ProductNotFound(SaleError):
    error_kind = "ProductNotFound"
    status_code = 404

    def __init__(self, product_id: Any, line_index: Optional[int] = None):
        details = {"product_id": product_id}
        if line_index is not None:
            details["line_index"] = line_index
        super().__init__(f"Producto {product_id} no encontrado", details)


class InvalidSaleUnit(SaleError):
    error_kind = "InvalidSaleUnit"

    def __init__(self, sale_unit_type: str, sale_mode: str, details: Optional[Dict[str, Any]] = None):
        payload = {"sale_unit_type": sale_unit_type, "sale_mode": sale_mode}
        payload.update(details or {})
        super().__init__(
            f"El producto no admite venta por '{sale_unit_type}' (modo de venta: {sale_mode})",
            payload
        )


class NoPriceForSaleMode(SaleError):
    error_kind = "NoPriceForSaleMode"

    def __init__(self, product_id: Any, sale_unit_type: str):
        super().__init__(
            f"El producto {product_id} no tiene precio configurado para venta por '{sale_unit_type}'",
            {"product_id": product_id, "sale_unit_type": sale_unit_type}
        )


class InsufficientStock(SaleError):
    error_kind = "InsufficientStock"
    status_code = 409

    def __init__(
        self,
        available_units: int,
        requested_units: int,
        breakdown: str,
        details: Optional[Dict[str, Any]] = None
    ):
        payload = {
            "available_units": available_units,
            "requested_units": requested_units,
            "available_breakdown": breakdown
        }
        payload.update(details or {})
        super().__init__(
            f"Stock insuficiente: disponible {available_units} unidades ({breakdown}), "
            f"necesario {requested_units}",
            payload
        )
        self.available_units = available_units
        self.requested_units = requested_units
        self.breakdown = breakdown


class InvalidDiscount(SaleError):
    error_kind = "InvalidDiscount"

    def __init__(self, discount_percent: Any):
        super().__init__(
            "El descuento debe estar entre 0 y 100",
            {"discount_percent": str(discount_percent)}
        )


class StockChangedDuringCheckout(SaleError):
    error_kind = "StockChangedDuringCheckout"
    status_code = 409


class PersistenceFailure(SaleError):
    error_kind = "PersistenceFailure"
    status_code = 503


class CommitTimeout(SaleError):
    error_kind = "CommitTimeout"
    status_code = 504
