# app/shared/services/unit_conversion.py
"""
Conversión entre cajas + unidades sueltas y unidades base.

Definición:
    unidades_totales = cajas * unidades_por_caja + unidades_sueltas

Todo es aritmética entera; no existen unidades fraccionarias.
"""
from typing import Optional, Tuple

from app.core.exceptions import InvalidSaleUnit

SALE_UNIT_UNIT = "unit"
SALE_UNIT_BOX = "box"
SALE_UNIT_TYPES = (SALE_UNIT_UNIT, SALE_UNIT_BOX)

SALE_MODE_UNIT = "unit"
SALE_MODE_BOX = "box"
SALE_MODE_BOTH = "both"


def normalize_units_per_box(units_per_box: Optional[int]) -> int:
    """0 o ausente se trata como 1"""
    if not units_per_box or units_per_box < 1:
        return 1
    return int(units_per_box)


def to_total_units(boxes: int, units_per_box: Optional[int], loose_units: int) -> int:
    return int(boxes or 0) * normalize_units_per_box(units_per_box) + int(loose_units or 0)


def sale_unit_allowed(sale_unit_type: str, sale_mode: str) -> bool:
    if sale_unit_type not in SALE_UNIT_TYPES:
        return False
    if sale_mode == SALE_MODE_BOTH:
        return True
    return sale_mode == sale_unit_type


def required_base_units(
    quantity: int,
    sale_unit_type: str,
    units_per_box: Optional[int],
    sale_mode: str = SALE_MODE_BOTH
) -> int:
    """
    Unidades base que consume una línea de venta.

    Args:
        quantity: Cantidad pedida en la unidad de venta de la línea
        sale_unit_type: 'unit' o 'box'
        units_per_box: Unidades por caja del producto
        sale_mode: Modo de venta del producto ('unit', 'box', 'both')

    Raises:
        InvalidSaleUnit: Si el producto no admite ese tipo de venta
    """
    if not sale_unit_allowed(sale_unit_type, sale_mode):
        raise InvalidSaleUnit(sale_unit_type, sale_mode)

    if sale_unit_type == SALE_UNIT_BOX:
        return quantity * normalize_units_per_box(units_per_box)
    return quantity


def split_units(total_units: int, units_per_box: Optional[int]) -> Tuple[int, int]:
    """Inverso de to_total_units: (cajas completas, resto en unidades)"""
    return divmod(int(total_units), normalize_units_per_box(units_per_box))


def describe_stock(boxes: int, loose_units: int) -> str:
    """Desglose legible, p.ej. '3 cajas y 2 unidades sueltas'"""
    boxes_label = "caja" if boxes == 1 else "cajas"
    units_label = "unidad suelta" if loose_units == 1 else "unidades sueltas"
    return f"{boxes} {boxes_label} y {loose_units} {units_label}"
