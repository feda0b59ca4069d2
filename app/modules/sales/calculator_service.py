from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Any, Dict, Iterable

from app.core.exceptions import InvalidDiscount

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


def to_money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


class SaleTotals:
    def __init__(
        self,
        subtotal: Decimal,
        discount_percent: Decimal,
        discount_amount: Decimal,
        tax_amount: Decimal,
        grand_total: Decimal
    ):
        self.subtotal = subtotal
        self.discount_percent = discount_percent
        self.discount_amount = discount_amount
        self.tax_amount = tax_amount
        self.grand_total = grand_total

    def as_dict(self) -> Dict[str, Any]:
        return {
            "subtotal": self.subtotal,
            "discount_percent": self.discount_percent,
            "discount_amount": self.discount_amount,
            "tax_amount": self.tax_amount,
            "grand_total": self.grand_total
        }


class SaleTotalCalculator:
    """Servicio para calcular subtotal, descuento, impuesto y total de una venta"""

    @staticmethod
    def validate_discount(discount_percent: Any) -> Decimal:
        try:
            value = Decimal(str(discount_percent if discount_percent is not None else 0))
        except (InvalidOperation, ValueError):
            raise InvalidDiscount(discount_percent)
        if not value.is_finite() or value < 0 or value > HUNDRED:
            raise InvalidDiscount(discount_percent)
        return value

    @staticmethod
    def calculate(
        lines: Iterable,
        discount_percent: Any = 0,
        tax_amount: Decimal = Decimal("0")
    ) -> SaleTotals:
        """
        Calcular los totales a partir de líneas con ``line_total``.

        El subtotal es la suma exacta de las líneas; el descuento y el total
        se redondean a centavos (ROUND_HALF_UP). El impuesto se suma después
        del descuento.
        """
        percent = SaleTotalCalculator.validate_discount(discount_percent)

        subtotal = sum((Decimal(str(line.line_total)) for line in lines), Decimal("0"))
        discount_amount = to_money(subtotal * percent / HUNDRED)
        tax = to_money(Decimal(str(tax_amount or 0)))
        grand_total = to_money(subtotal - discount_amount + tax)

        return SaleTotals(
            subtotal=subtotal,
            discount_percent=percent,
            discount_amount=discount_amount,
            tax_amount=tax,
            grand_total=grand_total
        )
