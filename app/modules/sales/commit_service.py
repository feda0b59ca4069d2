# app/modules/sales/commit_service.py
"""
Confirmación de ventas: validar, totalizar, descontar stock y registrar.

Flujo: Borrador -> Validando -> {Rechazada | Descontando -> Confirmada}

- ``prepare`` valida todas las líneas, calcula totales y genera el número de
  factura. No escribe nada: un error aquí no deja efectos.
- ``finalize`` toma los locks por producto, vuelve a leer cada producto con
  bloqueo de fila y descuenta en el orden del carrito con escritura
  condicional por versión. La venta, sus items y la auditoría se confirman en
  un solo commit. Si algo falla después de empezar a descontar, se hace
  rollback y el error informa qué líneas se habían aplicado.
"""
import time
from collections import defaultdict
from typing import Any, Callable, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.config.settings import settings
from app.core.exceptions import (
    CommitTimeout, EmptyCart, InsufficientStock, PersistenceFailure,
    SaleError, StockChangedDuringCheckout
)
from app.shared.database.models import Sale
from app.shared.services.inventory_service import InventoryService, StockLevels
from app.shared.services.product_locks import ProductLockRegistry, product_locks

from .calculator_service import SaleTotalCalculator, SaleTotals
from .invoice_numbers import generate_invoice_number
from .repository import SalesRepository
from .schemas import CheckoutRequest
from .validation_service import SaleLineValidator, ValidatedLine

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"


class PreparedSale:
    """Resultado de la fase de validación, listo para descontar"""

    def __init__(
        self,
        checkout: CheckoutRequest,
        lines: List[ValidatedLine],
        totals: SaleTotals,
        invoice_number: str
    ):
        self.checkout = checkout
        self.lines = lines
        self.totals = totals
        self.invoice_number = invoice_number

    @property
    def product_ids(self) -> List[int]:
        return [line.product_id for line in self.lines]


class SaleCommitService:
    def __init__(
        self,
        db: Session,
        locks: Optional[ProductLockRegistry] = None,
        commit_timeout: Optional[float] = None,
        lock_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.db = db
        self.locks = locks or product_locks
        self.commit_timeout = commit_timeout if commit_timeout is not None else settings.sale_commit_timeout_seconds
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.stock_lock_timeout_seconds
        self.clock = clock
        self.validator = SaleLineValidator(db)
        self.repository = SalesRepository(db)

    def commit(self, checkout: CheckoutRequest, seller_id: int) -> Sale:
        """Preparar y confirmar una venta dentro del tiempo máximo configurado"""
        deadline = self.clock() + self.commit_timeout
        prepared = self.prepare(checkout)
        return self.finalize(prepared, seller_id, deadline=deadline)

    # ==================== FASE 1: VALIDACIÓN ====================

    def prepare(self, checkout: CheckoutRequest) -> PreparedSale:
        """
        Validar líneas, calcular totales y generar número de factura.

        Raises:
            EmptyCart, ProductNotFound, InvalidSaleUnit, NoPriceForSaleMode,
            InsufficientStock, InvalidDiscount, PersistenceFailure
        """
        if not checkout.items:
            raise EmptyCart()

        # Antes de cualquier lectura
        SaleTotalCalculator.validate_discount(checkout.discount_percent)

        reserved: Dict[int, int] = defaultdict(int)
        lines = []
        for index, item in enumerate(checkout.items):
            line = self.validator.validate_line(
                product_id=item.product_id,
                quantity=item.quantity,
                sale_unit_type=item.sale_unit_type,
                line_index=index,
                already_reserved_units=reserved[item.product_id]
            )
            reserved[item.product_id] += line.units_needed
            lines.append(line)

        totals = SaleTotalCalculator.calculate(lines, checkout.discount_percent)
        invoice_number = generate_invoice_number()

        logger.info(
            f"Venta validada {invoice_number}: {len(lines)} líneas, total {totals.grand_total}"
        )
        return PreparedSale(checkout, lines, totals, invoice_number)

    # ==================== FASE 2: DESCUENTO Y REGISTRO ====================

    def finalize(
        self,
        prepared: PreparedSale,
        seller_id: int,
        deadline: Optional[float] = None
    ) -> Sale:
        """
        Descontar stock línea por línea y registrar la venta.

        Raises:
            StockChangedDuringCheckout, PersistenceFailure, CommitTimeout
        """
        if deadline is None:
            deadline = self.clock() + self.commit_timeout

        applied: List[Dict[str, Any]] = []
        lock_timeout = min(self.lock_timeout, max(deadline - self.clock(), 0))

        try:
            with self.locks.hold(prepared.product_ids, timeout=lock_timeout):
                return self._deduct_and_persist(prepared, seller_id, deadline, applied)
        except TimeoutError as e:
            raise CommitTimeout(
                "No se pudo bloquear el stock a tiempo",
                {"reason": str(e), "applied_lines": [], "rolled_back": False}
            )

    def _deduct_and_persist(
        self,
        prepared: PreparedSale,
        seller_id: int,
        deadline: float,
        applied: List[Dict[str, Any]]
    ) -> Sale:
        movements: List[Tuple[ValidatedLine, StockLevels, StockLevels]] = []
        try:
            for line in prepared.lines:
                self._check_deadline(deadline)
                before, after = self._deduct_line(line)
                movements.append((line, before, after))
                applied.append({
                    "line_index": line.line_index,
                    "product_id": line.product_id,
                    "units": line.units_needed
                })

            self._check_deadline(deadline)
            status = STATUS_PENDING if prepared.checkout.requires_confirmation else STATUS_COMPLETED
            sale = self.repository.insert_sale(prepared, seller_id, status)

            for line, before, after in movements:
                InventoryService.record_change(
                    self.db,
                    product_id=line.product_id,
                    change_type="sale",
                    before=before,
                    after=after,
                    user_id=seller_id,
                    reference_id=sale.id,
                    notes=f"Venta {sale.invoice_number} (#{sale.id})"
                )

            self.db.commit()
            self.db.refresh(sale)
            logger.info(f"Transacción completada - Venta #{sale.id} {sale.invoice_number}")
            return sale

        except SaleError as e:
            self._rollback(e, applied)
            raise
        except SQLAlchemyError as e:
            logger.exception("Error de base de datos confirmando venta")
            error = PersistenceFailure("No se pudo registrar la venta", {"error": str(e)})
            self._rollback(error, applied)
            raise error

    def _deduct_line(self, line: ValidatedLine) -> Tuple[StockLevels, StockLevels]:
        product = InventoryService.get_product_for_update(self.db, line.product_id)
        if product is None or not product.is_active:
            raise StockChangedDuringCheckout(
                f"El producto {line.product_id} dejó de estar disponible durante el cobro",
                {"line_index": line.line_index, "product_id": line.product_id}
            )

        before = StockLevels.of(product)
        after = StockLevels.of(product)
        try:
            InventoryService.deduct(after, line.units_needed)
        except InsufficientStock as e:
            raise StockChangedDuringCheckout(
                f"El stock de {product.name} cambió durante el cobro",
                {
                    "line_index": line.line_index,
                    "product_id": line.product_id,
                    "available_units": e.available_units,
                    "requested_units": e.requested_units,
                    "available_breakdown": e.breakdown
                }
            )

        if InventoryService.update_stock_fields(self.db, product.id, product.version, after) is None:
            raise StockChangedDuringCheckout(
                f"El stock de {product.name} fue modificado por otra operación",
                {"line_index": line.line_index, "product_id": line.product_id}
            )

        return before, after

    def _check_deadline(self, deadline: float) -> None:
        if self.clock() > deadline:
            raise CommitTimeout(
                "La venta excedió el tiempo máximo de confirmación",
                {"timeout_seconds": self.commit_timeout}
            )

    def _rollback(self, error: SaleError, applied: List[Dict[str, Any]]) -> None:
        """Deshacer los descuentos ya aplicados y dejar constancia en el error"""
        self.db.rollback()
        if applied:
            logger.warning(
                f"{error.error_kind}: revertidos descuentos de {len(applied)} línea(s) ya aplicadas"
            )
        error.details["applied_lines"] = list(applied)
        error.details["rolled_back"] = True
