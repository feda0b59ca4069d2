# app/modules/sales/service.py
from fastapi import HTTPException
from sqlalchemy.orm import Session
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
import logging

from app.config.settings import settings
from app.core.exceptions import CommitTimeout
from app.shared.database.models import Sale, User
from app.shared.services.inventory_service import InventoryService, StockLevels
from app.shared.services.product_locks import product_locks
from app.shared.services.unit_conversion import split_units

from .commit_service import SaleCommitService, STATUS_PENDING, STATUS_CANCELLED
from .repository import SalesRepository
from .schemas import CheckoutRequest, SaleResponse, SaleItemResponse, SalesListResponse

logger = logging.getLogger(__name__)

class SalesService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = SalesRepository(db)

    def create_sale(self, checkout: CheckoutRequest, seller: User) -> SaleResponse:
        """
        Registrar una venta completa.

        Responsabilidades:
        - Delegar validación, descuento de stock y registro al SaleCommitService
        - Construir respuesta
        """
        logger.info(f"Iniciando venta - Vendedor: {seller.id}, líneas: {len(checkout.items)}")

        sale = SaleCommitService(self.db).commit(checkout, seller_id=seller.id)

        return self._build_response(sale, "Venta registrada exitosamente")

    async def get_sale(self, sale_id: int) -> SaleResponse:
        sale = self.repository.get_sale(sale_id)
        if not sale:
            raise HTTPException(status_code=404, detail="Venta no encontrada")
        return self._build_response(sale, "Venta encontrada")

    async def list_sales(
        self,
        target_date: Optional[date] = None,
        status: Optional[str] = None,
        limit: int = 100
    ) -> SalesListResponse:
        """Listar ventas más recientes primero"""
        sales = self.repository.list_sales(target_date=target_date, status=status, limit=limit)

        sales_data = [
            {
                "id": sale.id,
                "invoice_number": sale.invoice_number,
                "customer_name": sale.customer_name or "Cliente General",
                "grand_total": sale.grand_total,
                "payment_method": sale.payment_method,
                "status": sale.status,
                "seller_id": sale.seller_id,
                "sale_date": sale.sale_date.isoformat(),
                "items_count": len(sale.items)
            }
            for sale in sales
        ]
        total_amount = sum(
            (sale.grand_total for sale in sales if sale.status != STATUS_CANCELLED),
            Decimal("0")
        )

        return SalesListResponse(
            success=True,
            message=f"Ventas del {target_date}" if target_date else "Ventas",
            sales=sales_data,
            count=len(sales_data),
            total_amount=total_amount
        )

    def update_status(
        self,
        sale_id: int,
        new_status: str,
        user: User,
        notes: Optional[str] = None
    ) -> SaleResponse:
        """
        Confirmar o cancelar una venta pendiente.

        La cancelación solo devuelve stock si ``restore_stock_on_cancel`` está
        activo en la configuración.
        """
        sale = self.repository.get_sale_for_update(sale_id)
        if not sale:
            raise HTTPException(status_code=404, detail="Venta no encontrada")

        if sale.status != STATUS_PENDING:
            raise HTTPException(
                status_code=400,
                detail=f"Solo se pueden modificar ventas pendientes (estado actual: {sale.status})"
            )

        try:
            if new_status == STATUS_CANCELLED:
                sale.cancelled_at = datetime.now()
                if settings.restore_stock_on_cancel:
                    self._restore_stock(sale, user.id)

            sale.status = new_status
            if notes:
                current_notes = sale.notes or ""
                sale.notes = f"{current_notes}\nEstado {new_status}: {notes}".strip()

            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"Venta #{sale.id} -> {new_status} por usuario {user.id}")
        return self._build_response(self.repository.get_sale(sale_id), f"Venta {new_status}")

    # MÉTODOS PRIVADOS HELPERS

    def _restore_stock(self, sale: Sale, user_id: int) -> None:
        """Devolver al inventario las unidades de una venta cancelada"""
        items = self.repository.get_sale_items(sale.id)
        try:
            with product_locks.hold([item.product_id for item in items], timeout=settings.stock_lock_timeout_seconds):
                for item in items:
                    product = InventoryService.get_product_for_update(self.db, item.product_id)
                    before = StockLevels.of(product)
                    # Se devuelven las unidades base vendidas, no las cajas al empaque actual
                    if item.sale_unit_type == "box":
                        boxes, loose_units = split_units(item.base_units, product.units_per_box)
                        InventoryService.restore(product, boxes, loose_units)
                    else:
                        InventoryService.restore(product, 0, item.base_units)
                    product.version += 1
                    InventoryService.record_change(
                        self.db,
                        product_id=product.id,
                        change_type="cancellation",
                        before=before,
                        after=StockLevels.of(product),
                        user_id=user_id,
                        reference_id=sale.id,
                        notes=f"Cancelación {sale.invoice_number} (#{sale.id})"
                    )
        except TimeoutError as e:
            raise CommitTimeout("No se pudo bloquear el stock a tiempo", {"reason": str(e)})

    def _build_response(self, sale: Sale, message: str) -> SaleResponse:
        """Construir respuesta estandarizada"""
        return SaleResponse(
            success=True,
            message=message,
            sale_id=sale.id,
            invoice_number=sale.invoice_number,
            customer=sale.customer,
            items=[SaleItemResponse.model_validate(item) for item in sale.items],
            subtotal=sale.subtotal,
            discount_percent=sale.discount_percent,
            discount_amount=sale.discount_amount,
            tax_amount=sale.tax_amount,
            grand_total=sale.grand_total,
            payment_method=sale.payment_method,
            status=sale.status,
            seller_id=sale.seller_id,
            notes=sale.notes,
            sale_date=sale.sale_date,
            cancelled_at=sale.cancelled_at
        )
