from sqlalchemy.orm import Session, selectinload
from sqlalchemy import and_
from typing import List, Optional
from datetime import datetime, date, time, timedelta
import logging

from app.core.exceptions import PersistenceFailure
from app.shared.database.models import Sale, SaleItem

logger = logging.getLogger(__name__)

class SalesRepository:
    def __init__(self, db: Session):
        self.db = db

    def insert_sale(
        self,
        prepared,
        seller_id: int,
        status: str
    ) -> Sale:
        """
        Agregar venta e items a la sesión y hacer flush para obtener el id.

        No hace commit: la venta se confirma junto con el descuento de stock.
        """
        checkout = prepared.checkout
        customer = checkout.customer
        totals = prepared.totals

        sale = Sale(
            invoice_number=prepared.invoice_number,
            seller_id=seller_id,
            customer_name=customer.name if customer else None,
            customer_national_id=customer.national_id if customer else None,
            customer_phone=customer.phone if customer else None,
            subtotal=totals.subtotal,
            discount_percent=totals.discount_percent,
            discount_amount=totals.discount_amount,
            tax_amount=totals.tax_amount,
            grand_total=totals.grand_total,
            payment_method=checkout.payment_method,
            status=status,
            notes=checkout.notes,
            sale_date=datetime.now()
        )

        for line in prepared.lines:
            sale.items.append(SaleItem(
                product_id=line.product_id,
                position=line.line_index,
                product_name=line.product_name,
                quantity=line.quantity,
                sale_unit_type=line.sale_unit_type,
                base_units=line.units_needed,
                unit_price=line.unit_price,
                line_total=line.line_total
            ))

        self.db.add(sale)
        self.db.flush()

        if not sale.id:
            raise PersistenceFailure("No se pudo obtener ID de venta")

        logger.info(f"Venta creada con ID: {sale.id} ({len(sale.items)} items)")
        return sale

    def get_sale(self, sale_id: int) -> Optional[Sale]:
        return self.db.query(Sale).options(
            selectinload(Sale.items)
        ).filter(Sale.id == sale_id).first()

    def get_sale_for_update(self, sale_id: int) -> Optional[Sale]:
        return self.db.query(Sale).filter(
            Sale.id == sale_id
        ).populate_existing().with_for_update().first()

    def list_sales(
        self,
        target_date: Optional[date] = None,
        seller_id: Optional[int] = None,
        status: Optional[str] = None,
        limit: int = 100
    ) -> List[Sale]:
        """Ventas más recientes primero"""
        filters = []
        if target_date:
            start = datetime.combine(target_date, time.min)
            filters.append(Sale.sale_date >= start)
            filters.append(Sale.sale_date < start + timedelta(days=1))
        if seller_id:
            filters.append(Sale.seller_id == seller_id)
        if status:
            filters.append(Sale.status == status)

        query = self.db.query(Sale).options(selectinload(Sale.items))
        if filters:
            query = query.filter(and_(*filters))

        return query.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()

    def get_sale_items(self, sale_id: int) -> List[SaleItem]:
        """Obtener items de una venta"""
        return self.db.query(SaleItem).filter(
            SaleItem.sale_id == sale_id
        ).order_by(SaleItem.position).all()
