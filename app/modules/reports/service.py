from datetime import datetime, date, time, timedelta
from decimal import Decimal
from typing import Optional, Tuple
from fastapi import HTTPException
from sqlalchemy import func, desc
from sqlalchemy.orm import Session
import logging

from app.shared.database.models import Product, Sale, SaleItem, User
from app.shared.services.unit_conversion import describe_stock
from app.modules.sales.calculator_service import to_money
from app.modules.products.repository import ProductRepository
from .schemas import (
    DashboardStats, LowStockItem, LowStockResponse, TopProduct, SalesSummaryResponse
)

logger = logging.getLogger(__name__)

PERIODS = ("today", "week", "month")

def _money(value) -> Decimal:
    return to_money(Decimal(str(value or 0)))

class ReportService:
    def __init__(self, db: Session):
        self.db = db

    async def get_stats(self) -> DashboardStats:
        """Resumen para el panel principal"""
        start, end = self.period_range("today")
        active_products = self.db.query(func.count(Product.id)).filter(Product.is_active == True).scalar()
        low_stock = self.db.query(func.count(Product.id)).filter(
            Product.is_active == True,
            Product.stock_total_units <= Product.min_stock
        ).scalar()

        today = self._completed_sales(start, end)
        today_count, today_amount = today.with_entities(
            func.count(Sale.id), func.sum(Sale.grand_total)
        ).one()

        pending = self.db.query(func.count(Sale.id)).filter(Sale.status == "pending").scalar()
        active_users = self.db.query(func.count(User.id)).filter(User.is_active == True).scalar()

        return DashboardStats(
            success=True,
            message="Estadísticas del día",
            active_products=active_products or 0,
            low_stock_products=low_stock or 0,
            today_sales_count=today_count or 0,
            today_sales_amount=_money(today_amount),
            pending_sales=pending or 0,
            active_users=active_users or 0
        )

    async def get_low_stock(self, threshold: Optional[int] = None) -> LowStockResponse:
        products = ProductRepository(self.db).list_low_stock(threshold)
        items = [
            LowStockItem(
                product_id=p.id,
                name=p.name,
                category=p.category,
                stock_boxes=p.stock_boxes,
                stock_loose_units=p.stock_loose_units,
                stock_total_units=p.stock_total_units,
                min_stock=p.min_stock,
                stock_description=describe_stock(p.stock_boxes, p.stock_loose_units)
            )
            for p in products
        ]
        return LowStockResponse(
            success=True,
            message=f"{len(items)} productos con stock bajo",
            products=items,
            count=len(items)
        )

    async def get_sales_summary(self, period: str = "today", top: int = 5) -> SalesSummaryResponse:
        """Totales de ventas completadas en el periodo y productos más vendidos"""
        if period not in PERIODS:
            raise HTTPException(status_code=400, detail=f"Periodo inválido. Use uno de: {', '.join(PERIODS)}")

        start, end = self.period_range(period)
        sales = self._completed_sales(start, end)
        count, subtotal, discounts, grand_total = sales.with_entities(
            func.count(Sale.id),
            func.sum(Sale.subtotal),
            func.sum(Sale.discount_amount),
            func.sum(Sale.grand_total)
        ).one()

        top_rows = self.db.query(
            SaleItem.product_id,
            SaleItem.product_name,
            func.sum(SaleItem.base_units).label("units"),
            func.sum(SaleItem.line_total).label("revenue")
        ).join(Sale, Sale.id == SaleItem.sale_id).filter(
            Sale.status == "completed",
            Sale.sale_date >= start,
            Sale.sale_date < end
        ).group_by(
            SaleItem.product_id, SaleItem.product_name
        ).order_by(desc("units")).limit(top).all()

        count = count or 0
        grand = _money(grand_total)

        return SalesSummaryResponse(
            success=True,
            message=f"Resumen de ventas ({period})",
            period=period,
            start=start,
            end=end,
            sales_count=count,
            subtotal=_money(subtotal),
            discount_total=_money(discounts),
            grand_total=grand,
            average_ticket=to_money(grand / count) if count else None,
            top_products=[
                TopProduct(
                    product_id=row.product_id,
                    product_name=row.product_name,
                    base_units_sold=int(row.units or 0),
                    revenue=_money(row.revenue)
                )
                for row in top_rows
            ]
        )

    @staticmethod
    def period_range(period: str, today: Optional[date] = None) -> Tuple[datetime, datetime]:
        """Rango [inicio, fin) del periodo: hoy, semana (lunes) o mes en curso"""
        today = today or date.today()
        if period == "week":
            first_day = today - timedelta(days=today.weekday())
        elif period == "month":
            first_day = today.replace(day=1)
        else:
            first_day = today
        return datetime.combine(first_day, time.min), datetime.combine(today + timedelta(days=1), time.min)

    def _completed_sales(self, start: datetime, end: datetime):
        return self.db.query(Sale).filter(
            Sale.status == "completed",
            Sale.sale_date >= start,
            Sale.sale_date < end
        )
