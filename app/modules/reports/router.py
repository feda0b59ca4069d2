# app/modules/reports/router.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import get_admin_user, get_seller_user
from .service import ReportService
from .schemas import DashboardStats, LowStockResponse, SalesSummaryResponse

router = APIRouter()

@router.get("/stats", response_model=DashboardStats)
async def get_stats(
    current_user = Depends(get_seller_user),
    db: Session = Depends(get_db)
):
    """Indicadores del día para el panel principal"""
    service = ReportService(db)
    return await service.get_stats()

@router.get("/low-stock", response_model=LowStockResponse)
async def get_low_stock(
    threshold: Optional[int] = Query(None, ge=0, description="Si no se envía se usa el stock mínimo de cada producto"),
    current_user = Depends(get_seller_user),
    db: Session = Depends(get_db)
):
    """Productos que necesitan reabastecimiento"""
    service = ReportService(db)
    return await service.get_low_stock(threshold)

@router.get("/sales-summary", response_model=SalesSummaryResponse)
async def get_sales_summary(
    period: str = Query("today", pattern="^(today|week|month)$"),
    top: int = Query(5, ge=1, le=50),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Totales de ventas completadas y productos más vendidos"""
    service = ReportService(db)
    return await service.get_sales_summary(period, top)
