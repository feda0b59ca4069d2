# app/modules/sales/router.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date

from app.config.database import get_db
from app.core.auth.dependencies import ALL_ROLES, require_roles, get_admin_user
from app.shared.schemas.common import ErrorResponse
from .service import SalesService
from .schemas import CheckoutRequest, SaleResponse, SaleStatusUpdateRequest, SalesListResponse

router = APIRouter()

@router.post(
    "",
    response_model=SaleResponse,
    status_code=201,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
        504: {"model": ErrorResponse}
    }
)
# Ruta síncrona: el commit espera locks por producto y FastAPI la corre en su threadpool
def create_sale(
    checkout: CheckoutRequest,
    current_user = Depends(require_roles(ALL_ROLES)),
    db: Session = Depends(get_db)
):
    """
    Registrar venta desde el carrito

    **Incluye:**
    - Validación de cada línea (unidad o caja) contra el stock actual
    - Subtotal, descuento porcentual y total
    - Número de factura FAC-YYYYMMDD-NNN
    - Descuento de stock abriendo cajas cuando hace falta
    - Todo o nada: si una línea falla no se descuenta nada
    """
    service = SalesService(db)
    return service.create_sale(checkout, seller=current_user)

@router.get("", response_model=SalesListResponse)
async def list_sales(
    sale_date: Optional[date] = Query(None, description="Filtrar por fecha (YYYY-MM-DD)"),
    status: Optional[str] = Query(None, pattern="^(pending|completed|cancelled)$"),
    limit: int = Query(100, ge=1, le=500),
    current_user = Depends(require_roles(ALL_ROLES)),
    db: Session = Depends(get_db)
):
    """Listar ventas, más recientes primero"""
    service = SalesService(db)
    return await service.list_sales(target_date=sale_date, status=status, limit=limit)

@router.get("/today", response_model=SalesListResponse)
async def get_today_sales(
    current_user = Depends(require_roles(ALL_ROLES)),
    db: Session = Depends(get_db)
):
    """Ventas realizadas en el día"""
    service = SalesService(db)
    return await service.list_sales(target_date=date.today())

@router.get("/{sale_id}", response_model=SaleResponse)
async def get_sale(
    sale_id: int,
    current_user = Depends(require_roles(ALL_ROLES)),
    db: Session = Depends(get_db)
):
    """Detalle de una venta con sus items y totales (datos para la factura)"""
    service = SalesService(db)
    return await service.get_sale(sale_id)

@router.post("/{sale_id}/status", response_model=SaleResponse)
def update_sale_status(
    sale_id: int,
    update: SaleStatusUpdateRequest,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Confirmar o cancelar una venta pendiente"""
    service = SalesService(db)
    return service.update_status(
        sale_id=sale_id,
        new_status=update.status,
        user=current_user,
        notes=update.notes
    )
