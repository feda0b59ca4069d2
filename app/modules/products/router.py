# app/modules/products/router.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import get_admin_user, get_seller_user
from .service import ProductService
from .schemas import (
    ProductCreate, ProductUpdate, StockUpdateRequest,
    ProductResponse, ProductListResponse, CategoriesResponse
)

router = APIRouter()

# ===== CONSULTAS =====

@router.get("", response_model=ProductListResponse)
async def list_products(
    search: Optional[str] = Query(None, description="Buscar en nombre, código interno o código de barras"),
    category: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(True, description="Filtrar por estado (vacío = todos)"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user = Depends(get_seller_user),
    db: Session = Depends(get_db)
):
    """Catálogo de productos con búsqueda y filtros"""
    service = ProductService(db)
    return await service.search_products(search, category, is_active, limit, offset)

@router.get("/categories", response_model=CategoriesResponse)
async def list_categories(
    current_user = Depends(get_seller_user),
    db: Session = Depends(get_db)
):
    """Categorías con al menos un producto activo"""
    service = ProductService(db)
    return await service.get_categories()

@router.get("/barcode/{barcode}", response_model=ProductResponse)
async def get_product_by_barcode(
    barcode: str,
    current_user = Depends(get_seller_user),
    db: Session = Depends(get_db)
):
    """Buscar producto activo por código de barras (lector en caja)"""
    service = ProductService(db)
    return await service.get_by_barcode(barcode)

@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    current_user = Depends(get_seller_user),
    db: Session = Depends(get_db)
):
    service = ProductService(db)
    return await service.get_product(product_id)

# ===== ADMINISTRACIÓN =====

@router.post("", response_model=ProductResponse, status_code=201)
async def create_product(
    product: ProductCreate,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """
    Crear producto

    **Permisos requeridos:** Solo administradores

    **Validaciones:**
    - Código interno y código de barras únicos
    - Unidades por caja >= 1, stock no negativo
    - El stock total se calcula como cajas * unidades_por_caja + sueltas
    """
    service = ProductService(db)
    return await service.create_product(product, current_user)

@router.put("/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: int,
    update: ProductUpdate,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Actualizar campos del producto (solo los enviados)"""
    service = ProductService(db)
    return service.update_product(product_id, update, current_user)

@router.put("/{product_id}/stock", response_model=ProductResponse)
def restock_product(
    product_id: int,
    request: StockUpdateRequest,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Reabastecer: fija cajas y unidades sueltas"""
    service = ProductService(db)
    return service.restock(product_id, request, current_user)

@router.delete("/{product_id}", response_model=ProductResponse)
async def delete_product(
    product_id: int,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Desactivar producto (soft delete)"""
    service = ProductService(db)
    return await service.deactivate_product(product_id, current_user)
