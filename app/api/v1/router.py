# app/api/v1/router.py
from fastapi import APIRouter
from app.api.v1.auth import router as auth_router
from app.modules.products import router as products_router
from app.modules.sales import router as sales_router
from app.modules.users import router as users_router
from app.modules.reports import router as reports_router
from app.config.settings import settings

# Crear router principal de la API v1
api_router = APIRouter()

api_router.include_router(auth_router, prefix="/auth", tags=["authentication"])

api_router.include_router(
    users_router,
    prefix="/users",
    tags=["Users - Administrador"]
)

api_router.include_router(
    products_router,
    prefix="/products",
    tags=["Products"]
)

api_router.include_router(
    sales_router,
    prefix="/sales",
    tags=["Sales"]
)

api_router.include_router(
    reports_router,
    prefix="/reports",
    tags=["Reports"]
)

@api_router.get("/")
async def api_root():
    """Root endpoint de la API"""
    return {
        "message": "SaludDirecta API v1",
        "version": settings.version,
        "status": "active",
        "docs": "/docs",
        "available_endpoints": {
            "authentication": "/api/v1/auth",
            "users": "/api/v1/users",
            "products": "/api/v1/products",
            "sales": "/api/v1/sales",
            "reports": "/api/v1/reports"
        }
    }
