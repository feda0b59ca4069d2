# app/modules/sales/__init__.py
"""
Módulo de Ventas - Registro de ventas con descuento de inventario

Este módulo maneja el ciclo completo de una venta:
- Validación de líneas por unidad o por caja
- Cálculo de subtotal, descuento y total
- Descuento de stock abriendo cajas cuando hace falta
- Confirmación o cancelación de ventas pendientes

Arquitectura:
- router.py: Endpoints de ventas
- service.py: Lógica de negocio de ventas
- commit_service.py: Confirmación todo-o-nada de una venta
- validation_service.py: Validación y precio de cada línea
- calculator_service.py: Totales con Decimal
- invoice_numbers.py: Número de factura visible
- repository.py: Acceso a datos de ventas
- schemas.py: Modelos de request/response
"""

from .router import router
from .service import SalesService
from .commit_service import SaleCommitService
from .repository import SalesRepository

__all__ = [
    "router",
    "SalesService",
    "SaleCommitService",
    "SalesRepository"
]
