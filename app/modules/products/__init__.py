"""
Módulo de productos

Catálogo de la farmacia: búsqueda, lector de código de barras,
creación y edición (solo administradores) y reabastecimiento por cajas
y unidades sueltas.
"""

from .router import router
from .service import ProductService
from .repository import ProductRepository

__all__ = ["router", "ProductService", "ProductRepository"]
