"""
Módulo de reportes

Indicadores del panel, alertas de stock bajo y resumen de ventas por periodo.
"""

from .router import router
from .service import ReportService

__all__ = ["router", "ReportService"]
