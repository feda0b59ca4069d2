"""
Módulo de usuarios

Aprobación de cuentas nuevas y asignación de roles (admin / vendedor).
"""

from .router import router
from .service import UserService

__all__ = ["router", "UserService"]
