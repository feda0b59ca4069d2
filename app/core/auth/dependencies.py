from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Iterable

from app.config.database import get_db
from app.shared.database.models import User
from app.core.auth.service import AuthService

ROLE_ADMIN = "admin"
ROLE_SELLER = "vendedor"
ALL_ROLES = (ROLE_ADMIN, ROLE_SELLER)

security = HTTPBearer()

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "No se pudieron validar las credenciales"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Permisos insuficientes"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Usuario dueño del token.

    El rol y el estado se leen siempre de la base de datos, así que una
    desactivación o un cambio de rol aplican sin esperar a que expire el token.
    """
    payload = AuthService.verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Token inválido o expirado")

    user_id = payload.get("user_id")
    if user_id is None:
        raise AuthenticationError("Payload del token inválido")

    user = db.get(User, user_id)
    if user is None:
        raise AuthenticationError("Usuario no encontrado")
    if not user.is_active:
        raise AuthenticationError("Usuario inactivo")

    return user

def require_roles(allowed_roles: Iterable[str]):
    """Factory para crear dependency que requiere roles específicos"""
    allowed = tuple(allowed_roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise AuthorizationError(
                f"Rol '{current_user.role}' no autorizado. Roles permitidos: {', '.join(allowed)}"
            )
        return current_user
    return role_checker

# Vendedores y administradores pueden operar la caja
get_seller_user = require_roles(ALL_ROLES)

get_admin_user = require_roles([ROLE_ADMIN])
