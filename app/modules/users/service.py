from datetime import datetime
from typing import Optional
from fastapi import HTTPException
from sqlalchemy.orm import Session
import logging

from app.core.auth.dependencies import ROLE_ADMIN
from app.core.auth.schemas import UserResponse
from app.shared.database.models import User
from .schemas import UserActionResponse, UserListResponse

logger = logging.getLogger(__name__)

class UserService:
    """Gestión de cuentas: aprobación de registros y cambio de rol"""

    def __init__(self, db: Session):
        self.db = db

    async def list_users(self, is_active: Optional[bool] = None) -> UserListResponse:
        query = self.db.query(User)
        if is_active is not None:
            query = query.filter(User.is_active == is_active)
        users = query.order_by(User.is_active, User.name).all()

        return UserListResponse(
            success=True,
            message=f"{len(users)} usuarios",
            users=[UserResponse.model_validate(u) for u in users],
            count=len(users),
            pending_activation=sum(1 for u in users if not u.is_active)
        )

    async def set_active(self, user_id: int, active: bool, admin: User) -> UserActionResponse:
        user = self._get_or_404(user_id)

        if not active and user.id == admin.id:
            raise HTTPException(status_code=400, detail="No puedes desactivar tu propia cuenta")

        user.is_active = active
        if active and user.activated_at is None:
            user.activated_at = datetime.now()
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Usuario {user.id} {'activado' if active else 'desactivado'} por admin {admin.id}")
        return UserActionResponse(
            success=True,
            message="Usuario activado" if active else "Usuario desactivado",
            user=UserResponse.model_validate(user)
        )

    async def change_role(self, user_id: int, role: str, admin: User) -> UserActionResponse:
        user = self._get_or_404(user_id)

        if user.id == admin.id and role != ROLE_ADMIN:
            raise HTTPException(status_code=400, detail="No puedes quitarte el rol de administrador")

        user.role = role
        self.db.commit()
        self.db.refresh(user)

        logger.info(f"Usuario {user.id} ahora es {role} (admin {admin.id})")
        return UserActionResponse(success=True, message=f"Rol actualizado a {role}", user=UserResponse.model_validate(user))

    def _get_or_404(self, user_id: int) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise HTTPException(status_code=404, detail=f"Usuario {user_id} no encontrado")
        return user
