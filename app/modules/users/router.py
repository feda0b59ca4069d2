# app/modules/users/router.py
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.config.database import get_db
from app.core.auth.dependencies import get_admin_user
from .service import UserService
from .schemas import RoleUpdateRequest, UserActionResponse, UserListResponse

router = APIRouter()

@router.get("", response_model=UserListResponse)
async def list_users(
    is_active: Optional[bool] = Query(None, description="false = registros pendientes de aprobación"),
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Listar usuarios (solo administradores)"""
    service = UserService(db)
    return await service.list_users(is_active)

@router.post("/{user_id}/activate", response_model=UserActionResponse)
async def activate_user(
    user_id: int,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Aprobar una cuenta registrada"""
    service = UserService(db)
    return await service.set_active(user_id, True, current_user)

@router.post("/{user_id}/deactivate", response_model=UserActionResponse)
async def deactivate_user(
    user_id: int,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    service = UserService(db)
    return await service.set_active(user_id, False, current_user)

@router.put("/{user_id}/role", response_model=UserActionResponse)
async def change_user_role(
    user_id: int,
    request: RoleUpdateRequest,
    current_user = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    service = UserService(db)
    return await service.change_role(user_id, request.role, current_user)
