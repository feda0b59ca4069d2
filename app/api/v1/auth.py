from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
import logging

from app.config.database import get_db
from app.core.auth.service import AuthService
from app.core.auth.schemas import UserLogin, TokenResponse, UserResponse, RegisterRequest
from app.shared.database.models import User
from app.core.auth.dependencies import ROLE_SELLER, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()

def _authenticate(db: Session, email: str, password: str) -> User:
    """Buscar usuario por email y verificar contraseña y estado"""
    user = db.query(User).filter(User.email == email.lower()).first()

    if not user or not AuthService.verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña incorrectos",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Las cuentas nuevas quedan inactivas hasta que un admin las apruebe
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Usuario inactivo. Un administrador debe aprobar la cuenta"
        )

    return user

def _token_response(user: User) -> TokenResponse:
    token_data = {
        "user_id": user.id,
        "email": user.email,
        "role": user.role
    }
    access_token = AuthService.create_access_token(data=token_data)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        user=UserResponse.model_validate(user)
    )

@router.post("/login", response_model=TokenResponse)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db)
):
    """
    Endpoint de login para obtener token de acceso

    **Parámetros:**
    - **username**: Email del usuario
    - **password**: Contraseña del usuario

    **Returns:**
    - Token de acceso JWT
    - Información del usuario
    """
    user = _authenticate(db, form_data.username, form_data.password)
    logger.info(f"Login exitoso - Usuario: {user.id} ({user.role})")
    return _token_response(user)


@router.post("/login-json", response_model=TokenResponse)
async def login_json(
    user_login: UserLogin,
    db: Session = Depends(get_db)
):
    """
    Endpoint de login alternativo que acepta JSON

    **Body:**
    ```json
        {
            "email": "user@example.com",
            "password": "password123"
        }
    """
    user = _authenticate(db, user_login.email, user_login.password)
    logger.info(f"Login exitoso - Usuario: {user.id} ({user.role})")
    return _token_response(user)

@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    request: RegisterRequest,
    db: Session = Depends(get_db)
):
    """
    Registrar un vendedor nuevo

    La cuenta queda inactiva hasta que un administrador la active.
    """
    email = request.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Ya existe un usuario con ese email"
        )

    user = User(
        name=request.name,
        email=email,
        password_hash=AuthService.get_password_hash(request.password),
        role=ROLE_SELLER,
        is_active=False,
        created_at=datetime.now()
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info(f"Usuario registrado pendiente de aprobación: {user.id}")
    return UserResponse.model_validate(user)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    current_user: User = Depends(get_current_user)
):
    """
    Obtener información del usuario actual
    **Headers requeridos:**
    - Authorization: Bearer {token}
    """
    return UserResponse.model_validate(current_user)

@router.post("/logout")
async def logout():
    """
    Logout (con JWT stateless, solo informativo)

    En el frontend debes eliminar el token del storage.
    """
    return {"message": "Logout exitoso. Elimina el token del cliente."}
