# app/shared/schemas/common.py
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional
from datetime import datetime

class BaseResponse(BaseModel):
    success: bool
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)

class ErrorResponse(BaseModel):
    """Formato de error de la API (ver app.core.exceptions)"""
    success: bool = False
    errorKind: str
    message: str
    details: Optional[Dict[str, Any]] = None
