# app/modules/sales/schemas.py
from pydantic import BaseModel, Field, validator
from typing import List, Optional, Dict, Any
from decimal import Decimal
from datetime import datetime
from app.config.settings import settings
from app.shared.schemas.common import BaseResponse

class CustomerInfo(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Nombre del cliente")
    national_id: Optional[str] = Field(None, max_length=50, description="Cédula")
    phone: Optional[str] = Field(None, max_length=50, description="Teléfono")

    @validator('name')
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('El nombre del cliente no puede estar vacío')
        return v.strip()

class CheckoutItem(BaseModel):
    product_id: int = Field(..., description="ID del producto")
    quantity: int = Field(..., gt=0, description="Cantidad en la unidad de venta")
    sale_unit_type: str = Field("unit", description="unit o box")
    product_name_snapshot: Optional[str] = Field(None, description="Nombre mostrado en el carrito (informativo)")

class CheckoutRequest(BaseModel):
    customer: Optional[CustomerInfo] = Field(None, description="Sin cliente = cliente general")
    # Lista vacía permitida aquí: se rechaza como EmptyCart en el servicio
    items: List[CheckoutItem] = Field(default_factory=list, description="Líneas del carrito")
    # Sin restricciones aquí: fuera de [0, 100] se rechaza como InvalidDiscount
    discount_percent: Decimal = Field(Decimal("0"), description="Porcentaje de descuento (0-100)")
    payment_method: str = Field(default_factory=lambda: settings.default_payment_method, max_length=50, description="efectivo, tarjeta, transferencia")
    notes: Optional[str] = Field(None, max_length=500, description="Notas adicionales")
    requires_confirmation: bool = Field(False, description="Registrar como pendiente de confirmación")

    @validator('payment_method')
    def validate_payment_method(cls, v):
        return v.strip().lower() or settings.default_payment_method

class SaleItemResponse(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    sale_unit_type: str
    base_units: int
    unit_price: Decimal
    line_total: Decimal

    class Config:
        from_attributes = True

class SaleResponse(BaseResponse):
    sale_id: int
    invoice_number: str
    customer: Optional[Dict[str, Any]] = None
    items: List[SaleItemResponse]
    subtotal: Decimal
    discount_percent: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    currency: str = Field(default_factory=lambda: settings.currency)
    payment_method: str
    status: str
    seller_id: int
    notes: Optional[str] = None
    sale_date: datetime
    cancelled_at: Optional[datetime] = None

class SaleStatusUpdateRequest(BaseModel):
    status: str = Field(..., pattern="^(completed|cancelled)$")
    notes: Optional[str] = Field(None, max_length=500)

class SalesListResponse(BaseResponse):
    sales: List[Dict[str, Any]]
    count: int
    total_amount: Decimal
