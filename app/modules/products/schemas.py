from pydantic import BaseModel, Field, validator
from typing import Optional, List
from decimal import Decimal
from datetime import datetime, date
from app.config.settings import settings
from app.shared.schemas.common import BaseResponse

SALE_MODE_PATTERN = "^(unit|box|both)$"

# ===== PRODUCT SCHEMAS =====

class ProductCreate(BaseModel):
    """Schema para crear un producto"""
    name: str = Field(..., min_length=1, max_length=100, description="Nombre comercial")
    description: str = Field("", max_length=500)
    unit_price: Decimal = Field(..., gt=0, description="Precio de venta por unidad")
    box_price: Optional[Decimal] = Field(None, gt=0, description="Precio de venta por caja")
    purchase_unit_price: Decimal = Field(..., ge=0, description="Costo por unidad")
    purchase_box_price: Optional[Decimal] = Field(None, ge=0, description="Costo por caja")
    stock_boxes: int = Field(0, ge=0)
    units_per_box: int = Field(1, ge=1)
    stock_loose_units: int = Field(0, ge=0)
    min_stock: int = Field(default_factory=lambda: settings.low_stock_default_threshold, ge=0)
    category: str = Field(..., min_length=1, max_length=100)
    manufacturer: str = Field(..., min_length=1, max_length=100)
    internal_code: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    expiration_date: Optional[date] = None
    requires_prescription: bool = False
    sale_mode: str = Field("both", pattern=SALE_MODE_PATTERN)

    @validator('name', 'category', 'manufacturer')
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError('El campo no puede estar vacío')
        return v.strip()

    @validator('internal_code', 'barcode')
    def empty_code_as_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

    class Config:
        json_schema_extra = {
            "example": {
                "name": "Acetaminofén 500mg",
                "unit_price": "500",
                "box_price": "4500",
                "purchase_unit_price": "300",
                "stock_boxes": 10,
                "units_per_box": 10,
                "stock_loose_units": 3,
                "category": "Analgésicos",
                "manufacturer": "Genfar",
                "internal_code": "ACE500",
                "barcode": "7702057001234",
                "sale_mode": "both"
            }
        }

class ProductUpdate(BaseModel):
    """Schema para actualizar un producto (solo los campos enviados)"""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    unit_price: Optional[Decimal] = Field(None, gt=0)
    box_price: Optional[Decimal] = Field(None, gt=0)
    purchase_unit_price: Optional[Decimal] = Field(None, ge=0)
    purchase_box_price: Optional[Decimal] = Field(None, ge=0)
    stock_boxes: Optional[int] = Field(None, ge=0)
    units_per_box: Optional[int] = Field(None, ge=1)
    stock_loose_units: Optional[int] = Field(None, ge=0)
    min_stock: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    manufacturer: Optional[str] = Field(None, min_length=1, max_length=100)
    internal_code: Optional[str] = Field(None, max_length=100)
    barcode: Optional[str] = Field(None, max_length=100)
    expiration_date: Optional[date] = None
    requires_prescription: Optional[bool] = None
    sale_mode: Optional[str] = Field(None, pattern=SALE_MODE_PATTERN)
    is_active: Optional[bool] = None

    @validator('name', 'category', 'manufacturer')
    def validate_not_blank(cls, v):
        if v is not None and (not v or not v.strip()):
            raise ValueError('El campo no puede estar vacío')
        return v.strip() if v else v

    @validator('internal_code', 'barcode')
    def empty_code_as_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v.strip() if v else v

class StockUpdateRequest(BaseModel):
    """Reabastecimiento: niveles absolutos de stock"""
    stock_boxes: int = Field(..., ge=0)
    stock_loose_units: int = Field(0, ge=0)
    units_per_box: Optional[int] = Field(None, ge=1, description="Si no se envía se conserva")
    notes: Optional[str] = Field(None, max_length=255)

class ProductData(BaseModel):
    id: int
    name: str
    description: Optional[str] = ""
    unit_price: Decimal
    box_price: Optional[Decimal] = None
    purchase_unit_price: Decimal
    purchase_box_price: Optional[Decimal] = None
    stock_boxes: int
    units_per_box: int
    stock_loose_units: int
    stock_total_units: int
    min_stock: int
    category: str
    manufacturer: str
    internal_code: Optional[str] = None
    barcode: Optional[str] = None
    expiration_date: Optional[date] = None
    requires_prescription: bool
    is_active: bool
    sale_mode: str
    version: int
    needs_restock: bool
    unit_margin_percent: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class ProductResponse(BaseResponse):
    product: ProductData

class ProductListResponse(BaseResponse):
    products: List[ProductData]
    count: int

class CategoriesResponse(BaseResponse):
    categories: List[str]
