# app/shared/database/models.py
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date, Text,
    Numeric, ForeignKey, CheckConstraint, func
)
from sqlalchemy.orm import relationship

from app.config.database import Base

# =====================================================
# MIXIN PARA TIMESTAMPS
# =====================================================
class TimestampMixin:
    """Mixin que agrega campos created_at y updated_at"""
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())


# =====================================================
# USUARIOS
# =====================================================

class User(Base):
    """Modelo de Usuario"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), default='vendedor', nullable=False)
    # Los registros nuevos quedan inactivos hasta que un admin los active
    is_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.current_timestamp())
    activated_at = Column(DateTime)

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'vendedor')", name='users_role_check'),
    )

    # Relationships
    sales = relationship("Sale", back_populates="seller", foreign_keys="Sale.seller_id")


# =====================================================
# PRODUCTOS
# =====================================================

class Product(Base, TimestampMixin):
    """Modelo de Producto (medicamento o artículo de farmacia)"""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    description = Column(String(500), default='')

    # Precios
    unit_price = Column(Numeric(12, 2), nullable=False)
    box_price = Column(Numeric(12, 2), nullable=True)
    purchase_unit_price = Column(Numeric(12, 2), nullable=False)
    purchase_box_price = Column(Numeric(12, 2), nullable=True)

    # Stock: total = cajas * unidades_por_caja + unidades sueltas
    stock_boxes = Column(Integer, nullable=False, default=0)
    units_per_box = Column(Integer, nullable=False, default=1)
    stock_loose_units = Column(Integer, nullable=False, default=0)
    stock_total_units = Column(Integer, nullable=False, default=0, index=True)
    min_stock = Column(Integer, nullable=False, default=5)
    version = Column(Integer, nullable=False, default=1)

    # Clasificación
    category = Column(String(100), nullable=False, index=True)
    manufacturer = Column(String(100), nullable=False, index=True)
    internal_code = Column(String(100), unique=True, nullable=True)
    barcode = Column(String(100), unique=True, nullable=True)
    expiration_date = Column(Date, nullable=True)

    # Flags
    requires_prescription = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    sale_mode = Column(String(10), nullable=False, default='both')

    __table_args__ = (
        CheckConstraint("stock_boxes >= 0", name='products_stock_boxes_check'),
        CheckConstraint("units_per_box >= 1", name='products_units_per_box_check'),
        CheckConstraint("stock_loose_units >= 0", name='products_stock_loose_units_check'),
        CheckConstraint("sale_mode IN ('unit', 'box', 'both')", name='products_sale_mode_check'),
    )

    # Relationships
    inventory_changes = relationship("InventoryChange", back_populates="product")

    @property
    def needs_restock(self) -> bool:
        return self.stock_total_units <= self.min_stock

    @property
    def unit_margin_percent(self):
        if not self.purchase_unit_price:
            return 0
        return float((self.unit_price - self.purchase_unit_price) / self.purchase_unit_price * 100)


class InventoryChange(Base):
    """Modelo de Cambios de Inventario"""
    __tablename__ = "inventory_changes"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    change_type = Column(String(50), nullable=False)
    boxes_before = Column(Integer)
    boxes_after = Column(Integer)
    loose_units_before = Column(Integer)
    loose_units_after = Column(Integer)
    quantity_before = Column(Integer)
    quantity_after = Column(Integer)
    reference_id = Column(Integer)
    user_id = Column(Integer)
    notes = Column(String(255))
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    # Relationships
    product = relationship("Product", back_populates="inventory_changes")


# =====================================================
# VENTAS
# =====================================================

class Sale(Base):
    """Modelo de Venta"""
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    # Etiqueta de factura: no es única, las búsquedas usan el id
    invoice_number = Column(String(50), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Cliente (opcional: sin datos = cliente general)
    customer_name = Column(String(255))
    customer_national_id = Column(String(50))
    customer_phone = Column(String(50))

    # Montos
    subtotal = Column(Numeric(12, 2), nullable=False)
    discount_percent = Column(Numeric(5, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0)
    grand_total = Column(Numeric(12, 2), nullable=False)

    payment_method = Column(String(50), nullable=False, default='efectivo')
    status = Column(String(20), nullable=False, default='completed')
    notes = Column(Text)
    sale_date = Column(DateTime, nullable=False, server_default=func.current_timestamp(), index=True)
    cancelled_at = Column(DateTime)

    __table_args__ = (
        CheckConstraint("status IN ('pending', 'completed', 'cancelled')", name='sales_status_check'),
    )

    # Relationships
    seller = relationship("User", back_populates="sales", foreign_keys=[seller_id])
    items = relationship(
        "SaleItem", back_populates="sale", cascade="all, delete-orphan",
        order_by="SaleItem.position"
    )

    @property
    def customer(self):
        if not self.customer_name:
            return None
        return {
            "name": self.customer_name,
            "national_id": self.customer_national_id,
            "phone": self.customer_phone
        }


class SaleItem(Base):
    """Modelo de Item de Venta (snapshot del producto al momento de la venta)"""
    __tablename__ = "sale_items"

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    position = Column(Integer, nullable=False, default=0)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    sale_unit_type = Column(String(10), nullable=False, default='unit')
    base_units = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    # Relationships
    sale = relationship("Sale", back_populates="items")
