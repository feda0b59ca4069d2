from sqlalchemy.orm import Session
from sqlalchemy import or_, desc
from typing import List, Optional

from app.shared.database.models import Product

class ProductRepository:
    def __init__(self, db: Session):
        self.db = db

    # ===== LECTURAS =====

    def get_by_id(self, product_id: int) -> Optional[Product]:
        return self.db.query(Product).filter(Product.id == product_id).first()

    def get_by_barcode(self, barcode: str) -> Optional[Product]:
        return self.db.query(Product).filter(
            Product.barcode == barcode,
            Product.is_active == True
        ).first()

    def find_duplicate(
        self,
        internal_code: Optional[str],
        barcode: Optional[str],
        exclude_id: Optional[int] = None
    ) -> Optional[Product]:
        """Producto existente con el mismo código interno o código de barras"""
        conditions = []
        if internal_code:
            conditions.append(Product.internal_code == internal_code)
        if barcode:
            conditions.append(Product.barcode == barcode)
        if not conditions:
            return None

        query = self.db.query(Product).filter(or_(*conditions))
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        return query.first()

    def search(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        is_active: Optional[bool] = True,
        limit: int = 100,
        offset: int = 0
    ) -> List[Product]:
        """Buscar por nombre, código interno o código de barras"""
        query = self.db.query(Product)

        if search:
            pattern = f"%{search.strip()}%"
            query = query.filter(or_(
                Product.name.ilike(pattern),
                Product.internal_code.ilike(pattern),
                Product.barcode.ilike(pattern)
            ))
        if category:
            query = query.filter(Product.category == category)
        if is_active is not None:
            query = query.filter(Product.is_active == is_active)

        return query.order_by(Product.name, desc(Product.id)).offset(offset).limit(limit).all()

    def list_categories(self) -> List[str]:
        rows = self.db.query(Product.category).filter(
            Product.is_active == True
        ).distinct().order_by(Product.category).all()
        return [row[0] for row in rows]

    def list_low_stock(self, threshold: Optional[int] = None) -> List[Product]:
        """Productos activos en o bajo su stock mínimo (o bajo ``threshold`` si se da)"""
        limit_column = threshold if threshold is not None else Product.min_stock
        return self.db.query(Product).filter(
            Product.is_active == True,
            Product.stock_total_units <= limit_column
        ).order_by(Product.stock_total_units, Product.name).all()

    # ===== ESCRITURAS (sin commit) =====

    def add(self, product: Product) -> Product:
        self.db.add(product)
        self.db.flush()
        return product
