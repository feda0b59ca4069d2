from contextlib import contextmanager
from typing import Optional
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from app.config.settings import settings
from app.core.exceptions import CommitTimeout, PersistenceFailure
from app.shared.database.models import Product, User
from app.shared.services.inventory_service import InventoryService, StockLevels
from app.shared.services.product_locks import product_locks

from .repository import ProductRepository
from .schemas import (
    ProductCreate, ProductUpdate, StockUpdateRequest,
    ProductData, ProductResponse, ProductListResponse, CategoriesResponse
)

logger = logging.getLogger(__name__)

STOCK_FIELDS = ("stock_boxes", "units_per_box", "stock_loose_units")
REQUIRED_FIELDS = {
    "name", "unit_price", "purchase_unit_price", "category", "manufacturer",
    "sale_mode", "min_stock", "requires_prescription", "is_active"
}

class ProductService:
    def __init__(self, db: Session):
        self.db = db
        self.repository = ProductRepository(db)

    # ===== CONSULTAS =====

    async def search_products(
        self,
        search: Optional[str] = None,
        category: Optional[str] = None,
        is_active: Optional[bool] = True,
        limit: int = 100,
        offset: int = 0
    ) -> ProductListResponse:
        products = self.repository.search(search, category, is_active, limit, offset)
        return ProductListResponse(
            success=True,
            message=f"{len(products)} productos encontrados",
            products=[ProductData.model_validate(p) for p in products],
            count=len(products)
        )

    async def get_product(self, product_id: int) -> ProductResponse:
        product = self._get_or_404(product_id)
        return ProductResponse(success=True, message="Producto encontrado", product=ProductData.model_validate(product))

    async def get_by_barcode(self, barcode: str) -> ProductResponse:
        product = self.repository.get_by_barcode(barcode)
        if not product:
            raise HTTPException(status_code=404, detail=f"No hay producto activo con código de barras {barcode}")
        return ProductResponse(success=True, message="Producto encontrado", product=ProductData.model_validate(product))

    async def get_categories(self) -> CategoriesResponse:
        categories = self.repository.list_categories()
        return CategoriesResponse(success=True, message="Categorías", categories=categories)

    # ===== ESCRITURAS =====

    async def create_product(self, data: ProductCreate, user: User) -> ProductResponse:
        """Crear producto validando códigos únicos y calculando el stock total"""
        self._check_duplicates(data.internal_code, data.barcode)

        product_data = data.model_dump()
        product = Product(**product_data)
        InventoryService.set_stock_levels(product, data.stock_boxes, data.units_per_box, data.stock_loose_units)
        product.version = 1
        product.is_active = True

        try:
            self.repository.add(product)
            InventoryService.record_change(
                self.db,
                product_id=product.id,
                change_type="initial",
                before=StockLevels(0, product.units_per_box, 0),
                after=StockLevels.of(product),
                user_id=user.id,
                notes="Stock inicial"
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(status_code=400, detail="Ya existe un producto con ese código interno o código de barras")
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure("No se pudo guardar el producto", {"reason": str(e)})

        self.db.refresh(product)
        logger.info(f"Producto creado #{product.id} '{product.name}' por usuario {user.id}")
        return ProductResponse(success=True, message="Producto creado exitosamente", product=ProductData.model_validate(product))

    def update_product(self, product_id: int, data: ProductUpdate, user: User) -> ProductResponse:
        """
        Actualizar campos de un producto.

        Si se envían campos de stock se revalidan los niveles completos y se
        incrementa la versión, igual que en un reabastecimiento.
        """
        self._get_or_404(product_id)
        update_data = data.model_dump(exclude_unset=True)

        if "internal_code" in update_data or "barcode" in update_data:
            self._check_duplicates(update_data.get("internal_code"), update_data.get("barcode"), exclude_id=product_id)

        stock_changes = {k: update_data.pop(k) for k in STOCK_FIELDS if k in update_data}

        with self._stock_lock(product_id, bool(stock_changes)):
            product = InventoryService.get_product_for_update(self.db, product_id)
            try:
                for key, value in update_data.items():
                    if key in REQUIRED_FIELDS and value is None:
                        continue
                    setattr(product, key, value)

                if stock_changes:
                    self._apply_stock_levels(
                        product,
                        stock_boxes=stock_changes.get("stock_boxes", product.stock_boxes),
                        units_per_box=stock_changes.get("units_per_box", product.units_per_box),
                        stock_loose_units=stock_changes.get("stock_loose_units", product.stock_loose_units),
                        user_id=user.id,
                        change_type="adjustment",
                        notes="Ajuste manual de stock"
                    )
                self.db.commit()
            except IntegrityError:
                self.db.rollback()
                raise HTTPException(status_code=400, detail="Ya existe un producto con ese código interno o código de barras")
            except SQLAlchemyError as e:
                self.db.rollback()
                raise PersistenceFailure("No se pudo actualizar el producto", {"reason": str(e)})
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(product)
        logger.info(f"Producto #{product_id} actualizado por usuario {user.id}: {sorted(data.model_dump(exclude_unset=True))}")
        return ProductResponse(success=True, message="Producto actualizado", product=ProductData.model_validate(product))

    def restock(self, product_id: int, request: StockUpdateRequest, user: User) -> ProductResponse:
        """Fijar niveles absolutos de stock (cajas, unidades por caja, sueltas)"""
        self._get_or_404(product_id)

        with self._stock_lock(product_id, True):
            product = InventoryService.get_product_for_update(self.db, product_id)
            try:
                self._apply_stock_levels(
                    product,
                    stock_boxes=request.stock_boxes,
                    units_per_box=request.units_per_box or product.units_per_box,
                    stock_loose_units=request.stock_loose_units,
                    user_id=user.id,
                    change_type="restock",
                    notes=request.notes or "Reabastecimiento"
                )
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                raise PersistenceFailure("No se pudo actualizar el stock", {"reason": str(e)})
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(product)
        logger.info(
            f"Reabastecimiento producto #{product_id}: {product.stock_boxes} cajas, "
            f"{product.stock_loose_units} sueltas ({product.stock_total_units} total)"
        )
        return ProductResponse(success=True, message="Stock actualizado", product=ProductData.model_validate(product))

    async def deactivate_product(self, product_id: int, user: User) -> ProductResponse:
        """Soft delete: el producto deja de venderse pero conserva su historial"""
        product = self._get_or_404(product_id)
        product.is_active = False
        product.version += 1
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailure("No se pudo desactivar el producto", {"reason": str(e)})

        self.db.refresh(product)
        logger.info(f"Producto #{product_id} desactivado por usuario {user.id}")
        return ProductResponse(success=True, message="Producto desactivado", product=ProductData.model_validate(product))

    # ===== HELPERS =====

    def _get_or_404(self, product_id: int) -> Product:
        product = self.repository.get_by_id(product_id)
        if not product:
            raise HTTPException(status_code=404, detail="Producto no encontrado")
        return product

    def _check_duplicates(self, internal_code: Optional[str], barcode: Optional[str], exclude_id: Optional[int] = None):
        duplicate = self.repository.find_duplicate(internal_code, barcode, exclude_id)
        if duplicate:
            field = "código interno" if internal_code and duplicate.internal_code == internal_code else "código de barras"
            raise HTTPException(
                status_code=400,
                detail=f"Ya existe un producto con ese {field} (#{duplicate.id} {duplicate.name})"
            )

    def _apply_stock_levels(
        self,
        product: Product,
        stock_boxes: int,
        units_per_box: int,
        stock_loose_units: int,
        user_id: int,
        change_type: str,
        notes: str
    ) -> None:
        before = StockLevels.of(product)
        try:
            InventoryService.set_stock_levels(product, stock_boxes, units_per_box, stock_loose_units)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        product.version += 1
        InventoryService.record_change(
            self.db,
            product_id=product.id,
            change_type=change_type,
            before=before,
            after=StockLevels.of(product),
            user_id=user_id,
            notes=notes
        )

    def _stock_lock(self, product_id: int, needed: bool):
        """Bloqueo por producto compartido con el registro de ventas"""
        return _hold_products([product_id] if needed else [])


@contextmanager
def _hold_products(product_ids):
    try:
        with product_locks.hold(product_ids, timeout=settings.stock_lock_timeout_seconds):
            yield
    except TimeoutError as e:
        raise CommitTimeout("No se pudo bloquear el stock a tiempo", {"reason": str(e)})
