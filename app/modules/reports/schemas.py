from pydantic import BaseModel
from typing import List, Optional
from decimal import Decimal
from datetime import datetime
from app.shared.schemas.common import BaseResponse

class DashboardStats(BaseResponse):
    active_products: int
    low_stock_products: int
    today_sales_count: int
    today_sales_amount: Decimal
    pending_sales: int
    active_users: int

class LowStockItem(BaseModel):
    product_id: int
    name: str
    category: str
    stock_boxes: int
    stock_loose_units: int
    stock_total_units: int
    min_stock: int
    stock_description: str

class LowStockResponse(BaseResponse):
    products: List[LowStockItem]
    count: int

class TopProduct(BaseModel):
    product_id: int
    product_name: str
    base_units_sold: int
    revenue: Decimal

class SalesSummaryResponse(BaseResponse):
    period: str
    start: datetime
    end: datetime
    sales_count: int
    subtotal: Decimal
    discount_total: Decimal
    grand_total: Decimal
    average_ticket: Optional[Decimal] = None
    top_products: List[TopProduct]
