"""JSON request bodies."""
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from rastuci.utils.enums import OrderStatus, StockChange, UserRole


# ---------- cart / wishlist ----------
class CartItemIn(BaseModel):
    product_id: int
    qty: int = 1
    size: Optional[str] = None
    color: Optional[str] = None


class CartRemoveIn(BaseModel):
    product_id: int
    size: Optional[str] = None
    color: Optional[str] = None


class WishlistIn(BaseModel):
    product_id: int


# ---------- checkout ----------
class CustomerIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: Optional[str] = None
    address: Optional[str] = None
    street: Optional[str] = None
    number: Optional[str] = None
    floor: Optional[str] = None
    apartment: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    province_code: Optional[str] = None
    postal_code: Optional[str] = None


class CheckoutItemIn(BaseModel):
    product_id: int
    qty: int = Field(ge=1)
    size: Optional[str] = None
    color: Optional[str] = None


class CheckoutIn(BaseModel):
    customer: CustomerIn
    items: List[CheckoutItemIn]
    payment_method: str
    shipping_method: str = "pickup"
    # only trusted for carrier quotes (ca-*), local methods are re-priced
    shipping_cost: Optional[Decimal] = None
    shipping_agency: Optional[str] = None


# ---------- shipping / tracking ----------
class CarrierQuoteIn(BaseModel):
    postal_code: str
    items_count: int = Field(1, ge=1)
    delivered_type: Optional[str] = None


class TrackingIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tracking_number: str = Field("", alias="trackingNumber")


class CarrierEventIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tracking_number: str = Field(alias="trackingNumber")
    status: str
    description: Optional[str] = None


# ---------- auth / users ----------
class LoginIn(BaseModel):
    username: str
    password: str


class UserIn(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    password: str = Field(min_length=6)
    email: Optional[str] = None
    role: UserRole = UserRole.STAFF


class UserUpdate(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None
    is_active: Optional[bool] = None


# ---------- admin catalog ----------
class VariantIn(BaseModel):
    color: str
    size: str
    stock: int = Field(0, ge=0)
    sku: Optional[str] = None


class ProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Decimal = Field(gt=0)
    sale_price: Optional[Decimal] = Field(None, ge=0)
    on_sale: bool = False
    stock: int = Field(0, ge=0)
    images: List[str] = []
    sizes: List[str] = []
    colors: List[str] = []
    is_active: bool = True
    featured: bool = False
    weight_grams: Optional[int] = None
    category_id: Optional[int] = None
    variants: List[VariantIn] = []


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, gt=0)
    sale_price: Optional[Decimal] = Field(None, ge=0)
    on_sale: Optional[bool] = None
    images: Optional[List[str]] = None
    sizes: Optional[List[str]] = None
    colors: Optional[List[str]] = None
    is_active: Optional[bool] = None
    featured: Optional[bool] = None
    weight_grams: Optional[int] = None
    category_id: Optional[int] = None
    variants: Optional[List[VariantIn]] = None


class StockAdjustIn(BaseModel):
    change_type: StockChange
    units: int = Field(ge=0)
    variant_id: Optional[int] = None
    note: Optional[str] = None


class CategoryIn(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    slug: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=120)
    slug: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    is_active: Optional[bool] = None


# ---------- admin orders ----------
class StatusChangeIn(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


# ---------- settings ----------
class StoreSettingsIn(BaseModel):
    name: Optional[str] = None
    admin_email: Optional[str] = None
    sales_email: Optional[str] = None
    support_email: Optional[str] = None
    sender_name: Optional[str] = None
    address_street: Optional[str] = None
    address_number: Optional[str] = None
    address_city: Optional[str] = None
    address_province_code: Optional[str] = None
    address_postal_code: Optional[str] = None
    phone: Optional[str] = None
    free_shipping: Optional[bool] = None
    free_shipping_min_amount: Optional[Decimal] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)


class ContactSettingsIn(BaseModel):
    emails: Optional[List[str]] = None
    phones: Optional[List[str]] = None
    whatsapp: Optional[str] = None
    instagram: Optional[str] = None
    facebook: Optional[str] = None
    address: Optional[str] = None
    hours: Optional[str] = None
