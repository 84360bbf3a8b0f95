"""
Database Schemas for the Marketplace backend

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.

- User -> "user", Vendor -> "vendor", Admin -> "admin"
- Mainmenu -> "mainmenu", Category -> "category", Subcategory -> "subcategory"
- Product -> "product", Cart -> "cart", Order -> "order"
- Offer -> "offer", Banner -> "banner"
- Wishlist -> "wishlist", RecentlyViewed -> "recentlyviewed"
- BuyNowSession -> "buynowsession", Feedback -> "feedback"

References between collections are stored as ObjectIds.
"""
from datetime import datetime
from typing import Any, List, Literal, Optional

from bson.objectid import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


# ----------------------- Accounts -----------------------
class Address(BaseModel):
    full_name: str
    phone: str
    pincode: str
    address: str
    landmark: Optional[str] = None
    city: str
    state: str
    address_type: Literal["Home", "Work", "Other"]
    is_default: bool = False


class User(Document):
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., max_length=30, description="Last name")
    email: EmailStr
    password_hash: str = Field(..., description="bcrypt password hash")
    addresses: List[dict] = Field(default_factory=list, description="At most 3 saved addresses")
    is_email_verified: bool = False


class BusinessAddress(BaseModel):
    street: str
    city: str
    state: str
    pincode: str
    country: str = "India"


class BankDetails(BaseModel):
    account_number: Optional[str] = None
    account_holder_name: Optional[str] = None
    ifsc_code: Optional[str] = None
    bank_name: Optional[str] = None
    branch: Optional[str] = None


class Vendor(Document):
    name: str
    email: EmailStr
    phone: str
    password_hash: str
    company_name: str
    business_address: BusinessAddress
    bank_details: Optional[BankDetails] = None
    is_verified: bool = False
    is_active: bool = Field(False, description="Inactive until the signup OTP is verified")
    last_login: Optional[datetime] = None
    profile_image: Optional[str] = None
    commission_rate: float = Field(10, ge=0, le=100)
    otp: Optional[str] = None
    otp_expire: Optional[datetime] = None
    is_email_verified: bool = False


class Admin(Document):
    email: EmailStr
    password_hash: str


# ----------------------- Catalog -----------------------
class Mainmenu(Document):
    menu_name: str = Field(..., description="Section name, e.g. COMPUTERS & LAPTOPS")
    slug: str
    icon: Optional[str] = None
    item_index: int = 0
    is_active: bool = True


class Category(Mainmenu):
    section_id: ObjectId = Field(..., description="Parent Mainmenu _id")


class Subcategory(Mainmenu):
    category_id: ObjectId = Field(..., description="Parent Category _id")


class SpecEntry(BaseModel):
    label: str
    value: Any


class SpecSection(BaseModel):
    section: str
    specs: List[SpecEntry] = []


class Product(Document):
    name: str
    header_name: str
    brand: str
    vendor_id: ObjectId
    item_code: str
    model_number: Optional[str] = None
    plu_code: Optional[str] = None
    section: ObjectId
    category: ObjectId
    subcategory: ObjectId
    description: str
    images: List[str] = []
    tags: List[str] = []
    actual_price: float = Field(..., ge=0)
    selling_price: float = Field(..., ge=0)
    discount: int = Field(0, ge=0, description="Discount percentage derived from the price pair")
    stock: int = Field(0, ge=0)
    warranty: Optional[str] = None
    manufacturing_date: Optional[datetime] = None
    weight: Optional[str] = None
    size: Optional[str] = None
    specifications: List[SpecSection] = []
    sales_count: int = 0
    ratings: float = 0
    reviews_count: int = 0
    is_active: bool = True
    is_in_stock: bool = True


# ----------------------- Cart & Orders -----------------------
class CartItem(Document):
    product: ObjectId
    quantity: int = Field(1, ge=1)
    price_at_add_time: float


class Cart(Document):
    user: ObjectId
    items: List[CartItem] = []
    total_items: int = 0
    total_price: float = 0
    is_active: bool = True
    version: int = 0


class OrderItem(Document):
    product: ObjectId
    name: str
    quantity: int
    price: float
    image: Optional[str] = None


class ShippingAddress(BaseModel):
    full_name: str
    address: str
    city: str
    postal_code: str
    state: str
    phone: Optional[str] = None


OrderStatus = Literal["ordered", "shipped", "out for delivery", "delivered", "cancelled"]


class StatusEntry(BaseModel):
    order_status: OrderStatus = "ordered"
    status_date_time: datetime


class Order(Document):
    user: ObjectId
    order_id: str
    order_items: List[OrderItem]
    shipping_address: ShippingAddress
    items_price: float
    tax_price: float
    shipping_price: float
    total_price: float
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None
    is_cancelled: bool = False
    cancelled_at: Optional[datetime] = None
    status: List[StatusEntry] = []


class BuyNowItem(Document):
    product: ObjectId
    quantity: int
    price: float


class BuyNowSession(Document):
    session_id: str
    user: ObjectId
    items: List[BuyNowItem]
    total_items: int
    total_price: float
    expires_at: datetime


# ----------------------- Promotions -----------------------
class OfferProduct(Document):
    product_id: ObjectId
    start_date: datetime
    end_date: datetime


class Offer(Document):
    type: str = Field(..., description="Unique offer label, e.g. dailyOffer")
    description: Optional[str] = None
    products: List[OfferProduct] = []
    is_active: bool = True
    version: int = 0


class Banner(Document):
    image: str = Field("", description="Public URL of the banner creative")
    offer_name: Optional[str] = None
    product_id: Optional[ObjectId] = None
    is_active: bool = True


# ----------------------- Per-user lists -----------------------
class Wishlist(Document):
    user: ObjectId
    products: List[ObjectId] = []


class RecentlyViewed(Document):
    user: ObjectId
    products: List[ObjectId] = []


class Feedback(Document):
    user: ObjectId
    product: ObjectId
    message: str
    rating: Optional[int] = Field(None, ge=1, le=5)
    response: str = ""
