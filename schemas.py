"""
Database Schemas

Pydantic models for the documents the admin writes. Each entity has a create
model (full document, client-side defaults applied) and an update model whose
fields are all optional so that only the fields a client sends are merged.

Collection names are fixed by the storefront that reads the same database:
- Category -> "category"
- Product -> "Products"
- Order -> "orders"
- User -> "users"
- BlogPost -> "blogs"
- Enquiry -> "enquiries"
- Review -> "product_reviews"
- SiteSettings -> "settings" (single document)
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Any, Dict, List, Literal, Optional

OrderStatus = Literal["Order placed", "Order shipped", "Order delivered", "Order cancelled"]
UserRole = Literal["Admin", "User", "Super admin"]
SignInMethod = Literal["google", "email", "facebook"]
BlogCategory = Literal["DIY", "Crafts", "Beauty", "Food"]

ORDER_STATUSES = ["Order placed", "Order shipped", "Order delivered", "Order cancelled"]
BLOG_CATEGORIES = ["DIY", "Crafts", "Beauty", "Food"]


class Category(BaseModel):
    name: str = Field(..., description="Display name")
    arabic_name: Optional[str] = None
    imageUrl: Optional[str] = None
    is_active: bool = True


class CategoryUpdate(BaseModel):
    name: Optional[str] = None
    arabic_name: Optional[str] = None
    imageUrl: Optional[str] = None
    is_active: Optional[bool] = None


class Variant(BaseModel):
    name: str = ""
    price: float = Field(0, ge=0)
    mrp: float = Field(0, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    stock: int = Field(0, ge=0)
    is_active: bool = True


class Seo(BaseModel):
    metaTitle: str = ""
    metaDescription: str = ""
    keywords: str = ""


class Inventory(BaseModel):
    stock: int = 0
    lowStockThreshold: int = 5


class Tax(BaseModel):
    taxClass: str = "standard"
    taxRate: float = 0


class Product(BaseModel):
    name: str
    arabic_name: Optional[str] = None
    description: Optional[str] = None
    arabic_description: Optional[str] = None
    category_id: Optional[str] = None
    base_price: float = Field(0, ge=0)
    discounted_price: float = Field(0, ge=0)
    is_active: bool = True
    is_featured: bool = False
    rating: float = Field(0, ge=0, le=5)
    imageUrl: Optional[str] = None
    images: List[str] = []
    variants: List[Variant] = []
    sku: str = ""
    weight: float = 0
    dimensions: str = ""
    manufacturer: str = ""
    warranty: str = ""
    shippingDetails: Dict[str, Any] = {}
    seo: Seo = Field(default_factory=Seo)
    relatedProducts: List[str] = []
    tags: List[str] = []
    inventory: Inventory = Field(default_factory=Inventory)
    tax: Tax = Field(default_factory=Tax)


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    arabic_name: Optional[str] = None
    description: Optional[str] = None
    arabic_description: Optional[str] = None
    category_id: Optional[str] = None
    base_price: Optional[float] = Field(None, ge=0)
    discounted_price: Optional[float] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    rating: Optional[float] = Field(None, ge=0, le=5)
    imageUrl: Optional[str] = None
    images: Optional[List[str]] = None
    variants: Optional[List[Variant]] = None
    sku: Optional[str] = None
    weight: Optional[float] = None
    dimensions: Optional[str] = None
    manufacturer: Optional[str] = None
    warranty: Optional[str] = None
    shippingDetails: Optional[Dict[str, Any]] = None
    seo: Optional[Seo] = None
    relatedProducts: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    inventory: Optional[Inventory] = None
    tax: Optional[Tax] = None


class Review(BaseModel):
    user_name: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = None


class OrderAddress(BaseModel):
    name: Optional[str] = None
    phoneNumber: Optional[str] = None
    district: Optional[str] = None
    landMark: Optional[str] = None
    address: Optional[str] = None


class CartItem(BaseModel):
    productName: str
    variantName: Optional[str] = None
    quantity: int = Field(1, ge=1)
    variantPrice: float = Field(0, ge=0)
    productImageUrl: Optional[str] = None
    discription: Optional[str] = None
    arabicDiscription: Optional[str] = None


class Order(BaseModel):
    userId: str
    status: OrderStatus = "Order placed"
    totalAmount: float = Field(..., ge=0)
    paymentMethod: str = "Cash on delivery"
    address: OrderAddress = Field(default_factory=OrderAddress)
    cartItems: List[CartItem] = []


class OrderUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    totalAmount: Optional[float] = Field(None, ge=0)
    paymentMethod: Optional[str] = None
    address: Optional[OrderAddress] = None
    cartItems: Optional[List[CartItem]] = None


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class User(BaseModel):
    # Unknown fields (a plaintext "password" in particular) are dropped.
    name: str
    email: EmailStr
    role: UserRole = "User"
    mobileNumber: Optional[str] = None
    signInMethod: Optional[SignInMethod] = None
    isNotificationEnabled: bool = False


class UserUpdate(BaseModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    role: Optional[UserRole] = None
    mobileNumber: Optional[str] = None
    signInMethod: Optional[SignInMethod] = None
    isNotificationEnabled: Optional[bool] = None


class BlogPost(BaseModel):
    name: str
    writer: str = ""
    date: str = ""
    image: Optional[str] = None
    description: str = ""
    category: BlogCategory


class BlogPostUpdate(BaseModel):
    name: Optional[str] = None
    writer: Optional[str] = None
    date: Optional[str] = None
    image: Optional[str] = None
    description: Optional[str] = None
    category: Optional[BlogCategory] = None


class Enquiry(BaseModel):
    """Contact form submission; extra contact fields are stored as sent."""

    model_config = ConfigDict(extra="allow")

    type: str = "General"
    firstName: str = ""
    lastName: str = ""
    email: Optional[EmailStr] = None
    phoneNumber: Optional[str] = None


class EnquiryUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    firstName: Optional[str] = None
    lastName: Optional[str] = None
    email: Optional[EmailStr] = None
    phoneNumber: Optional[str] = None


class Testimonial(BaseModel):
    name: str = ""
    designation: str = ""
    quote: str = ""
    imageSrc: str = ""


class HomepageBanners(BaseModel):
    desktop: List[str] = []
    mobile: List[str] = []


class SiteSettings(BaseModel):
    storeName: Optional[str] = None
    email: Optional[str] = None
    phoneNumber: Optional[str] = None
    address: Optional[str] = None
    headerLogo: Optional[str] = None
    footerLogo: Optional[str] = None
    facebookAccount: Optional[str] = None
    instagramAccount: Optional[str] = None
    twitterAccount: Optional[str] = None
    homepageBanners: Optional[HomepageBanners] = None
    testimonials: Optional[List[Testimonial]] = None
