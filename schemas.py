"""
Database Schemas for the Storefront Backend

Each Pydantic model corresponds to one MongoDB collection.
Collection name is the lowercase of the class name.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

from identifiers import fallback_complaint_number

PHONE_PATTERN = r"^\d{10}$"

AccountStatus = Literal["open", "closed", "suspended"]
ComplaintStatus = Literal["Pending", "In Progress", "Resolved"]


class User(BaseModel):
    userId: str
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., description="bcrypt hash, never the plaintext")
    phone: str = Field("not available")
    accountStatus: AccountStatus = "open"


class Seller(BaseModel):
    sellerId: str = Field(..., pattern=r"^MBSLR\d{5}$")
    name: str = "Not Available"
    email: EmailStr
    phoneNumber: str = Field(..., pattern=PHONE_PATTERN)
    password: str = Field(..., description="bcrypt hash")
    businessName: str = "Not Available"
    businessAddress: str = "Not Available"
    businessType: str = "Not Available"
    emailVerified: bool = False
    phoneVerified: bool = False
    otp: Optional[str] = None
    loggedIn: Literal["loggedin", "loggedout"] = "loggedout"


class Product(BaseModel):
    productId: str
    name: str
    price: float = Field(..., ge=0)
    img: str
    category: str
    rating: float = Field(0, ge=0, le=5)
    inStockValue: int = Field(0, ge=0)
    soldStockValue: int = Field(0, ge=0)
    visibility: Literal["on", "off"] = "on"


class CartItem(BaseModel):
    productId: str
    productQty: int = Field(..., ge=1)


class Cart(BaseModel):
    userId: str
    productsInCart: List[CartItem] = []


class OrderItem(BaseModel):
    productId: str
    quantity: int = Field(..., ge=1)


class Order(BaseModel):
    orderId: str
    trackingId: str
    userId: str
    name: str
    email: EmailStr
    date: str
    time: str
    address: str
    price: float = Field(..., ge=0)
    productIds: List[str]
    productsOrdered: List[OrderItem]
    status: str = "placed"


class Complaint(BaseModel):
    complaintNumber: str = Field(default_factory=fallback_complaint_number)
    name: str
    email: EmailStr
    message: str
    userType: str
    status: ComplaintStatus = "Pending"


class Coupon(BaseModel):
    code: str = Field(..., min_length=1)
    discountPercentage: float = Field(..., ge=1, le=100)
    expirationDate: datetime
    usageLimit: int = Field(1, ge=0)
    isActive: bool = True


class Session(BaseModel):
    sid: str
    subject: str
    kind: Literal["user", "seller"]
    expires_at: datetime
