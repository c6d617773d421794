import logging
import re
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pymongo.errors import DuplicateKeyError

import identifiers
from database import Repository, get_db
from errors import (
    AuthError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
    VerificationError,
    internal_errors,
)
from schemas import PHONE_PATTERN, Seller as SellerSchema, User as UserSchema
from security import end_session, get_current_user, hash_password, start_session, verify_password
from throttling import login_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
seller_router = APIRouter(prefix="/seller", tags=["seller"])

INVALID_LOGIN = "Invalid email or password"
INVALID_SELLER_LOGIN = "Invalid credentials"

_email_adapter = TypeAdapter(EmailStr)


# ----------------------- Models -----------------------
class SignupBody(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=1)
    phone: str = Field(..., pattern=PHONE_PATTERN)


class LoginBody(BaseModel):
    email: EmailStr
    password: str


class SellerSignupBody(BaseModel):
    phoneNumber: str = Field(..., pattern=PHONE_PATTERN)
    emailId: EmailStr
    password: str = Field(..., min_length=1)
    name: Optional[str] = None
    businessName: Optional[str] = None
    businessAddress: Optional[str] = None
    businessType: Optional[str] = None


class SellerLoginBody(BaseModel):
    sellerId: str = Field(..., min_length=1)
    emailOrPhone: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SellerIdBody(BaseModel):
    sellerId: str = Field(..., min_length=1)


# ----------------------- Users -----------------------
def check_account_status(status: Optional[str]):
    """Only "open" accounts may log in; anything else is refused."""
    if status == "suspended":
        raise ForbiddenError("Account is suspended")
    if status == "blocked":
        raise ForbiddenError("Account is blocked")
    if status != "open":
        raise ValidationError("Invalid account status")


def register_user(db, name: str, email: str, password: str, phone: str) -> dict:
    users = Repository(db, "user")
    if users.exists({"email": email}):
        raise ConflictError("User already exists")
    user = UserSchema(
        userId=identifiers.unique_id(users, "userId", identifiers.user_id),
        name=name,
        email=email,
        password=hash_password(password),
        phone=phone,
    )
    try:
        return users.insert(user)
    except DuplicateKeyError:
        raise ConflictError("User already exists")


def authenticate_user(db, email: str, password: str) -> dict:
    user = Repository(db, "user").find_one({"email": email})
    if not user or not verify_password(password, user["password"]):
        raise AuthError(INVALID_LOGIN)
    check_account_status(user.get("accountStatus"))
    return user


@router.post("/signup", status_code=201)
@router.post("/register", status_code=201)
def signup(body: SignupBody, response: Response, db=Depends(get_db)):
    with internal_errors("Error registering user"):
        user = register_user(db, body.name, body.email, body.password, body.phone)
        start_session(db, response, user["userId"], "user")
    return {"message": "User registered successfully", "userId": user["userId"]}


@router.post("/login")
@login_limit
def login(request: Request, body: LoginBody, response: Response, db=Depends(get_db)):
    with internal_errors("Error logging in"):
        user = authenticate_user(db, body.email, body.password)
        start_session(db, response, user["userId"], "user")
    return {"message": "Login successful", "userId": user["userId"]}


@router.post("/logout")
def logout(request: Request, response: Response, db=Depends(get_db)):
    with internal_errors("Error logging out"):
        end_session(db, request, response)
    return {"message": "Logout successful"}


@router.get("/me")
def me(user=Depends(get_current_user)):
    return {"userId": user["userId"], "name": user["name"], "email": user["email"]}


@router.get("/user/{user_id}")
def get_user(user_id: str, db=Depends(get_db)):
    with internal_errors("Error fetching user details"):
        user = Repository(db, "user").find_one({"userId": user_id}, {"name": 1, "_id": 0})
    if not user:
        raise NotFoundError("User not found")
    return {"name": user["name"]}


# ----------------------- Sellers -----------------------
def _is_email(value: str) -> bool:
    try:
        _email_adapter.validate_python(value)
        return True
    except PydanticValidationError:
        return False


def register_seller(db, body: SellerSignupBody) -> dict:
    sellers = Repository(db, "seller")
    if sellers.exists({"email": body.emailId}):
        raise ConflictError("Seller already exists")
    profile = {k: v for k, v in body.model_dump(include={"name", "businessName", "businessAddress", "businessType"}).items() if v}
    seller = SellerSchema(
        sellerId=identifiers.unique_id(sellers, "sellerId", identifiers.seller_id),
        email=body.emailId,
        phoneNumber=body.phoneNumber,
        password=hash_password(body.password),
        **profile,
    )
    try:
        return sellers.insert(seller)
    except DuplicateKeyError:
        raise ConflictError("Seller already exists")


def authenticate_seller(db, seller_id: str, email_or_phone: str, password: str) -> dict:
    if not _is_email(email_or_phone) and not re.fullmatch(PHONE_PATTERN, email_or_phone):
        raise ValidationError("Invalid email or phone format")
    sellers = Repository(db, "seller")
    seller = sellers.find_one({
        "sellerId": seller_id,
        "$or": [{"email": email_or_phone}, {"phoneNumber": email_or_phone}],
    })
    if not seller:
        raise AuthError(INVALID_SELLER_LOGIN)
    if not seller.get("emailVerified") and not seller.get("phoneVerified"):
        raise VerificationError("Account not verified")
    if not verify_password(password, seller["password"]):
        raise AuthError(INVALID_SELLER_LOGIN)
    return sellers.update({"sellerId": seller_id}, {"$set": {"loggedIn": "loggedin"}})


@seller_router.post("/signup", status_code=201)
def seller_signup(body: SellerSignupBody, response: Response, db=Depends(get_db)):
    with internal_errors("Error registering seller"):
        seller = register_seller(db, body)
        start_session(db, response, seller["sellerId"], "seller")
    return {"message": "Seller registered successfully", "sellerId": seller["sellerId"]}


@seller_router.post("/login")
@login_limit
def seller_login(request: Request, body: SellerLoginBody, response: Response, db=Depends(get_db)):
    with internal_errors("Error logging in"):
        seller = authenticate_seller(db, body.sellerId, body.emailOrPhone, body.password)
        start_session(db, response, seller["sellerId"], "seller")
    return {"success": True, "message": "Login successful", "sellerId": seller["sellerId"]}


@seller_router.post("/verify-seller")
def verify_seller(body: SellerIdBody, db=Depends(get_db)):
    with internal_errors("Error verifying seller ID"):
        seller = Repository(db, "seller").find_one({"sellerId": body.sellerId})
    if not seller:
        raise NotFoundError("Invalid seller ID")
    return {"success": True, "message": "Valid seller ID", "loggedIn": seller["loggedIn"]}


@seller_router.post("/logout")
def seller_logout(body: SellerIdBody, request: Request, response: Response, db=Depends(get_db)):
    with internal_errors("Error logging out"):
        seller = Repository(db, "seller").update({"sellerId": body.sellerId}, {"$set": {"loggedIn": "loggedout"}})
        if not seller:
            raise NotFoundError("Seller not found")
        end_session(db, request, response)
    return {"success": True, "message": "Seller logged out successfully", "loggedIn": "loggedout"}


@seller_router.get("/{seller_id}")
def get_seller(seller_id: str, db=Depends(get_db)):
    with internal_errors("Error fetching seller details"):
        seller = Repository(db, "seller").find_one(
            {"sellerId": seller_id},
            {"name": 1, "businessName": 1, "businessAddress": 1, "businessType": 1, "_id": 0},
        )
    if not seller:
        raise NotFoundError("Seller not found")
    return seller
