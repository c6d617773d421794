import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from pymongo.errors import DuplicateKeyError

import mailer
from config import COUPON_DEFAULT_TTL_DAYS
from database import Repository, get_db, serialize_doc, utcnow
from errors import ConflictError, NotFoundError, ValidationError, internal_errors
from mailer import Mailer, get_mailer
from schemas import Coupon as CouponSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coupon", tags=["coupon"])


# ----------------------- Models -----------------------
class SaveCouponBody(BaseModel):
    code: str = Field(..., min_length=1)
    discountPercentage: float = Field(..., ge=1, le=100)
    expirationDate: Optional[datetime] = None
    usageLimit: int = Field(1, ge=0)
    isActive: bool = True


class CouponCodeBody(BaseModel):
    code: str = Field(..., min_length=1)


class DeleteCouponBody(BaseModel):
    code: str = Field(..., min_length=1)
    discountPercentage: float = Field(..., ge=1, le=100)


# ----------------------- Service -----------------------
def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def valid_coupon_filter(code: str) -> dict:
    """Active, not expired, uses remaining."""
    return {
        "code": code,
        "isActive": True,
        "expirationDate": {"$gte": utcnow()},
        "usageLimit": {"$gt": 0},
    }


def notify_all_users(db, mail: Mailer, subject: str, text: str) -> int:
    users = Repository(db, "user").find({}, {"email": 1, "_id": 0})
    return mail.broadcast([u["email"] for u in users if u.get("email")], subject, text)


def save_coupon(db, mail: Mailer, body: SaveCouponBody) -> dict:
    coupons = Repository(db, "coupon")
    if coupons.exists({"code": body.code}):
        raise ConflictError("Coupon code already exists")
    expires = body.expirationDate or utcnow() + timedelta(days=COUPON_DEFAULT_TTL_DAYS)
    coupon = CouponSchema(
        code=body.code,
        discountPercentage=body.discountPercentage,
        expirationDate=_as_utc(expires),
        usageLimit=body.usageLimit,
        isActive=body.isActive,
    )
    try:
        saved = coupons.insert(coupon)
    except DuplicateKeyError:
        raise ConflictError("Coupon code already exists")
    notify_all_users(db, mail, *mailer.coupon_created(saved["code"], saved["discountPercentage"]))
    return saved


def verify_coupon(db, code: str) -> dict:
    coupons = Repository(db, "coupon")
    coupon = coupons.find_one(valid_coupon_filter(code))
    if coupon:
        return coupon
    if not coupons.exists({"code": code}):
        raise NotFoundError("Invalid coupon code")
    raise ValidationError("Coupon is expired or no longer available")


def redeem_coupon(db, code: str) -> dict:
    coupons = Repository(db, "coupon")
    coupon = coupons.update(valid_coupon_filter(code), {"$inc": {"usageLimit": -1}})
    if coupon:
        logger.info("Coupon %s redeemed, %d use(s) left", code, coupon["usageLimit"])
        return coupon
    if not coupons.exists({"code": code}):
        raise NotFoundError("Invalid coupon code")
    raise ValidationError("Coupon is expired or no longer available")


def delete_coupon(db, mail: Mailer, code: str, discount: float) -> dict:
    deleted = Repository(db, "coupon").delete({"code": code, "discountPercentage": discount})
    if not deleted:
        raise NotFoundError("Coupon not found")
    notify_all_users(db, mail, *mailer.coupon_expired(code, discount))
    return deleted


# ----------------------- Routes -----------------------
@router.get("/get-coupon")
def get_coupons(db=Depends(get_db)):
    with internal_errors("Error fetching coupons"):
        coupons = Repository(db, "coupon").find()
    return {"success": True, "coupons": [serialize_doc(c) for c in coupons]}


@router.post("/save-coupon", status_code=201)
def save_coupon_route(body: SaveCouponBody, db=Depends(get_db), mail: Mailer = Depends(get_mailer)):
    with internal_errors("Error saving coupon"):
        coupon = save_coupon(db, mail, body)
    return {"success": True, "message": "Coupon saved successfully", "coupon": serialize_doc(coupon)}


@router.post("/verify-coupon")
def verify_coupon_route(body: CouponCodeBody, db=Depends(get_db)):
    with internal_errors("Error verifying coupon"):
        coupon = verify_coupon(db, body.code)
    return {"success": True, "discountPercentage": coupon["discountPercentage"]}


@router.post("/redeem-coupon")
def redeem_coupon_route(body: CouponCodeBody, db=Depends(get_db)):
    with internal_errors("Error redeeming coupon"):
        coupon = redeem_coupon(db, body.code)
    return {"success": True, "discountPercentage": coupon["discountPercentage"], "usageLimit": coupon["usageLimit"]}


@router.delete("/delete-coupon")
def delete_coupon_route(body: DeleteCouponBody, db=Depends(get_db), mail: Mailer = Depends(get_mailer)):
    with internal_errors("Error deleting coupon"):
        delete_coupon(db, mail, body.code, body.discountPercentage)
    return {"success": True, "message": "Coupon deleted successfully"}
