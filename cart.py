import logging
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends
from pydantic import BaseModel, Field

import identifiers
import mailer
from database import Repository, get_db, serialize_doc
from errors import NotFoundError, StockError, ValidationError, internal_errors
from mailer import Mailer, get_mailer
from schemas import Cart as CartSchema, CartItem, Order as OrderSchema, OrderItem, Product as ProductSchema

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cart", tags=["cart"])


# ----------------------- Models -----------------------
class AddToCartBody(BaseModel):
    userId: str = Field(..., min_length=1)
    productId: str = Field(..., min_length=1)
    quantity: int


class GetCartBody(BaseModel):
    userId: str = Field(..., min_length=1)


class UpdateQuantityBody(BaseModel):
    userId: str = Field(..., min_length=1)
    productId: str = Field(..., min_length=1)
    productQty: int = Field(..., gt=0)


class CartItemBody(BaseModel):
    userId: str = Field(..., min_length=1)
    productId: str = Field(..., min_length=1)


class PlaceOrderBody(BaseModel):
    userId: str = Field(..., min_length=1)
    date: str
    time: str
    address: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    productsOrdered: List[OrderItem] = Field(..., min_length=1)


# ----------------------- Cart -----------------------
def add_to_cart(db, user_id: str, product_id: str, quantity: int) -> dict:
    if quantity <= 0:
        raise ValidationError("Quantity must be a positive number.")
    carts = Repository(db, "cart")
    stored = carts.find_one({"userId": user_id})
    cart = CartSchema(userId=user_id, productsInCart=stored["productsInCart"] if stored else [])
    for item in cart.productsInCart:
        if item.productId == product_id:
            item.productQty += quantity
            break
    else:
        cart.productsInCart.append(CartItem(productId=product_id, productQty=quantity))
    return carts.upsert({"userId": user_id}, {"productsInCart": cart.model_dump()["productsInCart"]})


def get_cart(db, user_id: str) -> dict:
    cart = Repository(db, "cart").find_one({"userId": user_id})
    if not cart or not cart.get("productsInCart"):
        raise NotFoundError("Cart is empty")
    return cart


def _cart_with_item(carts: Repository, user_id: str, product_id: str) -> dict:
    cart = carts.find_one({"userId": user_id})
    if not cart:
        raise NotFoundError("Cart not found.")
    if not any(item["productId"] == product_id for item in cart["productsInCart"]):
        raise NotFoundError("Product not found in the cart.")
    return cart


def update_quantity(db, user_id: str, product_id: str, quantity: int) -> dict:
    carts = Repository(db, "cart")
    cart = CartSchema.model_validate(_cart_with_item(carts, user_id, product_id))
    items = [
        CartItem(productId=item.productId, productQty=quantity) if item.productId == product_id else item
        for item in cart.productsInCart
    ]
    cart = CartSchema(userId=user_id, productsInCart=items)
    return carts.update({"userId": user_id}, {"$set": {"productsInCart": cart.model_dump()["productsInCart"]}})


def remove_item(db, user_id: str, product_id: str) -> dict:
    carts = Repository(db, "cart")
    cart = _cart_with_item(carts, user_id, product_id)
    items = [item for item in cart["productsInCart"] if item["productId"] != product_id]
    return carts.update({"userId": user_id}, {"$set": {"productsInCart": items}})


@router.post("/addtocart")
def add_to_cart_route(body: AddToCartBody, db=Depends(get_db)):
    with internal_errors("Error adding product to cart"):
        cart = add_to_cart(db, body.userId, body.productId, body.quantity)
    return {"success": True, "message": "Product added to cart successfully", "cart": serialize_doc(cart)}


@router.post("/get-cart")
def get_cart_route(body: GetCartBody, db=Depends(get_db)):
    with internal_errors("Error fetching cart"):
        cart = get_cart(db, body.userId)
    return {"success": True, "cart": serialize_doc(cart)}


@router.put("/update-quantity")
def update_quantity_route(body: UpdateQuantityBody, db=Depends(get_db)):
    with internal_errors("An error occurred while updating the quantity"):
        update_quantity(db, body.userId, body.productId, body.productQty)
    return {"message": "Quantity updated successfully."}


@router.post("/delete-items")
def delete_item_route(body: CartItemBody, db=Depends(get_db)):
    with internal_errors("An error occurred while deleting the item"):
        remove_item(db, body.userId, body.productId)
    return {"message": "Item deleted successfully."}


# ----------------------- Orders -----------------------
def _release_stock(products: Repository, items: List[OrderItem]):
    for item in items:
        products.update(
            {"productId": item.productId},
            {"$inc": {"inStockValue": item.quantity, "soldStockValue": -item.quantity}},
        )


def _reserve_stock(products: Repository, items: List[OrderItem]):
    """Move ordered quantities from in-stock to sold, all or nothing."""
    applied = []
    for item in items:
        moved = products.update(
            {"productId": item.productId, "inStockValue": {"$gte": item.quantity}},
            {"$inc": {"inStockValue": -item.quantity, "soldStockValue": item.quantity}},
        )
        if not moved:
            _release_stock(products, applied)
            raise StockError("One or more products are out of stock.")
        applied.append(item)


def place_order(db, body: PlaceOrderBody) -> dict:
    user = Repository(db, "user").find_one({"userId": body.userId})
    if not user:
        raise NotFoundError("User not found")

    products = Repository(db, "product")
    product_ids = [item.productId for item in body.productsOrdered]
    catalogue = {
        p.productId: p
        for p in map(ProductSchema.model_validate, products.find({"productId": {"$in": product_ids}}))
    }
    missing = [pid for pid in product_ids if pid not in catalogue]
    if missing:
        raise NotFoundError(f"Product not found: {', '.join(missing)}")

    ordered = {}
    for item in body.productsOrdered:
        ordered[item.productId] = ordered.get(item.productId, 0) + item.quantity
    if any(catalogue[pid].inStockValue < qty for pid, qty in ordered.items()):
        raise StockError("One or more products are out of stock.")

    lines = [OrderItem(productId=pid, quantity=qty) for pid, qty in ordered.items()]
    orders = Repository(db, "order")
    order = OrderSchema(
        orderId=identifiers.unique_id(orders, "orderId", identifiers.six_digits),
        trackingId=identifiers.tracking_id(),
        userId=body.userId,
        name=user["name"],
        email=user["email"],
        date=body.date,
        time=body.time,
        address=body.address,
        price=body.price,
        productIds=list(ordered),
        productsOrdered=lines,
    )

    _reserve_stock(products, lines)
    try:
        saved = orders.insert(order)
    except Exception:
        _release_stock(products, lines)
        raise

    carts = Repository(db, "cart")
    cart = carts.find_one({"userId": body.userId})
    if cart:
        remaining = [item for item in cart["productsInCart"] if item["productId"] not in ordered]
        carts.update({"userId": body.userId}, {"$set": {"productsInCart": remaining}})
    logger.info("Order %s placed by %s", saved["orderId"], body.userId)
    return saved


@router.post("/place-order")
def place_order_route(body: PlaceOrderBody, background_tasks: BackgroundTasks,
                      db=Depends(get_db), mail: Mailer = Depends(get_mailer)):
    with internal_errors("Error placing order"):
        order = place_order(db, body)
    subject, text, html = mailer.order_confirmation(order["name"], order)
    background_tasks.add_task(mail.send_quietly, order["email"], subject, text, html)
    return {
        "success": True,
        "message": "Order placed successfully",
        "orderId": order["orderId"],
        "trackingId": order["trackingId"],
    }
