from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.schemas import CartItemIn, CartRemoveIn
from rastuci.services import cart as carts
from rastuci.utils.responses import ok

router = APIRouter(prefix="/api/cart", tags=["cart"])


@router.get("")
def cart_view(request: Request, db: Session = Depends(get_db)):
    return ok(carts.cart_summary(db, carts.get_cart(request.session)))


@router.post("/add")
def cart_add(body: CartItemIn, request: Request, db: Session = Depends(get_db)):
    cart, clamped = carts.add_item(
        db, carts.get_cart(request.session), body.product_id, body.qty, body.size, body.color
    )
    carts.set_cart(request.session, cart)
    msg = "Stock insuficiente, se agregó el máximo disponible" if clamped else "Producto agregado al carrito"
    return ok(carts.cart_summary(db, cart), msg)


@router.post("/update")
def cart_update(body: CartItemIn, request: Request, db: Session = Depends(get_db)):
    cart = carts.get_cart(request.session)
    try:
        cart, clamped = carts.update_item(db, cart, body.product_id, body.qty, body.size, body.color)
    finally:
        # a vanished product is dropped from the cart even when the update fails
        carts.set_cart(request.session, cart)
    msg = "Cantidad ajustada al stock disponible" if clamped else None
    return ok(carts.cart_summary(db, cart), msg)


@router.post("/remove")
def cart_remove(body: CartRemoveIn, request: Request, db: Session = Depends(get_db)):
    cart = carts.remove_item(carts.get_cart(request.session), body.product_id, body.size, body.color)
    carts.set_cart(request.session, cart)
    return ok(carts.cart_summary(db, cart))


@router.post("/clear")
def cart_clear(request: Request):
    carts.set_cart(request.session, {})
    return ok({"items": [], "subtotal": 0.0, "total_items": 0, "savings": 0.0})
