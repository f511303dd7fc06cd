from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.models.catalog import Product
from rastuci.schemas import WishlistIn
from rastuci.services.catalog import product_to_dict
from rastuci.services.wishlist import add_to_wishlist, get_wishlist, remove_from_wishlist, set_wishlist
from rastuci.utils.responses import ApiError, ok

router = APIRouter(prefix="/api/wishlist", tags=["wishlist"])


def _payload(db: Session, items):
    ids = [int(i["product_id"]) for i in items]
    products = {p.id: p for p in db.query(Product).filter(Product.id.in_(ids)).all()} if ids else {}
    return {
        "items": [
            {**i, "product": product_to_dict(products[int(i["product_id"])])}
            for i in items
            if int(i["product_id"]) in products
        ],
        "count": len(items),
    }


@router.get("")
def wishlist_view(request: Request, db: Session = Depends(get_db)):
    return ok(_payload(db, get_wishlist(request.session)))


@router.post("/add")
def wishlist_add(body: WishlistIn, request: Request, db: Session = Depends(get_db)):
    if not db.get(Product, body.product_id):
        raise ApiError(404, "Producto no encontrado")
    items = add_to_wishlist(get_wishlist(request.session), body.product_id)
    set_wishlist(request.session, items)
    return ok(_payload(db, items))


@router.post("/remove")
def wishlist_remove(body: WishlistIn, request: Request, db: Session = Depends(get_db)):
    items = remove_from_wishlist(get_wishlist(request.session), body.product_id)
    set_wishlist(request.session, items)
    return ok(_payload(db, items))


@router.post("/clear")
def wishlist_clear(request: Request):
    set_wishlist(request.session, [])
    return ok({"items": [], "count": 0})
