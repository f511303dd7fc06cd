from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.models.catalog import Category, Product
from rastuci.services.catalog import DEFAULT_LIMIT, MAX_LIMIT, SORTS, category_counts, category_to_dict, product_to_dict, search_products
from rastuci.utils.responses import ApiError, ok

router = APIRouter(prefix="/api", tags=["catalog"])


@router.get("/products")
def list_products(
    q: Optional[str] = Query(None),
    category_id: Optional[int] = Query(None),
    on_sale: Optional[bool] = Query(None),
    available: Optional[bool] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    featured: Optional[bool] = Query(None),
    sort: str = Query("newest"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=MAX_LIMIT),
    db: Session = Depends(get_db),
):
    if sort not in SORTS:
        raise ApiError(400, "Orden inválido: {0}".format(sort))
    return ok(search_products(
        db, q=q, category_id=category_id, on_sale=on_sale, available=available,
        min_price=min_price, max_price=max_price, featured=featured,
        sort=sort, page=page, limit=limit,
    ))


@router.get("/products/{product_id}")
def get_product(product_id: int, db: Session = Depends(get_db)):
    p = db.get(Product, product_id)
    if not p or not p.is_active:
        raise ApiError(404, "Producto no encontrado")
    return ok(product_to_dict(p, detail=True))


@router.get("/categories")
def list_categories(db: Session = Depends(get_db)):
    counts = category_counts(db)
    cats = db.query(Category).filter(Category.is_active.is_(True)).order_by(Category.name.asc()).all()
    return ok([category_to_dict(c, counts.get(c.id, 0)) for c in cats])


@router.get("/categories/{category_id}")
def get_category(category_id: int, db: Session = Depends(get_db)):
    c = db.get(Category, category_id)
    if not c or not c.is_active:
        raise ApiError(404, "Categoría no encontrada")
    return ok(category_to_dict(c, category_counts(db).get(c.id, 0)))
