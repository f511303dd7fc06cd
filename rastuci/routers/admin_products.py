from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.models.catalog import Category, Product, Variant
from rastuci.models.stock_audit import StockAudit
from rastuci.schemas import ProductIn, ProductUpdate, StockAdjustIn
from rastuci.services.catalog import product_to_dict, search_products, slugify
from rastuci.utils.enums import StockChange
from rastuci.utils.logs import get_logger
from rastuci.utils.responses import ApiError, ok

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin/products", tags=["admin-products"])


def _get_product(db: Session, product_id: int) -> Product:
    p = db.get(Product, product_id)
    if not p:
        raise ApiError(404, "Producto no encontrado")
    return p


def _check_category(db: Session, category_id: Optional[int]) -> None:
    if category_id is not None and not db.get(Category, category_id):
        raise ApiError(400, "Categoría inexistente")


def _sync_variants(product: Product, variants) -> None:
    """Match variants by (color, size): update stock/sku in place, add new ones, drop the rest."""
    existing = {(v.color, v.size): v for v in product.variants}
    keep = []
    for v in variants:
        key = (v.color, v.size)
        if any((k.color, k.size) == key for k in keep):
            raise ApiError(400, "Variante duplicada: {0} / {1}".format(v.size, v.color))
        row = existing.get(key)
        if row is None:
            row = Variant(color=v.color, size=v.size)
        row.stock = v.stock
        row.sku = v.sku
        keep.append(row)
    product.variants[:] = keep


@router.get("")
def products_index(
    q: Optional[str] = Query(None),
    category_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return ok(search_products(db, q=q, category_id=category_id, sort="name",
                              page=page, limit=limit, include_inactive=True))


@router.get("/{product_id}")
def product_detail(product_id: int, db: Session = Depends(get_db)):
    return ok(product_to_dict(_get_product(db, product_id), detail=True))


@router.post("", status_code=201)
def product_create(body: ProductIn, db: Session = Depends(get_db)):
    _check_category(db, body.category_id)
    data = body.model_dump(exclude={"variants"})
    data["slug"] = body.slug or slugify(body.name)
    p = Product(**data)
    _sync_variants(p, body.variants)
    db.add(p)
    db.commit()
    db.refresh(p)
    logger.info("Product %s created", p.id)
    return ok(product_to_dict(p, detail=True), "Producto creado")


@router.patch("/{product_id}")
def product_update(product_id: int, body: ProductUpdate, db: Session = Depends(get_db)):
    p = _get_product(db, product_id)
    changes = body.model_dump(exclude_unset=True, exclude={"variants"})
    if "category_id" in changes:
        _check_category(db, changes["category_id"])
    for field, value in changes.items():
        setattr(p, field, value)
    if body.variants is not None:
        _sync_variants(p, body.variants)
    db.commit()
    db.refresh(p)
    return ok(product_to_dict(p, detail=True), "Producto actualizado")


@router.delete("/{product_id}")
def product_delete(product_id: int, db: Session = Depends(get_db)):
    p = _get_product(db, product_id)
    db.delete(p)
    db.commit()
    logger.info("Product %s deleted", product_id)
    return ok({"id": product_id}, "Producto eliminado")


@router.patch("/{product_id}/stock")
def product_stock(product_id: int, body: StockAdjustIn, request: Request, db: Session = Depends(get_db)):
    p = _get_product(db, product_id)
    holder = p
    if body.variant_id is not None:
        holder = next((v for v in p.variants if v.id == body.variant_id), None)
        if holder is None:
            raise ApiError(404, "Variante no encontrada")

    old = int(holder.stock or 0)
    if body.change_type == StockChange.INCREASE:
        new = old + body.units
    elif body.change_type == StockChange.DECREASE:
        if body.units > old:
            raise ApiError(400, "No hay stock suficiente para descontar {0} unidades".format(body.units))
        new = old - body.units
    else:
        new = body.units
    holder.stock = new

    db.add(StockAudit(
        product_id=p.id,
        variant_id=body.variant_id,
        change_type=body.change_type.value,
        delta_units=body.units,
        old_stock=old,
        new_stock=new,
        note=body.note,
        user=request.session.get("username") or "admin",
    ))
    db.commit()
    db.refresh(p)
    return ok(product_to_dict(p, detail=True), "Stock actualizado")
