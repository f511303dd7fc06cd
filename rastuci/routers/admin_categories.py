from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from rastuci.db import get_db
from rastuci.models.catalog import Category, Product
from rastuci.schemas import CategoryIn, CategoryUpdate
from rastuci.services.catalog import category_to_dict, slugify
from rastuci.utils.responses import ApiError, ok

router = APIRouter(prefix="/api/admin/categories", tags=["admin-categories"])


def _get_category(db: Session, category_id: int) -> Category:
    c = db.get(Category, category_id)
    if not c:
        raise ApiError(404, "Categoría no encontrada")
    return c


def _check_unique(db: Session, name: str, slug: str, exclude_id: int = None) -> None:
    q = db.query(Category).filter((Category.name == name) | (Category.slug == slug))
    if exclude_id is not None:
        q = q.filter(Category.id != exclude_id)
    if q.first():
        raise ApiError(409, "Ya existe una categoría con ese nombre")


@router.get("")
def categories_index(db: Session = Depends(get_db)):
    cats = db.query(Category).order_by(Category.name.asc()).all()
    return ok([category_to_dict(c, len(c.products)) for c in cats])


@router.post("", status_code=201)
def category_create(body: CategoryIn, db: Session = Depends(get_db)):
    slug = body.slug or slugify(body.name)
    _check_unique(db, body.name, slug)
    c = Category(**{**body.model_dump(), "slug": slug})
    db.add(c)
    db.commit()
    db.refresh(c)
    return ok(category_to_dict(c, 0), "Categoría creada")


@router.patch("/{category_id}")
def category_update(category_id: int, body: CategoryUpdate, db: Session = Depends(get_db)):
    c = _get_category(db, category_id)
    changes = body.model_dump(exclude_unset=True)
    if "name" in changes or "slug" in changes:
        name = changes.get("name", c.name)
        slug = changes.get("slug") or (slugify(name) if "name" in changes else c.slug)
        _check_unique(db, name, slug, exclude_id=c.id)
        changes["slug"] = slug
    for field, value in changes.items():
        setattr(c, field, value)
    db.commit()
    db.refresh(c)
    return ok(category_to_dict(c, len(c.products)), "Categoría actualizada")


@router.delete("/{category_id}")
def category_delete(category_id: int, db: Session = Depends(get_db)):
    c = _get_category(db, category_id)
    in_use = db.query(Product).filter(Product.category_id == c.id).count()
    if in_use:
        raise ApiError(409, "La categoría tiene {0} producto(s) asociados".format(in_use))
    db.delete(c)
    db.commit()
    return ok({"id": category_id}, "Categoría eliminada")
