import re
import unicodedata
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session, selectinload

from rastuci.models.catalog import Category, Product, Variant
from rastuci.utils.money import to_decimal

SORTS = ("newest", "price_asc", "price_desc", "name")
DEFAULT_LIMIT = 12
MAX_LIMIT = 100


def product_to_dict(p: Product, detail: bool = False) -> Dict[str, Any]:
    """Product as returned by the API."""
    data = {
        "id": p.id,
        "name": p.name,
        "slug": p.slug,
        "price": float(to_decimal(p.price)),
        "sale_price": float(to_decimal(p.sale_price)) if p.sale_price is not None else None,
        "on_sale": bool(p.on_sale),
        "effective_price": float(p.effective_price),
        "stock": p.available_stock,
        "images": list(p.images or []),
        "sizes": list(p.sizes or []),
        "colors": list(p.colors or []),
        "featured": bool(p.featured),
        "category_id": p.category_id,
        "category": p.category.name if p.category else None,
    }
    if detail:
        data.update({
            "description": p.description,
            "weight_grams": p.weight_grams,
            "is_active": bool(p.is_active),
            "created_at": p.created_at.isoformat() if p.created_at else None,
            "variants": [
                {"id": v.id, "color": v.color, "size": v.size, "stock": v.stock, "sku": v.sku}
                for v in (p.variants or [])
            ],
        })
    return data


def category_to_dict(c: Category, product_count: Optional[int] = None) -> Dict[str, Any]:
    data = {
        "id": c.id,
        "name": c.name,
        "slug": c.slug,
        "description": c.description,
        "image": c.image,
        "is_active": bool(c.is_active),
    }
    if product_count is not None:
        data["product_count"] = product_count
    return data


def _price_expr():
    # effective price as SQL, mirrors Product.effective_price
    return case(
        (and_(Product.on_sale.is_(True), Product.sale_price > 0), Product.sale_price),
        else_=Product.price,
    )


def search_products(
    db: Session,
    q: Optional[str] = None,
    category_id: Optional[int] = None,
    on_sale: Optional[bool] = None,
    available: Optional[bool] = None,
    min_price=None,
    max_price=None,
    featured: Optional[bool] = None,
    sort: str = "newest",
    page: int = 1,
    limit: int = DEFAULT_LIMIT,
    include_inactive: bool = False,
) -> Dict[str, Any]:
    """Filtered, sorted and paginated product listing."""
    page = max(1, int(page))
    limit = min(max(1, int(limit)), MAX_LIMIT)

    query = db.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))
    if q:
        like = "%{0}%".format(q.strip())
        query = query.filter(or_(Product.name.ilike(like), Product.description.ilike(like)))
    if category_id:
        query = query.filter(Product.category_id == category_id)
    if on_sale is not None:
        query = query.filter(Product.on_sale.is_(on_sale))
    if featured is not None:
        query = query.filter(Product.featured.is_(featured))
    if available:
        query = query.filter(or_(Product.stock > 0, Product.variants.any(Variant.stock > 0)))
    price = _price_expr()
    if min_price is not None:
        query = query.filter(price >= to_decimal(min_price))
    if max_price is not None:
        query = query.filter(price <= to_decimal(max_price))

    total = query.count()

    if sort == "price_asc":
        query = query.order_by(price.asc(), Product.id.asc())
    elif sort == "price_desc":
        query = query.order_by(price.desc(), Product.id.asc())
    elif sort == "name":
        query = query.order_by(Product.name.asc(), Product.id.asc())
    else:
        query = query.order_by(Product.created_at.desc(), Product.id.desc())

    rows = (
        query.options(selectinload(Product.variants), selectinload(Product.category))
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return {
        "items": [product_to_dict(p) for p in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "pages": (total + limit - 1) // limit if total else 0,
    }


def category_counts(db: Session) -> Dict[int, int]:
    rows = (
        db.query(Product.category_id, func.count(Product.id))
        .filter(Product.is_active.is_(True))
        .group_by(Product.category_id)
        .all()
    )
    return {cid: n for cid, n in rows if cid is not None}


# ---------------- suggest ranking ----------------
def _norm(s: str) -> str:
    return (s or "").casefold()


def _find_pos(text: str, q: str) -> int:
    """Position of q in text, a large number when missing."""
    i = _norm(text).find(_norm(q))
    return i if i >= 0 else 10_000


def rank_suggest_item(item: Dict[str, Any], q: str) -> tuple:
    """Sort key for suggestions: prefix matches, then earlier matches, then shorter names."""
    type_weight = {"product": 0, "category": 1}
    name = item.get("name") or ""
    starts = 0 if _norm(name).startswith(_norm(q)) else 1
    return (starts, _find_pos(name, q), len(name), type_weight.get(item.get("type"), 9))


def suggest(db: Session, q: str, limit: int = 8) -> List[Dict[str, Any]]:
    q = (q or "").strip()
    if not q:
        return []
    like = "%{0}%".format(q)
    items: List[Dict[str, Any]] = []

    cats = (
        db.query(Category)
        .filter(Category.is_active.is_(True), Category.name.ilike(like))
        .limit(limit)
        .all()
    )
    for c in cats:
        items.append({"type": "category", "id": c.id, "name": c.name, "url": "/categories/{0}".format(c.id)})

    prods = (
        db.query(Product)
        .filter(Product.is_active.is_(True), Product.name.ilike(like))
        .limit(limit)
        .all()
    )
    for p in prods:
        items.append({
            "type": "product",
            "id": p.id,
            "name": p.name,
            "url": "/products/{0}".format(p.id),
            "price": float(p.effective_price),
            "image": (p.images or [None])[0],
        })

    items.sort(key=lambda it: rank_suggest_item(it, q))
    return items[:limit]


def slugify(text: str) -> str:
    """``"Remera Rayada Niña"`` -> ``"remera-rayada-nina"``."""
    norm = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode()
    return re.sub(r"[^a-z0-9]+", "-", norm.lower()).strip("-")
