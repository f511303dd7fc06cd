"""Session cart.

The cart lives in the signed session cookie as
``{"<product_id>:<size>:<color>": {"product_id", "size", "color", "qty"}}``;
prices are always read from the database.
"""
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from rastuci.models.catalog import Product
from rastuci.utils.money import money, sale_aware_price, to_decimal
from rastuci.utils.responses import ApiError

SESSION_KEY = "cart"


def cart_key(product_id: int, size: Optional[str] = None, color: Optional[str] = None) -> str:
    return "{0}:{1}:{2}".format(int(product_id), size or "", color or "")


def get_cart(session) -> Dict[str, dict]:
    return dict(session.get(SESSION_KEY) or {})


def set_cart(session, cart: Dict[str, dict]) -> None:
    session[SESSION_KEY] = cart


def stock_for(product: Product, size: Optional[str], color: Optional[str]) -> int:
    """Variant stock when size and color match a variant, product stock otherwise."""
    variant = product.find_variant(color, size)
    if variant is not None:
        return int(variant.stock or 0)
    return int(product.stock or 0)


def compute_cart_totals(lines: List[dict]) -> dict:
    """Totals for cart lines carrying ``price``, ``sale_price``, ``on_sale`` and ``qty``.

    Returns the lines with ``unit_price``/``line_total`` plus ``subtotal``,
    ``total_items`` and ``savings`` (list price minus what is charged).
    """
    subtotal = Decimal("0")
    savings = Decimal("0")
    total_items = 0
    out = []
    for line in lines:
        qty = max(0, int(line.get("qty", 0)))
        list_price = to_decimal(line.get("price"))
        unit_price = sale_aware_price(list_price, line.get("sale_price"), bool(line.get("on_sale")))
        line_total = unit_price * qty
        subtotal += line_total
        savings += (list_price - unit_price) * qty
        total_items += qty
        out.append({**line, "qty": qty, "unit_price": money(unit_price), "line_total": money(line_total)})
    return {
        "lines": out,
        "subtotal": money(subtotal),
        "total_items": total_items,
        "savings": money(max(savings, Decimal("0"))),
    }


def _load_products(db: Session, product_ids) -> Dict[int, Product]:
    if not product_ids:
        return {}
    rows = (
        db.query(Product)
        .options(selectinload(Product.variants))
        .filter(Product.id.in_(list(product_ids)))
        .all()
    )
    return {p.id: p for p in rows}


def cart_lines(db: Session, cart: Dict[str, dict]) -> List[dict]:
    """Session entries joined with current product data; vanished products are skipped."""
    products = _load_products(db, {int(item["product_id"]) for item in cart.values()})
    lines = []
    for key, item in cart.items():
        p = products.get(int(item["product_id"]))
        if not p or not p.is_active:
            continue
        lines.append({
            "key": key,
            "product_id": p.id,
            "name": p.name,
            "image": (p.images or [None])[0],
            "size": item.get("size"),
            "color": item.get("color"),
            "qty": int(item.get("qty", 1)),
            "price": to_decimal(p.price),
            "sale_price": to_decimal(p.sale_price) if p.sale_price is not None else None,
            "on_sale": bool(p.on_sale),
            "stock": stock_for(p, item.get("size"), item.get("color")),
        })
    return lines


def cart_summary(db: Session, cart: Dict[str, dict]) -> dict:
    totals = compute_cart_totals(cart_lines(db, cart))
    return {
        "items": [
            {
                **{k: v for k, v in line.items() if k not in ("price", "sale_price", "unit_price", "line_total")},
                "price": float(line["price"]),
                "sale_price": float(line["sale_price"]) if line["sale_price"] is not None else None,
                "unit_price": float(line["unit_price"]),
                "line_total": float(line["line_total"]),
            }
            for line in totals["lines"]
        ],
        "subtotal": float(totals["subtotal"]),
        "total_items": totals["total_items"],
        "savings": float(totals["savings"]),
    }


def _active_product(db: Session, product_id: int) -> Product:
    p = db.get(Product, int(product_id))
    if not p or not p.is_active:
        raise ApiError(404, "Producto no encontrado")
    return p


def add_item(db: Session, cart: Dict[str, dict], product_id: int, qty: int = 1,
             size: Optional[str] = None, color: Optional[str] = None) -> Tuple[Dict[str, dict], bool]:
    """Add ``qty`` units; the line is clamped to available stock.

    Returns the cart and whether the quantity was clamped.
    """
    p = _active_product(db, product_id)
    max_qty = stock_for(p, size, color)
    if max_qty <= 0:
        raise ApiError(400, "Sin stock disponible", "OUT_OF_STOCK")

    key = cart_key(p.id, size, color)
    existing = int(cart.get(key, {}).get("qty", 0))
    want = existing + max(1, int(qty))
    clamped = want > max_qty
    cart[key] = {"product_id": p.id, "size": size, "color": color, "qty": min(want, max_qty)}
    return cart, clamped


def update_item(db: Session, cart: Dict[str, dict], product_id: int, qty: int,
                size: Optional[str] = None, color: Optional[str] = None) -> Tuple[Dict[str, dict], bool]:
    """Set the line quantity; ``qty <= 0`` removes the line."""
    key = cart_key(product_id, size, color)
    if key not in cart:
        raise ApiError(404, "El producto no está en el carrito")
    new_qty = int(qty)
    if new_qty <= 0:
        cart.pop(key, None)
        return cart, False

    p = db.get(Product, int(product_id))
    if not p or not p.is_active:
        cart.pop(key, None)
        raise ApiError(404, "Producto no encontrado")
    max_qty = stock_for(p, size, color)
    clamped = new_qty > max_qty
    if max_qty <= 0:
        cart.pop(key, None)
    else:
        cart[key]["qty"] = min(new_qty, max_qty)
    return cart, clamped


def remove_item(cart: Dict[str, dict], product_id: int,
                size: Optional[str] = None, color: Optional[str] = None) -> Dict[str, dict]:
    cart.pop(cart_key(product_id, size, color), None)
    return cart
