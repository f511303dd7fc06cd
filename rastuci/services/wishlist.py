from datetime import datetime
from typing import List

SESSION_KEY = "wishlist"


def is_in_wishlist(items: List[dict], product_id: int) -> bool:
    return any(int(i["product_id"]) == int(product_id) for i in items)


def add_to_wishlist(items: List[dict], product_id: int) -> List[dict]:
    """New list with the product appended; unchanged when it is already there."""
    if is_in_wishlist(items, product_id):
        return list(items)
    return list(items) + [{"product_id": int(product_id), "added_at": datetime.utcnow().isoformat()}]


def remove_from_wishlist(items: List[dict], product_id: int) -> List[dict]:
    return [i for i in items if int(i["product_id"]) != int(product_id)]


def get_wishlist(session) -> List[dict]:
    return list(session.get(SESSION_KEY) or [])


def set_wishlist(session, items: List[dict]) -> None:
    session[SESSION_KEY] = items
