from rastuci.services.wishlist import add_to_wishlist, is_in_wishlist, remove_from_wishlist


def test_add_dedupes():
    items = add_to_wishlist([], 1)
    again = add_to_wishlist(items, 1)
    assert [i["product_id"] for i in again] == [1]
    assert again == items


def test_add_keeps_order_and_does_not_mutate():
    original = add_to_wishlist([], 1)
    items = add_to_wishlist(original, 2)
    assert [i["product_id"] for i in items] == [1, 2]
    assert len(original) == 1
    assert "added_at" in items[1]


def test_remove_and_missing_is_noop():
    items = add_to_wishlist(add_to_wishlist([], 1), 2)
    assert [i["product_id"] for i in remove_from_wishlist(items, 1)] == [2]
    assert remove_from_wishlist(items, 42) == items


def test_is_in_wishlist():
    items = add_to_wishlist([], 7)
    assert is_in_wishlist(items, 7)
    assert is_in_wishlist(items, "7")
    assert not is_in_wishlist(items, 8)


def test_wishlist_endpoints(client, make_product):
    p = make_product()
    client.post("/api/wishlist/add", json={"product_id": p.id})
    r = client.post("/api/wishlist/add", json={"product_id": p.id})
    data = r.json()["data"]
    assert data["count"] == 1
    assert data["items"][0]["product"]["id"] == p.id

    r = client.post("/api/wishlist/remove", json={"product_id": 999})
    assert r.json()["data"]["count"] == 1
    r = client.post("/api/wishlist/remove", json={"product_id": p.id})
    assert r.json()["data"]["count"] == 0


def test_wishlist_add_unknown_product(client):
    r = client.post("/api/wishlist/add", json={"product_id": 123})
    assert r.status_code == 404
