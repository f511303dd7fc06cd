from decimal import Decimal, ROUND_HALF_UP

CENTS = Decimal("0.01")


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def sale_aware_price(price, sale_price=None, on_sale: bool = False) -> Decimal:
    """Sale price wins when the product is on sale and it is a real price."""
    if on_sale and sale_price is not None and to_decimal(sale_price) > 0:
        return to_decimal(sale_price)
    return to_decimal(price)
