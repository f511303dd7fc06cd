# seed.py - reset the local database and load a small demo catalog
from decimal import Decimal

from rastuci.db import Base, SessionLocal, engine, init_db
from rastuci.models.catalog import Category, Product, Variant
from rastuci.models.settings import ContactSettings, StoreSettings, SETTINGS_ROW_ID
from rastuci.models.user import User
from rastuci.services.catalog import slugify
from rastuci.utils.enums import UserRole
from rastuci.utils.security import hash_password

CATEGORIES = [
    ("Remeras", "remeras"),
    ("Pantalones", "pantalones"),
    ("Bebés", "bebes"),
]

PRODUCTS = [
    # name, category slug, price, sale price, sizes, colors
    ("Remera Rayada", "remeras", "8500", "6900", ["2", "4", "6"], ["Azul", "Rosa"]),
    ("Remera Básica", "remeras", "6200", None, ["2", "4", "6", "8"], ["Blanco"]),
    ("Jogger Frisa", "pantalones", "12900", None, ["4", "6", "8"], ["Gris", "Negro"]),
    ("Body Algodón", "bebes", "5400", "4800", ["0-3M", "3-6M", "6-12M"], ["Blanco", "Amarillo"]),
]

USERS = [
    ("admin", "admin123", UserRole.ADMIN.value),
    ("staff", "staff123", UserRole.STAFF.value),
]


def run_seed():
    # === RESET ===
    Base.metadata.drop_all(bind=engine)
    print("Tablas eliminadas")
    init_db()
    print("Tablas creadas")

    db = SessionLocal()
    try:
        db.add(StoreSettings(
            id=SETTINGS_ROW_ID,
            name="Rastuci",
            sender_name="Rastuci",
            sales_email="ventas@rastuci.com",
            address_street="Av. Santa Fe",
            address_number="1234",
            address_city="Don Torcuato",
            address_province_code="B",
            address_postal_code="1611",
            free_shipping=False,
            free_shipping_min_amount=Decimal("50000"),
            low_stock_threshold=5,
        ))
        db.add(ContactSettings(
            id=SETTINGS_ROW_ID,
            emails=["hola@rastuci.com"],
            phones=["+54 11 5555-0000"],
            instagram="https://instagram.com/rastuci",
            hours="Lunes a viernes de 9 a 18",
        ))

        cats = {}
        for name, slug in CATEGORIES:
            cats[slug] = Category(name=name, slug=slug)
            db.add(cats[slug])
        db.flush()
        print("Categorías creadas: {0}".format(len(cats)))

        for name, slug, price, sale, sizes, colors in PRODUCTS:
            product = Product(
                name=name,
                slug=slugify(name),
                price=Decimal(price),
                sale_price=Decimal(sale) if sale else None,
                on_sale=bool(sale),
                sizes=sizes,
                colors=colors,
                images=[],
                category_id=cats[slug].id,
            )
            for size in sizes:
                for color in colors:
                    product.variants.append(Variant(size=size, color=color, stock=10))
            db.add(product)
            print("Producto creado: {0}".format(name))

        for username, raw_password, role in USERS:
            db.add(User(username=username, password_hash=hash_password(raw_password), role=role))
            print("Usuario creado: {0} ({1})".format(username, role))

        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    run_seed()
