from fastapi import FastAPI
from starlette.middleware.sessions import SessionMiddleware

from rastuci import config
from rastuci.db import init_db
from rastuci.middleware.rbac import AdminAuthMiddleware
from rastuci.utils.logs import get_logger, setup_logging
from rastuci.utils.responses import register_exception_handlers

from rastuci.routers import (
    admin_categories, admin_dashboard, admin_orders, admin_products, admin_settings, admin_users,
    auth, cart, catalog, checkout, orders, search, settings, shipping, tracking, webhooks, wishlist,
)

logger = get_logger(__name__)


# ==== FastAPI app ====
app = FastAPI(title=config.APP_NAME)

# Admin access check, must sit inside SessionMiddleware
app.add_middleware(AdminAuthMiddleware)

# Sessions (cart, wishlist, admin login)
app.add_middleware(
    SessionMiddleware,
    secret_key=config.SECRET_KEY,
    same_site="lax",
    https_only=config.ENV == "production",
)

register_exception_handlers(app)


# ==== Routers ====
app.include_router(catalog.router)
app.include_router(search.router)
app.include_router(cart.router)
app.include_router(wishlist.router)
app.include_router(checkout.router)
app.include_router(orders.router)
app.include_router(shipping.router)
app.include_router(tracking.router)
app.include_router(settings.router)
app.include_router(webhooks.router)
app.include_router(auth.router)
app.include_router(admin_dashboard.router)
app.include_router(admin_products.router)
app.include_router(admin_categories.router)
app.include_router(admin_orders.router)
app.include_router(admin_settings.router)
app.include_router(admin_users.router)


@app.get("/api/health")
def health():
    return {"success": True, "data": {"status": "ok", "env": config.ENV}}


@app.on_event("startup")
def startup_event():
    setup_logging()
    init_db()
    logger.info("%s started (env=%s)", config.APP_NAME, config.ENV)
