from pathlib import Path
from dotenv import load_dotenv
import os

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")  # .env is optional, defaults below are for local dev

APP_NAME = "Rastuci"
ENV = os.getenv("ENV", "local")
APP_URL = os.getenv("APP_URL", "http://localhost:8000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Database connection string (PostgreSQL in production, SQLite file locally)
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    "sqlite:///{0}".format((BASE_DIR / "rastuci.db").as_posix())
)

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-change-me")

HTTP_TIMEOUT = float(os.getenv("HTTP_TIMEOUT", "10"))

# ---- MercadoPago ----
MP_ACCESS_TOKEN = os.getenv("MP_ACCESS_TOKEN", "")
MP_PUBLIC_KEY = os.getenv("MP_PUBLIC_KEY", "")
MP_WEBHOOK_SECRET = os.getenv("MP_WEBHOOK_SECRET", "")
MP_WEBHOOK_URL = os.getenv("MP_WEBHOOK_URL", "")

# ---- Correo Argentino (MiCorreo) ----
CORREO_ARGENTINO_USERNAME = os.getenv("CORREO_ARGENTINO_USERNAME", "")
CORREO_ARGENTINO_PASSWORD = os.getenv("CORREO_ARGENTINO_PASSWORD", "")
CORREO_ARGENTINO_CUSTOMER_ID = os.getenv("CORREO_ARGENTINO_CUSTOMER_ID", "")
CORREO_ARGENTINO_PRODUCTION = os.getenv("CORREO_ARGENTINO_PRODUCTION", "false").lower() in ("1", "true", "yes")
CORREO_ARGENTINO_WEBHOOK_SECRET = os.getenv("CORREO_ARGENTINO_WEBHOOK_SECRET", "")

# ---- Email (Resend) ----
RESEND_API_KEY = os.getenv("RESEND_API_KEY", "")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Rastuci <ventas@rastuci.com>")
