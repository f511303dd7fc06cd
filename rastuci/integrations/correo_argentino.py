"""Client for the MiCorreo API of Correo Argentino.

Covers token auth, customer validation, rates, agencies, shipment import
and tracking. Every failure is raised as ``CorreoArgentinoError``.
"""
import copy
import hmac
import json
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

import requests

from rastuci import config
from rastuci.utils.logs import get_logger
from rastuci.utils.security import hmac_sha256_hex

logger = get_logger(__name__)

URL_PROD = "https://api.correoargentino.com.ar/micorreo/v1"
URL_TEST = "https://apitest.correoargentino.com.ar/micorreo/v1"

TOKEN_EXPIRES_FORMAT = "%Y-%m-%d %H:%M:%S"
DEFAULT_TOKEN_TTL = timedelta(hours=12)

DELIVERY_HOME = "D"     # a domicilio
DELIVERY_AGENCY = "S"   # a sucursal
DEFAULT_PRODUCT_TYPE = "CP"

_ADDRESS_REQUIRED = ("streetName", "streetNumber", "city", "provinceCode", "postalCode")


class CorreoArgentinoError(Exception):
    def __init__(self, code: str, message: str, details: Any = None, status: Optional[int] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details
        self.status = status


def verify_webhook_signature(signature: str, payload, secret: Optional[str]) -> bool:
    """HMAC-SHA256 (hex) of the raw request body. No secret, no entry."""
    if not secret or not signature:
        return False
    return hmac.compare_digest(signature.strip().encode(), hmac_sha256_hex(secret, payload).encode())


def _parse_expires(value: Optional[str], now: datetime) -> datetime:
    if value:
        try:
            return datetime.strptime(value, TOKEN_EXPIRES_FORMAT)
        except (TypeError, ValueError):
            logger.warning("Unexpected token expiry format: %r", value)
    return now + DEFAULT_TOKEN_TTL


def _error_details(error: requests.RequestException):
    resp = getattr(error, "response", None)
    if resp is None:
        return str(error), None
    try:
        return resp.json(), resp.status_code
    except ValueError:
        return resp.text, resp.status_code


class CorreoArgentinoClient:
    def __init__(
        self,
        username: str,
        password: str,
        customer_id: Optional[str] = None,
        production: bool = False,
        session: Optional[requests.Session] = None,
        timeout: float = None,
        clock=datetime.now,
    ):
        self.username = username
        self.password = password
        self.customer_id = customer_id
        self.base_url = URL_PROD if production else URL_TEST
        self.session = session or requests.Session()
        self.timeout = timeout or config.HTTP_TIMEOUT
        self._clock = clock
        self.token: Optional[str] = None
        self.token_expires: Optional[datetime] = None

    # ---------------- auth ----------------
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.token_expires is not None and self.token_expires > self._clock()

    def authenticate(self) -> str:
        if self.is_authenticated():
            return self.token
        if not self.username or not self.password:
            raise CorreoArgentinoError("CONFIG_ERROR", "Credenciales de Correo Argentino no configuradas")

        logger.info("Authenticating against MiCorreo")
        try:
            resp = self.session.post(
                self.base_url + "/token",
                json={},
                auth=(self.username, self.password),
                timeout=self.timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.RequestException as e:
            details, status = _error_details(e)
            logger.error("MiCorreo authentication failed: %s", e, extra={"details": details})
            raise CorreoArgentinoError("AUTH_FAILED", "No se pudo autenticar con Correo Argentino", details, status)

        token = (data or {}).get("token")
        if not token:
            raise CorreoArgentinoError("AUTH_FAILED", "No token received from API", data)

        self.token = token
        self.token_expires = _parse_expires(data.get("expires"), self._clock())
        logger.info("MiCorreo authentication successful")
        return self.token

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": "Bearer {0}".format(self.authenticate())}

    def _request(self, method: str, path: str, error_code: str, error_message: str, **kwargs):
        headers = kwargs.pop("headers", None) or self._auth_headers()
        try:
            resp = self.session.request(method, self.base_url + path, headers=headers, timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.RequestException as e:
            details, status = _error_details(e)
            logger.error("MiCorreo %s %s failed: %s", method, path, str(e)[:200])
            raise CorreoArgentinoError(error_code, error_message, details, status)
        # the API sometimes answers JSON with a text/plain content type
        try:
            return resp.json()
        except ValueError:
            text = resp.text
            try:
                return json.loads(text)
            except ValueError:
                logger.warning("MiCorreo response was not JSON", extra={"body": text[:200]})
                return text

    def _require_customer_id(self) -> str:
        if not self.customer_id:
            raise CorreoArgentinoError("CONFIG_ERROR", "CORREO_ARGENTINO_CUSTOMER_ID not configured")
        return self.customer_id

    # ---------------- users ----------------
    def validate_user(self, email: str, password: str) -> str:
        """MiCorreo customer id for an account; works without a bearer token."""
        data = self._request(
            "POST", "/users/validate", "USER_VALIDATION_FAILED", "Error validando usuario",
            json={"email": email, "password": password},
            headers={"Content-Type": "application/json"},
        )
        customer_id = data.get("customerId") if isinstance(data, dict) else None
        if not customer_id:
            raise CorreoArgentinoError("USER_VALIDATION_FAILED", "Usuario de Correo Argentino inválido", data)
        return str(customer_id)

    # ---------------- rates / agencies ----------------
    def get_rates(self, postal_code_origin: str, postal_code_destination: str,
                  dimensions: dict, delivered_type: Optional[str] = None) -> dict:
        body = {
            "customerId": self._require_customer_id(),
            "postalCodeOrigin": postal_code_origin,
            "postalCodeDestination": postal_code_destination,
            "dimensions": {k: int(round(v)) for k, v in dimensions.items()},
        }
        if delivered_type:
            body["deliveredType"] = delivered_type
        return self._request("POST", "/rates", "RATES_ERROR", "Error cotizando envío", json=body)

    def get_agencies(self, province_code: str, services: Optional[str] = None) -> list:
        params = {"customerId": self._require_customer_id(), "provinceCode": province_code}
        if services:
            params["services"] = services
        return self._request("GET", "/agencies", "AGENCIES_ERROR", "Error obteniendo sucursales", params=params)

    # ---------------- shipping ----------------
    @staticmethod
    def prepare_shipment(params: dict) -> dict:
        """Validate an import payload and normalize it to what the API accepts."""
        body = copy.deepcopy(params)
        shipping = body.get("shipping") or {}
        delivery_type = shipping.get("deliveryType")

        if delivery_type == DELIVERY_HOME:
            address = shipping.get("address") or {}
            if not all(address.get(k) for k in _ADDRESS_REQUIRED):
                raise CorreoArgentinoError("MISSING_ADDRESS", "Envío a domicilio requiere dirección completa")
            # floor / apartment are limited to 3 chars by the API
            for key in ("floor", "apartment"):
                if address.get(key):
                    address[key] = str(address[key])[:3]
        elif delivery_type == DELIVERY_AGENCY:
            if not shipping.get("agency"):
                raise CorreoArgentinoError("MISSING_AGENCY", "Envío a sucursal requiere código de sucursal")

        for key in ("weight", "height", "length", "width"):
            if shipping.get(key) is not None:
                shipping[key] = int(round(float(shipping[key])))
        shipping.pop("originAgency", None)
        body["shipping"] = shipping
        return body

    def import_shipment(self, params: dict) -> dict:
        logger.info(
            "Importing shipment",
            extra={"ext_order_id": params.get("extOrderId"),
                   "delivery_type": (params.get("shipping") or {}).get("deliveryType")},
        )
        body = self.prepare_shipment(params)
        try:
            return self._request("POST", "/shipping/import", "IMPORT_ERROR", "Error importando envío", json=body)
        except CorreoArgentinoError:
            logger.error("Import shipment payload: %s", json.dumps(body)[:1000])
            raise

    def get_tracking(self, shipping_id: str):
        return self._request(
            "GET", "/shipping/tracking", "TRACKING_ERROR", "Error obteniendo tracking",
            params={"shippingId": shipping_id},
        )


_client: Optional[CorreoArgentinoClient] = None


def get_client() -> CorreoArgentinoClient:
    """Shared client so the bearer token is reused between requests."""
    global _client
    if _client is None:
        _client = CorreoArgentinoClient(
            username=config.CORREO_ARGENTINO_USERNAME,
            password=config.CORREO_ARGENTINO_PASSWORD,
            customer_id=config.CORREO_ARGENTINO_CUSTOMER_ID,
            production=config.CORREO_ARGENTINO_PRODUCTION,
        )
    return _client
