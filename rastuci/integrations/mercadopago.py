"""MercadoPago REST client (Checkout Pro preferences, payments, webhooks).

Docs: https://www.mercadopago.com.ar/developers/es/reference
"""
import hmac
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

import requests

from rastuci import config
from rastuci.utils.logs import get_logger
from rastuci.utils.security import hmac_sha256_hex
from rastuci.utils.tokens import make_reference

logger = get_logger(__name__)

API_URL = "https://api.mercadopago.com"
PREFERENCE_TTL = timedelta(minutes=30)
STATEMENT_DESCRIPTOR = "RASTUCI"
MAX_INSTALLMENTS = 12


class MercadoPagoError(Exception):
    def __init__(self, code: str, message: str, details: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


def generate_idempotency_key() -> str:
    return make_reference("rastuci")


def _public_notification_url(url: Optional[str]) -> Optional[str]:
    # MercadoPago rejects localhost callbacks
    if not url:
        return None
    parsed = urlparse(url)
    if not parsed.scheme or not parsed.hostname:
        return None
    if parsed.hostname in ("localhost", "127.0.0.1"):
        return None
    return url


def _parse_signature_header(x_signature: str) -> Dict[str, str]:
    parts = {}
    for chunk in (x_signature or "").split(","):
        key, sep, value = chunk.strip().partition("=")
        if sep and key in ("ts", "v1"):
            parts[key] = value.strip()
    return parts


def verify_webhook_signature(x_signature: str, x_request_id: str, data_id: str, secret: Optional[str]) -> bool:
    """Check the ``x-signature`` header MercadoPago sends with each notification.

    The header looks like ``ts=1704908010,v1=618c8534...``; ``v1`` is the
    HMAC-SHA256 (hex) of ``id:<data.id>;request-id:<x-request-id>;ts:<ts>;``.
    Without a configured secret every notification is rejected.
    """
    if not secret:
        logger.warning("MP_WEBHOOK_SECRET not configured - rejecting webhook")
        return False
    parts = _parse_signature_header(x_signature)
    if not parts.get("ts") or not parts.get("v1"):
        return False
    manifest = "id:{0};request-id:{1};ts:{2};".format(data_id, x_request_id, parts["ts"])
    expected = hmac_sha256_hex(secret, manifest)
    return hmac.compare_digest(parts["v1"].encode(), expected.encode())


class MercadoPagoClient:
    def __init__(self, access_token: str, session: Optional[requests.Session] = None,
                 timeout: float = None, sleep=time.sleep):
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout or config.HTTP_TIMEOUT
        self._sleep = sleep

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "Authorization": "Bearer {0}".format(self.access_token),
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    def create_preference(
        self,
        items: List[dict],
        payer: Optional[dict] = None,
        external_reference: Optional[str] = None,
        metadata: Optional[dict] = None,
        back_urls: Optional[dict] = None,
        idempotency_key: Optional[str] = None,
    ) -> dict:
        now = datetime.now(timezone.utc)
        base_url = config.APP_URL.rstrip("/")
        body = {
            "items": items,
            "back_urls": {
                "success": "{0}/checkout/success".format(base_url),
                "failure": "{0}/checkout/failure".format(base_url),
                "pending": "{0}/checkout/pending".format(base_url),
                **(back_urls or {}),
            },
            "auto_return": "approved",
            "binary_mode": False,
            "expires": True,
            "expiration_date_from": now.isoformat(),
            "expiration_date_to": (now + PREFERENCE_TTL).isoformat(),
            "statement_descriptor": STATEMENT_DESCRIPTOR,
            "payment_methods": {
                "excluded_payment_methods": [],
                "excluded_payment_types": [],
                "installments": MAX_INSTALLMENTS,
                "default_installments": 1,
            },
        }
        if payer:
            body["payer"] = payer
        if external_reference:
            body["external_reference"] = external_reference
        if metadata:
            body["metadata"] = metadata
        notification_url = _public_notification_url(config.MP_WEBHOOK_URL)
        if notification_url:
            body["notification_url"] = notification_url

        try:
            resp = self.session.post(
                API_URL + "/checkout/preferences",
                json=body,
                headers=self._headers(idempotency_key or generate_idempotency_key()),
                timeout=self.timeout,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            details = _response_details(e)
            logger.error("Preference creation failed: %s", e, extra={"details": details})
            raise MercadoPagoError("PREFERENCE_ERROR", "Preference creation failed: {0}".format(e), details)
        return resp.json()

    def get_payment(self, payment_id: str, retries: int = 3) -> dict:
        last_error = None
        for attempt in range(1, retries + 1):
            try:
                resp = self.session.get(
                    "{0}/v1/payments/{1}".format(API_URL, payment_id),
                    headers=self._headers(),
                    timeout=self.timeout,
                )
                resp.raise_for_status()
                return resp.json()
            except requests.RequestException as e:
                last_error = e
                logger.warning("Error getting payment %s (attempt %d): %s", payment_id, attempt, e)
                if attempt < retries:
                    self._sleep(attempt)
        raise MercadoPagoError(
            "PAYMENT_FETCH_ERROR",
            "Payment retrieval failed after {0} attempts: {1}".format(retries, last_error),
            _response_details(last_error),
        )


def _response_details(error: Optional[Exception]) -> Any:
    resp = getattr(error, "response", None)
    if resp is None:
        return None
    try:
        return resp.json()
    except ValueError:
        return resp.text


def get_client() -> MercadoPagoClient:
    if not config.MP_ACCESS_TOKEN:
        raise MercadoPagoError("CONFIG_ERROR", "MP_ACCESS_TOKEN is not configured")
    return MercadoPagoClient(config.MP_ACCESS_TOKEN)
