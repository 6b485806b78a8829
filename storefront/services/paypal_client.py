# storefront/services/paypal_client.py
import time
from typing import Any, Dict

import requests

from storefront.utils.retry import http_retry
from storefront.utils.settings import PAYPAL_BASE_URL, PAYPAL_CLIENT_ID, PAYPAL_CLIENT_SECRET
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class PayPalClient:
    """Thin REST client for the PayPal Orders v2 API (client-credentials auth)."""

    def __init__(
        self,
        base_url: str | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: int = 10,
        session: requests.Session | None = None,
    ):
        self.base_url = (base_url or PAYPAL_BASE_URL).rstrip("/")
        self.client_id = client_id if client_id is not None else PAYPAL_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else PAYPAL_CLIENT_SECRET
        self.timeout = timeout
        self.http = session or requests.Session()
        self._token: str | None = None
        self._token_expires = 0.0

    @http_retry()
    def _fetch_token(self) -> str:
        url = f"{self.base_url}/v1/oauth2/token"
        logger.info(f"PayPalClient POST {url}")
        resp = self.http.post(
            url,
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
            timeout=self.timeout,
        )
        resp.raise_for_status()
        body = resp.json()
        #refresh a minute early
        self._token_expires = time.monotonic() + int(body.get("expires_in", 0)) - 60
        return body["access_token"]

    def _headers(self, request_id: str | None = None) -> Dict[str, str]:
        if not self._token or time.monotonic() >= self._token_expires:
            self._token = self._fetch_token()
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if request_id:
            #processor-side idempotency for retried POSTs
            headers["PayPal-Request-Id"] = request_id
        return headers

    @http_retry()
    def create_order(self, payload: Dict[str, Any], request_id: str | None = None) -> Dict[str, Any]:
        url = f"{self.base_url}/v2/checkout/orders"
        logger.info(f"PayPalClient POST {url}")
        resp = self.http.post(url, json=payload, headers=self._headers(request_id), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    @http_retry()
    def capture_order(self, order_id: str, request_id: str | None = None) -> Dict[str, Any]:
        url = f"{self.base_url}/v2/checkout/orders/{order_id}/capture"
        logger.info(f"PayPalClient POST {url}")
        resp = self.http.post(url, json={}, headers=self._headers(request_id), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    @http_retry()
    def get_order(self, order_id: str) -> Dict[str, Any]:
        url = f"{self.base_url}/v2/checkout/orders/{order_id}"
        logger.info(f"PayPalClient GET {url}")
        resp = self.http.get(url, headers=self._headers(), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    @http_retry()
    def verify_webhook_signature(self, headers: Dict[str, str], event: Dict[str, Any], webhook_id: str) -> bool:
        url = f"{self.base_url}/v1/notifications/verify-webhook-signature"
        h = {k.lower(): v for k, v in headers.items()}
        payload = {
            "auth_algo": h.get("paypal-auth-algo"),
            "cert_url": h.get("paypal-cert-url"),
            "transmission_id": h.get("paypal-transmission-id"),
            "transmission_sig": h.get("paypal-transmission-sig"),
            "transmission_time": h.get("paypal-transmission-time"),
            "webhook_id": webhook_id,
            "webhook_event": event,
        }
        logger.info(f"PayPalClient POST {url}")
        resp = self.http.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        resp.raise_for_status()
        return resp.json().get("verification_status") == "SUCCESS"
