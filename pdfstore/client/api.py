import logging
from typing import Any, Dict, Optional

import requests

from pdfstore.client.errors import (
    CheckoutError,
    ConfigurationError,
    NoEntitlementError,
    TransientError,
    ValidationError,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15


class PaymentsApi:
    """
    Thin HTTP client for the /payments endpoints.

    `http` is anything with requests-style get/post (a requests.Session in
    production, a FastAPI TestClient in tests).
    """

    def __init__(self, base_url: str = "", http=None, timeout: int = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.http = http or requests.Session()
        self.timeout = timeout

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _headers(self, token: Optional[str]) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token}"} if token else {}

    def _request(self, method: str, path: str, token: Optional[str] = None, **kwargs):
        try:
            response = getattr(self.http, method)(
                self.url(path),
                headers=self._headers(token),
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            logger.error(f"{method.upper()} {path} failed: {e}")
            raise TransientError() from e

        if response.status_code >= 400:
            self._raise_for(response, path)

        try:
            return response.json()
        except ValueError as e:
            # e.g. an HTML page from a proxy
            logger.error(f"{method.upper()} {path} returned a non-JSON body")
            raise TransientError() from e

    def _raise_for(self, response, path: str):
        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = None
        if not isinstance(detail, str):
            detail = None

        status = response.status_code
        logger.warning(f"{path} -> {status}: {detail}")

        if status >= 500 or status == 409:
            if status == 503:
                raise ConfigurationError(detail)
            raise TransientError(detail)
        if status == 422:
            raise ValidationError(detail or "Invalid purchase details")
        if status in (403, 404, 410) and path.startswith("/payments/download"):
            raise NoEntitlementError(detail)
        raise CheckoutError(detail)

    def get_settings(self) -> Optional[Dict[str, Any]]:
        return self._request("get", "/payments/settings").get("settings")

    def create_order(self, payload: Dict[str, Any], token: Optional[str] = None) -> Dict[str, Any]:
        return self._request("post", "/payments/create-order", token=token, json=payload)

    def verify_payment(self, payload: Dict[str, Any], token: Optional[str] = None) -> Dict[str, Any]:
        return self._request("post", "/payments/verify-payment", token=token, json=payload)

    def owned_order_id(self, item_id: int, token: str) -> Optional[str]:
        data = self._request("get", f"/payments/owned/{item_id}", token=token)
        return data.get("order_id") if data.get("owned") else None

    def download_link(self, order_id: str, token: str) -> Dict[str, Any]:
        return self._request(
            "get", "/payments/download-link", token=token, params={"order_id": order_id}
        )

    def download_url(self, order_id: str) -> str:
        """Server-mediated download address for a guest order."""
        return self.url(f"/payments/download?order_id={order_id}")
