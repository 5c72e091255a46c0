"""HTTP client for the payment processor's XML API.

Calls authenticate with the account e-mail and token as query parameters.
Each call is logged with method, URL (token masked), status and the start of
the response body. Request payloads are never logged: they carry card tokens
and buyer documents.
"""

import logging
from typing import Optional, Union

import httpx
from common.exceptions import GatewayError
from django.conf import settings

from .markup import ChargeRequest, TransactionResult, parse_errors, parse_session, parse_transaction, to_markup

logger = logging.getLogger("storefront.payments")

XML_CONTENT_TYPE = "application/xml;charset=ISO-8859-1"
LOGGED_BODY_CHARS = 500


def mask_url(url: Union[httpx.URL, str]) -> str:
    url = httpx.URL(str(url))
    if "token" in url.params:
        url = url.copy_set_param("token", "****")
    return str(url)


class GatewayClient:
    def __init__(
        self,
        *,
        base_url: str,
        email: str,
        token: str,
        timeout: float = 15.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.email = email
        self._token = token
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout,
            transport=transport,
            headers={"Accept": XML_CONTENT_TYPE},
        )

    @classmethod
    def from_settings(cls, **kwargs) -> "GatewayClient":
        return cls(
            base_url=settings.PAGSEGURO_BASE_URL,
            email=settings.PAGSEGURO_EMAIL,
            token=settings.PAGSEGURO_TOKEN,
            timeout=float(getattr(settings, "PAGSEGURO_TIMEOUT_SECONDS", 15)),
            **kwargs,
        )

    def _request(self, method: str, path: str, *, content: Optional[bytes] = None) -> bytes:
        params = {"email": self.email, "token": self._token}
        headers = {"Content-Type": XML_CONTENT_TYPE} if content is not None else None
        try:
            response = self._client.request(method, path, params=params, content=content, headers=headers)
        except httpx.HTTPError as exc:
            logger.warning(
                "payments.gateway_unreachable",
                extra={"event": "payments.gateway_unreachable", "method": method, "path": path, "error": str(exc)},
            )
            raise GatewayError(f"Payment gateway unreachable: {exc.__class__.__name__}") from exc

        logger.info(
            "payments.gateway_call",
            extra={
                "event": "payments.gateway_call",
                "method": method,
                "url": mask_url(response.request.url),
                "status_code": response.status_code,
                "body": response.text[:LOGGED_BODY_CHARS],
            },
        )
        if response.status_code >= 400:
            messages = parse_errors(response.content)
            detail = "; ".join(messages) if messages else f"HTTP {response.status_code}"
            raise GatewayError(f"Payment gateway rejected the request: {detail}")
        return response.content

    def create_session(self) -> str:
        """Session id the storefront needs to tokenize cards in the browser."""

        return parse_session(self._request("POST", "/v2/sessions"))

    def create_transaction(self, payload: ChargeRequest) -> TransactionResult:
        body = to_markup(payload, root="payment").encode("iso-8859-1", errors="xmlcharrefreplace")
        return parse_transaction(self._request("POST", "/v2/transactions", content=body))

    def get_notification(self, code: str) -> TransactionResult:
        return parse_transaction(self._request("GET", f"/v3/transactions/notifications/{code}"))

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


# EOF
