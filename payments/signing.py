"""Keyed-parameter request signing for the affiliate/catalog query API.

The signature is an upper-case hex HMAC-SHA256 over every parameter, sorted
by key, written as ``key`` immediately followed by ``value``. It is sent as
one more parameter, ``sign``.
"""

import hashlib
import hmac
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import httpx
from common.exceptions import GatewayError
from django.conf import settings

logger = logging.getLogger("storefront.payments")

SIGN_PARAM = "sign"
SIGN_METHOD = "sha256"


def signing_string(params: Mapping[str, Any]) -> str:
    return "".join(f"{key}{params[key]}" for key in sorted(params) if key != SIGN_PARAM and params[key] is not None)


def sign_parameters(params: Mapping[str, Any], secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), signing_string(params).encode("utf-8"), hashlib.sha256)
    return digest.hexdigest().upper()


def signed_parameters(
    params: Mapping[str, Any],
    secret: str,
    *,
    app_key: str,
    timestamp: Optional[datetime] = None,
) -> dict[str, str]:
    """Add app key, millisecond timestamp, sign method and the signature."""

    moment = timestamp or datetime.now(timezone.utc)
    signed = {key: str(value) for key, value in params.items() if value is not None}
    signed.update(
        {
            "app_key": app_key,
            "timestamp": str(int(moment.timestamp() * 1000)),
            "sign_method": SIGN_METHOD,
        }
    )
    signed[SIGN_PARAM] = sign_parameters(signed, secret)
    return signed


def verify_signature(params: Mapping[str, Any], secret: str) -> bool:
    expected = sign_parameters(params, secret)
    return hmac.compare_digest(expected, str(params.get(SIGN_PARAM, "")))


class SignedQueryClient:
    """Signed GET client for catalog/affiliate lookups."""

    def __init__(
        self,
        *,
        base_url: str,
        app_key: str,
        secret: str,
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.app_key = app_key
        self._secret = secret
        self._client = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_settings(cls, **kwargs) -> "SignedQueryClient":
        return cls(
            base_url=settings.AFFILIATE_API_URL,
            app_key=settings.AFFILIATE_APP_KEY,
            secret=settings.AFFILIATE_APP_SECRET,
            **kwargs,
        )

    def query(self, method: str, **params) -> dict:
        signed = signed_parameters({"method": method, **params}, self._secret, app_key=self.app_key)
        try:
            response = self._client.get("", params=signed)
        except httpx.HTTPError as exc:
            logger.warning(
                "payments.query_failed",
                extra={"event": "payments.query_failed", "api_method": method, "error": str(exc)},
            )
            raise GatewayError(f"Query {method} failed: {exc}") from exc

        logger.info(
            "payments.query",
            extra={
                "event": "payments.query",
                "api_method": method,
                "status_code": response.status_code,
                "body": response.text[:500],
            },
        )
        if response.status_code >= 400:
            raise GatewayError(f"Query {method} answered HTTP {response.status_code}")
        try:
            return response.json()
        except ValueError as exc:
            raise GatewayError(f"Query {method} returned invalid JSON") from exc

    def close(self) -> None:
        self._client.close()


# EOF
