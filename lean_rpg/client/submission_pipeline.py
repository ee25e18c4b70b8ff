"""
Submission Pipeline - Authenticated, self-healing JSON requests to the backend.

Per request:
1. Attach Bearer token, tenant id and a correlation id.
2. 401 -> coalesced token refresh, then one retry with the new token.
   Refresh failure clears tokens, signals logout and raises AuthError.
3. 429 -> wait Retry-After (default 1s) + fixed jitter, bounded retries,
   then RateLimitError.
4. Other non-2xx or envelope success=false -> ApiError with the server's
   message, or NetworkError when there is none.
5. Transport failure or non-JSON body -> NetworkError.
"""

import asyncio
import math
import uuid
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional

import httpx

from lean_rpg.config import Settings, get_settings
from lean_rpg.kernel.errors import ApiError, AuthError, NetworkError, RateLimitError
from lean_rpg.kernel.identity.token_store import TokenStore
from lean_rpg.logging_config import correlation_id_var, get_logger
from lean_rpg.schemas.auth import AuthTokens, RefreshTokenRequest
from lean_rpg.schemas.common import ApiEnvelope

logger = get_logger(__name__)

TENANT_HEADER = "X-Tenant-ID"
REQUEST_ID_HEADER = "X-Request-ID"


def parse_retry_after(value: Optional[str], default: float, maximum: Optional[float] = None) -> float:
    """
    Retry-After as delta-seconds or HTTP-date; falls back to default.

    Non-finite values count as unparseable. The result is capped at maximum
    when one is given.
    """
    delay = _retry_after_seconds(value)
    if delay is None:
        delay = default
    if maximum is not None:
        delay = min(delay, maximum)
    return delay


def _retry_after_seconds(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(0.0, seconds) if math.isfinite(seconds) else None
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class SubmissionPipeline:
    """
    The only boundary that turns transport failures into typed errors.

    Owns an httpx.AsyncClient; use as an async context manager or call aclose().
    """

    def __init__(
        self,
        token_store: TokenStore,
        settings: Optional[Settings] = None,
        *,
        base_url: Optional[str] = None,
        tenant_id: Optional[str] = None,
        max_rate_limit_retries: Optional[int] = None,
        default_retry_after: Optional[float] = None,
        retry_jitter: Optional[float] = None,
        max_retry_after: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.token_store = token_store
        self.tenant_id = tenant_id if tenant_id is not None else settings.tenant_id
        self.refresh_endpoint = settings.refresh_endpoint
        self.login_endpoint = settings.login_endpoint
        self.max_rate_limit_retries = (
            max_rate_limit_retries if max_rate_limit_retries is not None else settings.rate_limit_max_retries
        )
        self.default_retry_after = (
            default_retry_after if default_retry_after is not None else settings.rate_limit_default_retry_after
        )
        self.retry_jitter = retry_jitter if retry_jitter is not None else settings.rate_limit_jitter_seconds
        self.max_retry_after = (
            max_retry_after if max_retry_after is not None else settings.rate_limit_max_retry_after
        )
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=settings.http_timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "SubmissionPipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # Public API

    async def submit(self, endpoint: str, payload: Any) -> ApiEnvelope:
        """POST a payload and return the parsed envelope."""
        return await self.request("POST", endpoint, payload)

    async def get(self, endpoint: str) -> ApiEnvelope:
        return await self.request("GET", endpoint)

    async def post(self, endpoint: str, payload: Any = None) -> ApiEnvelope:
        return await self.request("POST", endpoint, payload)

    async def put(self, endpoint: str, payload: Any = None) -> ApiEnvelope:
        return await self.request("PUT", endpoint, payload)

    async def request(self, method: str, endpoint: str, payload: Any = None) -> ApiEnvelope:
        """
        Perform an authenticated request.

        Raises:
            AuthError: 401 and the token could not be refreshed
            RateLimitError: still 429 after max_rate_limit_retries retries
            NetworkError: no connectivity, unparseable body, or bare error status
            ApiError: server rejected the request with a message
        """
        cid = str(uuid.uuid4())
        token = correlation_id_var.set(cid)
        try:
            response = await self._send_with_recovery(method, endpoint, payload, cid)
            return self._parse(response, endpoint)
        finally:
            correlation_id_var.reset(token)

    # Internals

    def _headers(self, access_token: Optional[str], correlation_id: str) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            TENANT_HEADER: self.tenant_id,
            REQUEST_ID_HEADER: correlation_id,
        }
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        return headers

    def _is_refreshable(self, endpoint: str) -> bool:
        return endpoint not in (self.refresh_endpoint, self.login_endpoint)

    async def _send_once(
        self,
        method: str,
        endpoint: str,
        payload: Any,
        access_token: Optional[str],
        correlation_id: str,
    ) -> httpx.Response:
        try:
            return await self._client.request(
                method,
                endpoint,
                json=payload,
                headers=self._headers(access_token, correlation_id),
            )
        except httpx.TransportError as e:
            logger.warning("Request failed: %s %s: %s", method, endpoint, e)
            raise NetworkError(f"Network error calling {endpoint}: {e}") from e

    async def _send_with_recovery(
        self,
        method: str,
        endpoint: str,
        payload: Any,
        correlation_id: str,
    ) -> httpx.Response:
        refreshed = False
        rate_limit_retries = 0

        if (
            self._is_refreshable(endpoint)
            and self.token_store.refresh_token
            and self.token_store.access_token_expiring()
        ):
            await self.token_store.refresh(self.token_store.access_token, self._refresh_access_token)
            refreshed = True

        while True:
            access_token = self.token_store.access_token
            response = await self._send_once(method, endpoint, payload, access_token, correlation_id)

            if response.status_code == 401 and self._is_refreshable(endpoint):
                if refreshed:
                    # Freshly issued token rejected; nothing left to try
                    self.token_store.clear()
                    raise AuthError(
                        self._error_message(response) or "Unauthorized after token refresh",
                        status_code=401,
                    )
                logger.info("401 from %s; refreshing access token", endpoint)
                await self.token_store.refresh(access_token, self._refresh_access_token)
                refreshed = True
                continue

            if response.status_code == 429:
                delay = parse_retry_after(
                    response.headers.get("Retry-After"), self.default_retry_after, self.max_retry_after
                )
                if rate_limit_retries >= self.max_rate_limit_retries:
                    raise RateLimitError(
                        self._error_message(response) or "Rate limited; try again later",
                        retry_after=delay,
                    )
                rate_limit_retries += 1
                wait = delay + self.retry_jitter
                logger.warning(
                    "429 from %s; retrying in %.2fs (%d/%d)",
                    endpoint, wait, rate_limit_retries, self.max_rate_limit_retries,
                )
                await asyncio.sleep(wait)
                continue

            return response

    async def _refresh_access_token(self, refresh_token: str) -> AuthTokens:
        """Exchange a refresh token. Called only by TokenStore.refresh()."""
        body = RefreshTokenRequest(refresh_token=refresh_token).to_wire()
        response = await self._send_once("POST", self.refresh_endpoint, body, None, str(uuid.uuid4()))
        envelope = self._parse(response, self.refresh_endpoint)
        if not isinstance(envelope.data, dict):
            raise AuthError("Invalid refresh response", status_code=response.status_code)
        try:
            return AuthTokens.model_validate(envelope.data)
        except ValueError as e:
            raise AuthError("Invalid refresh response", status_code=response.status_code) from e

    @staticmethod
    def _decode(response: httpx.Response, endpoint: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(
                f"Invalid JSON from {endpoint}",
                status_code=response.status_code,
            ) from e

    def _error_message(self, response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            message = body.get("error") or body.get("message") or body.get("detail")
            return str(message) if message else None
        return None

    def _parse(self, response: httpx.Response, endpoint: str) -> ApiEnvelope:
        if not response.is_success:
            message = self._error_message(response)
            code = None
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("code") is not None:
                    code = str(body["code"])
            except ValueError:
                pass
            if response.status_code == 401:
                raise AuthError(message or "Unauthorized", status_code=401, code=code)
            if message:
                raise ApiError(message, status_code=response.status_code, code=code)
            raise NetworkError(
                f"{endpoint} returned {response.status_code}",
                status_code=response.status_code,
            )

        body = self._decode(response, endpoint)
        try:
            envelope = ApiEnvelope.from_body(body)
        except ValueError as e:
            raise NetworkError(
                f"Malformed envelope from {endpoint}",
                status_code=response.status_code,
            ) from e
        if not envelope.success:
            raise ApiError(
                envelope.error or "API request failed",
                status_code=envelope.status_code or response.status_code,
                code=envelope.code,
            )
        return envelope
