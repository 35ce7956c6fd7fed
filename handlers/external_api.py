# =============================================================================
# External API Client
# =============================================================================
# Outbound HTTP client authenticated with an OAuth2 bearer token.
#
# Token flow:
#   1. Read {"userName": ..., "password": ...} from Secrets Manager
#   2. POST grant_type=client_credentials (HTTP Basic) to TOKEN_ENDPOINT_URL
#   3. Cache access_token for TOKEN_CACHE_TTL_SECONDS
# =============================================================================

import json
import logging
import threading
import time
from typing import Any, Optional

import requests
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class ExternalApiError(Exception):
    """Outbound call failed (network, auth or non-2xx status)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TokenProvider:
    """Fetches and caches bearer tokens."""

    def __init__(self, secrets_client: Any, secret_name: str, token_endpoint_url: str,
                 ttl_seconds: int = 3300, timeout: int = 30, session: requests.Session = None):
        self.secrets_client = secrets_client
        self.secret_name = secret_name
        self.token_endpoint_url = token_endpoint_url
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self.session = session or requests.Session()
        self._token: Optional[str] = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def get_token(self) -> str:
        with self._lock:
            if self._token and time.monotonic() < self._expires_at:
                logger.debug("Bearer token served from cache")
                return self._token

            started = time.monotonic()
            token = self._fetch_token(self._read_credentials())
            self._token = token
            self._expires_at = time.monotonic() + self.ttl_seconds
            logger.info(f"Bearer token fetched and cached (fetch time: {int((time.monotonic() - started) * 1000)} ms)")
            return token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None
            self._expires_at = 0.0

    def _read_credentials(self) -> dict:
        logger.debug(f"Fetching secret from Secrets Manager: {self.secret_name}")
        try:
            response = self.secrets_client.get_secret_value(SecretId=self.secret_name)
        except ClientError as e:
            raise ExternalApiError(f"Failed to read token secret: {e}")

        raw = response.get("SecretString")
        if raw is None and response.get("SecretBinary") is not None:
            raw = response["SecretBinary"].decode("utf-8")
        try:
            credentials = json.loads(raw or "")
        except ValueError as e:
            raise ExternalApiError(f"Token secret is not valid JSON: {e}")

        if not credentials.get("userName") or not credentials.get("password"):
            raise ExternalApiError("Token secret must contain userName and password")
        return credentials

    def _fetch_token(self, credentials: dict) -> str:
        try:
            response = self.session.post(
                self.token_endpoint_url,
                data={"grant_type": "client_credentials"},
                auth=(credentials["userName"], credentials["password"]),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ExternalApiError(f"Token request failed: {e}")

        if not response.ok:
            raise ExternalApiError(f"Token endpoint returned status: {response.status_code}",
                                   status_code=response.status_code)
        try:
            token = response.json().get("access_token")
        except ValueError as e:
            raise ExternalApiError(f"Token response is not valid JSON: {e}")
        if not token:
            raise ExternalApiError("Token response has no access_token")
        return token


class ExternalApiClient:
    """Calls the configured external URL with a bearer token."""

    def __init__(self, url: str, token_provider: TokenProvider, timeout: int = 30,
                 session: requests.Session = None):
        self.url = url
        self.token_provider = token_provider
        self.timeout = timeout
        self.session = session or requests.Session()

    def call(self, method: str = "GET", **kwargs) -> str:
        """Return the response body; raise ExternalApiError on any failure."""
        logger.info(f"Initiating external API call to: {self.url}")
        token = self.token_provider.get_token()

        headers = {
            "Content-Type": "application/json",
            **kwargs.pop("headers", {}),
            "Authorization": f"Bearer {token}",
        }
        try:
            response = self.session.request(method, self.url, headers=headers,
                                            timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Network error calling external API: {e}")
            raise ExternalApiError(f"Network error during API call: {e}")

        if response.status_code == 401:
            self.token_provider.invalidate()
        if not 200 <= response.status_code < 300:
            logger.error(f"External API error: status={response.status_code}, body={response.text[:200]}")
            raise ExternalApiError(f"API returned status: {response.status_code}",
                                   status_code=response.status_code)

        logger.info(f"External API call successful: status={response.status_code}")
        return response.text
