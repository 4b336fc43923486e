"""Base HTTP client with retry and authentication handling.

Provides common functionality for clients of the claims API:
- HTTP client with connection pooling
- Exponential backoff retry logic
- Authentication header injection
"""

from __future__ import annotations

import base64
import logging
import time
from typing import Any, Callable

import httpx

from ..config import ClientSettings
from ..errors import ClaimsAPIError
from ..utils import sanitize_error_message

logger = logging.getLogger(__name__)


class RateLimitError(ClaimsAPIError):
    """Raised when the claims API rejects a request with 429."""

    def __init__(self, message: str, retry_after: int | None = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class BaseAPIClient:
    """Base class for claims API clients.

    Provides:
    - HTTP client with configurable timeout and pooling
    - Exponential backoff retry on server errors, timeouts and refused connections
    - Authentication header injection (api_key, basic, bearer)
    """

    def __init__(
        self,
        settings: ClientSettings | None = None,
        name: str = "claims-api",
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the client.

        Args:
            settings: Connection settings; defaults to the environment
            name: Human-readable name used in log lines
            transport: Optional httpx transport (tests use httpx.MockTransport)
            sleep: Sleep function used between retries
        """
        self.settings = settings or ClientSettings.from_env()
        self.name = name
        self._transport = transport
        self._sleep = sleep
        self._client: httpx.Client | None = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def connect(self) -> None:
        """Create the underlying HTTP client."""
        if self._client is not None:
            return

        if not self.settings.base_url:
            raise ValueError("base_url is required")

        timeout = httpx.Timeout(self.settings.timeout, connect=10.0)
        self._client = httpx.Client(
            base_url=self.settings.base_url,
            timeout=timeout,
            verify=self.settings.verify_ssl,
            follow_redirects=True,
            headers={"Content-Type": "application/json", **self.settings.headers},
            transport=self._transport,
        )
        self._log("info", f"Connected to API: {self.settings.base_url}")

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> BaseAPIClient:
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _get_auth_headers(self) -> dict[str, str]:
        """Get authentication headers based on auth_type.

        Returns:
            Dictionary of headers to add to requests
        """
        auth_type = self.settings.auth_type
        headers: dict[str, str] = {}

        if auth_type == "api_key":
            if self.settings.api_key:
                headers[self.settings.api_key_header] = self.settings.api_key

        elif auth_type == "basic":
            username = self.settings.username or ""
            password = self.settings.password or ""
            credentials = base64.b64encode(f"{username}:{password}".encode()).decode()
            headers["Authorization"] = f"Basic {credentials}"

        elif auth_type == "bearer":
            if self.settings.bearer_token:
                headers["Authorization"] = f"Bearer {self.settings.bearer_token}"

        return headers

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        allow_client_errors: bool = False,
    ) -> httpx.Response:
        """Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint path
            params: Query parameters
            json_data: JSON request body
            headers: Additional headers
            allow_client_errors: Return 4xx responses instead of raising

        Returns:
            HTTP response

        Raises:
            ClaimsAPIError: If the request fails after retries, or on a 4xx
                when client errors are not allowed
            RateLimitError: If the API answers 429
        """
        if self._client is None:
            self.connect()

        request_headers = self._get_auth_headers()
        if headers:
            request_headers.update(headers)

        max_retries = self.settings.max_retries
        last_error: Exception | None = None

        for attempt in range(max_retries + 1):
            try:
                response = self._client.request(
                    method=method,
                    url=endpoint,
                    params=params,
                    json=json_data,
                    headers=request_headers,
                )

                if response.status_code == 429:
                    retry_after = response.headers.get("Retry-After")
                    retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
                    raise RateLimitError(
                        f"Rate limit exceeded on {endpoint}",
                        retry_after=retry_seconds,
                    )

                # Server errors are retried
                if response.status_code >= 500:
                    raise ClaimsAPIError(
                        f"Server error: {response.status_code}",
                        status_code=response.status_code,
                    )

                if response.status_code >= 400 and not allow_client_errors:
                    raise ClaimsAPIError(
                        f"Client error: {response.status_code} - {response.text[:200]}",
                        status_code=response.status_code,
                    )

                return response

            except RateLimitError:
                raise
            except ClaimsAPIError as e:
                last_error = e
                if e.status_code and e.status_code < 500:
                    raise  # Don't retry client errors

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_error = e

            # Other transport errors are not retried
            except httpx.HTTPError as e:
                detail = sanitize_error_message(str(e)) or type(e).__name__
                raise ClaimsAPIError(f"Request to {endpoint} failed: {detail}") from e

            # Exponential backoff
            if attempt < max_retries:
                delay = self.settings.retry_delay * (2**attempt)
                self._log(
                    "warning",
                    f"Request failed, retrying in {delay}s: {sanitize_error_message(str(last_error))}",
                )
                self._sleep(delay)

        status_code = getattr(last_error, "status_code", None)
        raise ClaimsAPIError(
            f"Request failed after {max_retries + 1} attempts: "
            f"{sanitize_error_message(str(last_error))}",
            status_code=status_code,
        )

    def _get(
        self,
        endpoint: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        allow_client_errors: bool = False,
    ) -> httpx.Response:
        """Make a GET request."""
        return self._request(
            "GET",
            endpoint,
            params=params,
            headers=headers,
            allow_client_errors=allow_client_errors,
        )

    def _post(
        self,
        endpoint: str,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        allow_client_errors: bool = False,
    ) -> httpx.Response:
        """Make a POST request."""
        return self._request(
            "POST",
            endpoint,
            params=params,
            json_data=json_data,
            headers=headers,
            allow_client_errors=allow_client_errors,
        )

    @staticmethod
    def _json_object(response: httpx.Response) -> dict[str, Any]:
        """Decode a response body that must be a JSON object.

        Raises:
            ClaimsAPIError: If the body is not JSON or not an object
        """
        try:
            data = response.json()
        except ValueError as e:
            raise ClaimsAPIError(
                f"Invalid response format: expected JSON, got {response.text[:100]!r}",
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            raise ClaimsAPIError(
                "Invalid response format: expected a JSON object",
                status_code=response.status_code,
            )
        return data

    def _log(self, level: str, message: str, **context: Any) -> None:
        """Log a message with client context.

        Args:
            level: Log level (debug, info, warning, error)
            message: Log message
            **context: Additional context to include
        """
        log_fn = getattr(logger, level.lower(), logger.info)
        log_fn(f"[{self.name}] {message}", extra={"client": self.name, **context})
