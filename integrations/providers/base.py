"""
Base Integration Provider

Abstract base class for HTTP integration providers.
Implements common functionality for sessions, authentication headers and
error classification of outbound API calls.
"""

import logging
import requests
from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, Tuple

from django.conf import settings

logger = logging.getLogger(__name__)


class IntegrationError(Exception):
    """Base exception for integration errors."""
    def __init__(self, message, status_code=None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(IntegrationError):
    """Raised when authentication fails."""
    pass


class RateLimitError(IntegrationError):
    """Raised when rate limit is exceeded."""
    def __init__(self, message, retry_after=None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after


class ConfigurationError(IntegrationError):
    """Raised when integration is misconfigured."""
    pass


class ServiceUnavailableError(IntegrationError):
    """Raised when the remote service answers with a 5xx status."""
    pass


class RequestTimeoutError(IntegrationError):
    """Raised when the request does not complete within request_timeout."""
    pass


class ConnectionFailedError(IntegrationError):
    """Raised when the remote service cannot be reached."""
    pass


# Failures worth another attempt; everything else is final
TRANSIENT_ERRORS = (
    RateLimitError,
    ServiceUnavailableError,
    RequestTimeoutError,
    ConnectionFailedError,
)


def is_transient_error(exc: BaseException) -> bool:
    """Whether a failed call may succeed if repeated."""
    return isinstance(exc, TRANSIENT_ERRORS)


class BaseIntegrationProvider(ABC):
    """
    Abstract base class for all integration providers.

    Subclasses must implement:
    - provider_name: Unique provider identifier
    - display_name: Human-readable provider name
    - test_connection(): Verify credentials are valid
    """

    # Provider identification - override in subclasses
    provider_name: str = ''
    display_name: str = ''
    provider_type: str = ''

    # API configuration
    api_base_url: str = ''

    # Default timeout for API requests
    request_timeout: int = 30

    def __init__(self, api_key: str = '', api_base_url: str = None, request_timeout: int = None):
        """
        Initialize provider.

        Args:
            api_key: Credential sent with every request
            api_base_url: Override for the class-level base URL
            request_timeout: Override for the class-level timeout (seconds)
        """
        self.api_key = api_key
        if api_base_url:
            self.api_base_url = api_base_url.rstrip('/')
        if request_timeout:
            self.request_timeout = request_timeout
        self._session = None

    @property
    def session(self) -> requests.Session:
        """Get or create requests session with default configuration."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({
                'User-Agent': f'HireMatch/{getattr(settings, "VERSION", "1.0")}',
                'Accept': 'application/json',
            })
        return self._session

    def get_credentials(self) -> Dict[str, Any]:
        if not self.api_key:
            raise ConfigurationError(f"No API key configured for {self.provider_name}")
        return {'api_key': self.api_key}

    def get_headers(self) -> Dict[str, str]:
        """
        Get HTTP headers for API requests.
        Override to customize headers.
        """
        creds = self.get_credentials()
        return {'Authorization': f"Bearer {creds['api_key']}"}

    def get_auth_params(self) -> Dict[str, str]:
        """Query parameters carrying credentials, for APIs that want them there."""
        return {}

    def make_request(
        self,
        method: str,
        endpoint: str,
        data: Dict = None,
        params: Dict = None,
        headers: Dict = None,
    ) -> requests.Response:
        """
        Make authenticated API request with error handling.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            data: Request body data
            params: URL query parameters
            headers: Additional headers

        Returns:
            Response object with a 2xx status

        Raises:
            RateLimitError: 429
            AuthenticationError: 401 or 403
            ServiceUnavailableError: 5xx
            RequestTimeoutError: No response within request_timeout
            ConnectionFailedError: Remote not reachable
            IntegrationError: Any other failed request
        """
        url = f"{self.api_base_url}/{endpoint.lstrip('/')}"

        request_headers = self.get_headers()
        if headers:
            request_headers.update(headers)

        request_params = self.get_auth_params()
        if params:
            request_params.update(params)

        try:
            response = self.session.request(
                method=method,
                url=url,
                json=data,
                params=request_params or None,
                headers=request_headers,
                timeout=self.request_timeout
            )
        except requests.Timeout as e:
            logger.warning(f"{self.provider_name} request timed out: {method} {endpoint}")
            raise RequestTimeoutError(f"Request timed out: {e}")
        except requests.ConnectionError as e:
            logger.warning(f"{self.provider_name} connection failed: {e}")
            raise ConnectionFailedError(f"Connection failed: {e}")
        except requests.RequestException as e:
            logger.error(f"API request failed: {e}")
            raise IntegrationError(f"Request failed: {e}")

        # Handle rate limiting
        if response.status_code == 429:
            retry_after = response.headers.get('Retry-After', 60)
            try:
                retry_after = int(retry_after)
            except (TypeError, ValueError):
                retry_after = 60
            raise RateLimitError("Rate limit exceeded", retry_after=retry_after)

        if response.status_code in (401, 403):
            raise AuthenticationError("Authentication failed", status_code=response.status_code)

        if response.status_code >= 500:
            raise ServiceUnavailableError(
                f"{self.display_name or self.provider_name} error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        if response.status_code >= 400:
            raise IntegrationError(
                f"{self.display_name or self.provider_name} rejected request "
                f"({response.status_code}): {response.text[:200]}",
                status_code=response.status_code,
            )

        return response

    @abstractmethod
    def test_connection(self) -> Tuple[bool, str]:
        """
        Test if the integration is properly configured and connected.

        Returns:
            Tuple of (success: bool, message: str)
        """
        pass


class BookingProvider(BaseIntegrationProvider):
    """Base class for calendar booking providers."""
    provider_type = 'booking'

    @abstractmethod
    def create_booking(self, slot, attendees, metadata: Dict[str, Any] = None):
        """Create a booking; returns a BookingConfirmation."""
        pass

    @abstractmethod
    def cancel_booking(self, external_ref: str, reason: str = '') -> None:
        """Cancel a booking by its provider reference."""
        pass

    @abstractmethod
    def find_booking(self, idempotency_key: str) -> Optional[Any]:
        """Look a booking up by the key it was created with."""
        pass
