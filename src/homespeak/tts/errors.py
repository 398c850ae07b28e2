"""Custom homespeak exceptions."""


class TTSError(Exception):
    """Base exception for homespeak errors."""

    def __init__(
        self, message: str, original_error: Exception | None = None
    ) -> None:
        super().__init__(message)
        self.original_error = original_error


class ConfigurationError(TTSError):
    """Exception raised for missing or invalid configuration.

    This typically occurs when:
    - A backend API key is not set in the environment
    - A voice profile points at an unknown backend
    - A voice profile uses a style its backend does not support

    Fatal at startup, never recoverable per request.
    """

    pass


class SynthesisBackendError(TTSError):
    """Base exception for failures reported by a TTS backend.

    Recoverable per request: the caller may retry later or fall back to
    another backend. Never corrupts the audio cache.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        original_error: Exception | None = None,
        backend: str | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.status_code = status_code
        self.backend = backend


class TTSAuthError(SynthesisBackendError):
    """Exception raised for authentication failures.

    This typically occurs when:
    - API key is invalid or revoked
    - API key permissions are insufficient
    """

    pass


class TTSAPIError(SynthesisBackendError):
    """Exception raised for API communication errors.

    This typically occurs when:
    - API server is unavailable (5xx errors)
    - Request format or voice parameters are invalid (4xx errors)
    - Network connectivity issues
    """

    pass


class TTSRateLimitError(TTSAPIError):
    """Exception raised when the provider rejects a request with HTTP 429."""

    pass


class TTSQuotaError(TTSAPIError):
    """Exception raised when the account has run out of characters or credits."""

    pass


class TTSTimeoutError(TTSAPIError):
    """Exception raised when a backend call exceeds its configured timeout."""

    pass


class SynthesisFailed(TTSError):
    """Normalized error surfaced by the speech service.

    Carries enough context for the caller to decide whether to drop, log
    or retry the whole request.
    """

    def __init__(
        self,
        message: str,
        backend: str,
        fingerprint: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause)
        self.backend = backend
        self.fingerprint = fingerprint
        self.cause = cause


class CacheError(TTSError):
    """Exception raised when the cache storage layer fails."""

    pass


class PlaybackDeviceError(TTSError):
    """Exception raised when the output device is unavailable or fails mid-playback."""

    pass


def error_from_status(
    status_code: int, message: str, backend: str | None = None
) -> SynthesisBackendError:
    """Map an HTTP status code from a provider into the shared error taxonomy.

    Args:
        status_code: HTTP status returned by the provider
        message: Response body or provider message
        backend: Provider identifier for context

    Returns:
        The matching SynthesisBackendError subclass instance
    """
    if status_code in (401, 403):
        return TTSAuthError(
            f"Authentication failed: {message}", status_code, backend=backend
        )
    if status_code == 429:
        return TTSRateLimitError(
            f"Rate limit exceeded: {message}", status_code, backend=backend
        )
    if status_code == 402 or "quota" in message.lower():
        return TTSQuotaError(f"Quota exceeded: {message}", status_code, backend=backend)
    if status_code >= 500:
        return TTSAPIError(f"Server error: {message}", status_code, backend=backend)
    return TTSAPIError(f"Invalid request: {message}", status_code, backend=backend)
