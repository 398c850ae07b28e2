"""Google Cloud Text-to-Speech provider implementation."""

import base64
import binascii
import logging
from typing import TYPE_CHECKING

import httpx

from ..tts.errors import (
    ConfigurationError,
    TTSAPIError,
    TTSTimeoutError,
    error_from_status,
)
from ..tts.models import AudioClip, VoiceInfo, VoiceParams
from .base import BackendDescriptor, TTSProvider

if TYPE_CHECKING:
    from ..config import BackendConfig

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "en-GB-Wavenet-A"
DEFAULT_LANGUAGE = "en-GB"


class GoogleProvider(TTSProvider):
    """Google Cloud TTS provider using the v1 REST API with an API key."""

    descriptor = BackendDescriptor(
        identifier="google",
        requests_per_minute=1000,
        content_type="audio/mpeg",
    )

    def __init__(
        self,
        api_key: str | None,
        default_voice: str = DEFAULT_VOICE,
        language: str = DEFAULT_LANGUAGE,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Google provider.

        Raises:
            ConfigurationError: If API key is not provided.
        """
        if not api_key:
            raise ConfigurationError(
                "Google TTS API key not found. Set GOOGLE_TTS_API_KEY environment "
                "variable or api_key_env in the backend table."
            )
        self.default_voice = default_voice
        self.language = language
        self._client = httpx.AsyncClient(
            base_url="https://texttospeech.googleapis.com/v1",
            params={"key": api_key},
            timeout=timeout,
            transport=transport,
        )
        self._voices_cache: list[VoiceInfo] | None = None

    @classmethod
    def from_config(cls, config: "BackendConfig") -> "GoogleProvider":
        return cls(
            api_key=config.api_key,
            default_voice=config.voice or DEFAULT_VOICE,
            language=config.language or DEFAULT_LANGUAGE,
            timeout=config.timeout,
        )

    async def synthesize(self, text: str, params: VoiceParams) -> AudioClip:
        """Convert text to MP3 audio.

        Raises:
            TTSAPIError: If API call fails or the response is malformed
            TTSAuthError: If the API key is rejected
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        self.check_style(params.style)

        body = {
            "input": {"text": text.strip()},
            "voice": {
                "languageCode": params.language or self.language,
                "name": params.voice or self.default_voice,
            },
            "audioConfig": {"audioEncoding": "MP3"},
        }
        response = await self._request("POST", "/text:synthesize", json=body)

        try:
            audio = base64.b64decode(response.json()["audioContent"])
        except (ValueError, KeyError, binascii.Error) as e:
            raise TTSAPIError(
                f"Malformed synthesis response: {e}", original_error=e, backend="google"
            ) from e

        if not audio:
            raise TTSAPIError("No audio data received from API", backend="google")
        return AudioClip(audio, self.descriptor.content_type)

    async def list_voices(self) -> list[VoiceInfo]:
        """Get the voice catalog, cached after the first call."""
        if self._voices_cache is not None:
            return self._voices_cache

        response = await self._request("GET", "/voices")
        try:
            payload = response.json()
        except ValueError as e:
            raise TTSAPIError(
                f"Malformed voice list: {e}", original_error=e, backend="google"
            ) from e

        self._voices_cache = [
            VoiceInfo(
                voice_id=item["name"],
                name=item["name"],
                provider=self.descriptor.identifier,
                language=(item.get("languageCodes") or [None])[0],
            )
            for item in payload.get("voices", [])
        ]
        return self._voices_cache

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        backend = self.descriptor.identifier
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TTSTimeoutError(
                f"Request timed out: {e}", original_error=e, backend=backend
            ) from e
        except httpx.HTTPError as e:
            raise TTSAPIError(
                f"Network failure: {e}", original_error=e, backend=backend
            ) from e

        if response.is_error:
            raise error_from_status(response.status_code, _error_message(response), backend)
        return response


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return response.text or response.reason_phrase
