"""Azure Cognitive Services Speech provider implementation.

Synthesizes SSML over the Azure TTS REST API. Speaking styles are expressed
with ``mstts:express-as`` and every phrase is padded with short silences so
back-to-back announcements do not run together.
"""

import logging
from typing import TYPE_CHECKING
from xml.sax.saxutils import escape, quoteattr

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

DEFAULT_REGION = "uksouth"
DEFAULT_VOICE = "en-US-SaraNeural"
DEFAULT_FORMAT = "audio-48khz-192kbitrate-mono-mp3"

SILENCES = (
    ("Sentenceboundary", "50ms"),
    ("Tailing", "25ms"),
    ("Leading", "25ms"),
)


def build_ssml(text: str, voice: str, language: str, style: str | None) -> str:
    """Render phrase text as an SSML document for the given voice and style."""
    silences = "".join(
        f'<mstts:silence type="{kind}" value="{value}"/>' for kind, value in SILENCES
    )
    body = escape(text)
    if style and style != "plain":
        body = f"<mstts:express-as style={quoteattr(style)}>{body}</mstts:express-as>"
    return (
        '<speak version="1.0" xmlns="http://www.w3.org/2001/10/synthesis" '
        'xmlns:mstts="https://www.w3.org/2001/mstts" '
        f"xml:lang={quoteattr(language)}>"
        f"<voice name={quoteattr(voice)}>{silences}{body}</voice>"
        "</speak>"
    )


class AzureProvider(TTSProvider):
    """Azure neural voice provider using the Cognitive Services REST API."""

    descriptor = BackendDescriptor(
        identifier="azure",
        voice_styles=frozenset({"plain", "angry", "cheerful", "sad"}),
        requests_per_minute=200,
        content_type="audio/mpeg",
    )

    def __init__(
        self,
        api_key: str | None,
        region: str = DEFAULT_REGION,
        default_voice: str = DEFAULT_VOICE,
        audio_format: str = DEFAULT_FORMAT,
        timeout: float = 20.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize Azure provider.

        Args:
            api_key: Speech resource subscription key
            region: Azure region hosting the speech resource
            default_voice: Voice short name used when the request carries none
            audio_format: Value for the X-Microsoft-OutputFormat header
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests inject a MockTransport)

        Raises:
            ConfigurationError: If API key is not provided.
        """
        if not api_key:
            raise ConfigurationError(
                "Azure speech key not found. Set AZURE_SPEECH_KEY environment "
                "variable or api_key_env in the backend table."
            )
        self.region = region
        self.default_voice = default_voice
        self.audio_format = audio_format
        self.content_type = "audio/wav" if "riff" in audio_format else "audio/mpeg"
        self._client = httpx.AsyncClient(
            base_url=f"https://{region}.tts.speech.microsoft.com",
            headers={
                "Ocp-Apim-Subscription-Key": api_key,
                "User-Agent": "homespeak",
            },
            timeout=timeout,
            transport=transport,
        )
        self._voices_cache: list[VoiceInfo] | None = None

    @classmethod
    def from_config(cls, config: "BackendConfig") -> "AzureProvider":
        return cls(
            api_key=config.api_key,
            region=config.region or DEFAULT_REGION,
            default_voice=config.voice or DEFAULT_VOICE,
            audio_format=config.audio_format or DEFAULT_FORMAT,
            timeout=config.timeout,
        )

    async def synthesize(self, text: str, params: VoiceParams) -> AudioClip:
        """Convert text to speech audio.

        Raises:
            TTSAPIError: If API call fails or the style is unsupported
            TTSAuthError: If the subscription key is rejected
            ValueError: If text is empty
        """
        if not text or not text.strip():
            raise ValueError("Text cannot be empty")
        self.check_style(params.style)

        voice = params.voice or self.default_voice
        language = params.language or _language_of(voice)
        logger.debug(f"Using {params.style or 'plain'} style with voice {voice}")
        ssml = build_ssml(text.strip(), voice, language, params.style)

        response = await self._request(
            "POST",
            "/cognitiveservices/v1",
            content=ssml.encode("utf-8"),
            headers={
                "Content-Type": "application/ssml+xml",
                "X-Microsoft-OutputFormat": self.audio_format,
            },
        )
        if not response.content:
            raise TTSAPIError(
                "No audio data received from API", backend=self.descriptor.identifier
            )
        return AudioClip(response.content, self.content_type)

    async def list_voices(self) -> list[VoiceInfo]:
        """Get the region's voice catalog.

        Results are cached after first call to avoid repeated API requests.
        """
        if self._voices_cache is not None:
            return self._voices_cache

        response = await self._request("GET", "/cognitiveservices/voices/list")
        try:
            payload = response.json()
        except ValueError as e:
            raise TTSAPIError(
                f"Malformed voice list: {e}", original_error=e, backend="azure"
            ) from e

        self._voices_cache = [
            VoiceInfo(
                voice_id=item["ShortName"],
                name=item.get("DisplayName", item["ShortName"]),
                provider=self.descriptor.identifier,
                language=item.get("Locale"),
                styles=tuple(item.get("StyleList", ())),
            )
            for item in payload
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
            raise error_from_status(
                response.status_code, response.text or response.reason_phrase, backend
            )
        return response


def _language_of(voice: str) -> str:
    # Azure short names start with the locale, e.g. en-US-SaraNeural
    parts = voice.split("-")
    return "-".join(parts[:2]) if len(parts) >= 3 else "en-US"
