"""Configuration management for homespeak.

Loads configuration from ~/.config/homespeak/config.toml.
Priority chain: env vars > config file > built-in defaults.
The resulting HomeSpeakConfig is frozen and passed explicitly to each
component at construction time.
"""

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .tts.errors import ConfigurationError

CONFIG_DIR = Path.home() / ".config" / "homespeak"
CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "homespeak"

DEFAULT_TIMEOUT = 20.0

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Env var consulted for a backend's API key when api_key_env is not set
DEFAULT_API_KEY_ENV = {
    "elevenlabs": "ELEVENLABS_API_KEY",
    "azure": "AZURE_SPEECH_KEY",
    "google": "GOOGLE_TTS_API_KEY",
}

DEFAULT_CONFIG = """\
# homespeak configuration

[speech]
# Backend used when neither the request nor the voice profile names one
default_backend = "primary"

# Seconds before a backend call is abandoned and treated as a failure
timeout = 20.0

# One table per configured backend. provider: "azure", "google", "elevenlabs"
[backends.primary]
provider = "azure"
region = "uksouth"
voice = "en-US-SaraNeural"
format = "audio-48khz-192kbitrate-mono-mp3"
# Try this backend when primary fails (omit to surface the error instead)
fallback = "secondary"

[backends.secondary]
provider = "google"
voice = "en-GB-Wavenet-A"
language = "en-GB"

# Needs ELEVENLABS_API_KEY; every declared backend is built at startup
# [backends.eleven]
# provider = "elevenlabs"
# # Freya
# voice = "jsCqWAovK2LkecY7zXl4"
# model = "eleven_turbo_v2_5"

# Voice identities used by callers, mapped onto a backend voice
[voices.default]
backend = "primary"
voice = "en-US-SaraNeural"

[voices.alert-en]
backend = "primary"
voice = "en-US-SaraNeural"
style = "angry"

[cache]
enabled = true
# "memory" (lost on restart) or "disk"
storage = "disk"
directory = "~/.cache/homespeak"
# 0 = unbounded (memory storage only)
max_entries = 0
# Fail requests on storage errors instead of treating them as cache misses
strict = false

[playback]
enabled = true
volume = 1.0

[logging]
level = "INFO"

# API keys are read from environment variables, not this file:
#   AZURE_SPEECH_KEY    - Azure backends
#   GOOGLE_TTS_API_KEY  - Google backends
#   ELEVENLABS_API_KEY  - ElevenLabs backends
# Set api_key_env in a backend table to use a different variable.
"""


@dataclass(frozen=True)
class SpeechConfig:
    """Speech service configuration."""

    default_backend: str
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class BackendConfig:
    """Configuration for one backend instance."""

    identifier: str
    provider: str
    api_key: str | None = None
    voice: str | None = None
    language: str | None = None
    model: str | None = None
    region: str | None = None
    audio_format: str | None = None
    timeout: float = DEFAULT_TIMEOUT
    fallback: str | None = None


@dataclass(frozen=True)
class VoiceProfile:
    """Maps a caller-facing voice identity onto a backend voice."""

    name: str
    backend: str
    voice: str | None = None
    style: str | None = None
    language: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class CacheConfig:
    """Audio cache configuration."""

    enabled: bool = True
    storage: str = "memory"
    directory: Path = DEFAULT_CACHE_DIR
    max_entries: int | None = None
    strict: bool = False


@dataclass(frozen=True)
class PlaybackConfig:
    """Playback queue configuration."""

    enabled: bool = True
    volume: float = 1.0


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"


@dataclass(frozen=True)
class HomeSpeakConfig:
    """Top-level homespeak configuration."""

    speech: SpeechConfig
    backends: Mapping[str, BackendConfig]
    voices: Mapping[str, VoiceProfile] = field(default_factory=dict)
    cache: CacheConfig = field(default_factory=CacheConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def generate_config(path: Path = CONFIG_PATH, force: bool = False) -> Path:
    """Write the default config file.

    Raises:
        FileExistsError: If the file exists and force is False
    """
    if path.exists() and not force:
        raise FileExistsError(f"Config already exists at {path}")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(DEFAULT_CONFIG)
    return path


def load_config(
    path: Path | None = None, env: Mapping[str, str] | None = None
) -> HomeSpeakConfig:
    """Load configuration from a TOML file with env var overrides.

    Args:
        path: Config file to read (defaults to ~/.config/homespeak/config.toml)
        env: Environment mapping (defaults to os.environ)

    Returns:
        Loaded and validated HomeSpeakConfig.

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid.
    """
    path = path or CONFIG_PATH
    if not path.exists():
        raise ConfigurationError(
            f"No config found at {path}. Run `homespeak init-config` to generate one."
        )

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {path}: {e}", e) from e

    return parse_config(data, env if env is not None else os.environ)


def parse_config(data: Mapping[str, Any], env: Mapping[str, str]) -> HomeSpeakConfig:
    """Build a HomeSpeakConfig from parsed TOML data.

    Raises:
        ConfigurationError: If required values are missing or inconsistent.
    """
    speech = data.get("speech", {})
    timeout = _positive_float(speech.get("timeout", DEFAULT_TIMEOUT), "speech.timeout")

    backends: dict[str, BackendConfig] = {}
    for identifier, table in data.get("backends", {}).items():
        backends[identifier] = _parse_backend(identifier, table, timeout, env)

    if not backends:
        raise ConfigurationError("At least one [backends.<id>] table is required")

    default_backend = env.get("HOMESPEAK_DEFAULT_BACKEND", speech.get("default_backend"))
    if default_backend is None:
        default_backend = next(iter(backends))
    if default_backend not in backends:
        raise ConfigurationError(
            f"speech.default_backend '{default_backend}' is not a configured backend"
        )

    for backend in backends.values():
        if backend.fallback is not None and backend.fallback not in backends:
            raise ConfigurationError(
                f"backends.{backend.identifier}.fallback '{backend.fallback}' "
                "is not a configured backend"
            )

    voices: dict[str, VoiceProfile] = {}
    for name, table in data.get("voices", {}).items():
        backend_id = table.get("backend", default_backend)
        if backend_id not in backends:
            raise ConfigurationError(
                f"voices.{name}.backend '{backend_id}' is not a configured backend"
            )
        voices[name] = VoiceProfile(
            name=name,
            backend=backend_id,
            voice=table.get("voice"),
            style=table.get("style"),
            language=table.get("language"),
            model=table.get("model"),
        )

    cache = data.get("cache", {})
    storage = cache.get("storage", "memory")
    if storage not in ("memory", "disk"):
        raise ConfigurationError(
            f"cache.storage must be 'memory' or 'disk', got '{storage}'"
        )
    directory = env.get("HOMESPEAK_CACHE_DIR", cache.get("directory"))
    max_entries = cache.get("max_entries", 0)
    if not isinstance(max_entries, int) or max_entries < 0:
        raise ConfigurationError("cache.max_entries must be a non-negative integer")

    playback = data.get("playback", {})
    volume = playback.get("volume", 1.0)
    if not isinstance(volume, int | float) or not 0.0 <= volume <= 1.0:
        raise ConfigurationError("playback.volume must be between 0.0 and 1.0")

    log_cfg = data.get("logging", {})
    level = str(env.get("HOMESPEAK_LOG_LEVEL", log_cfg.get("level", "INFO"))).upper()
    if level not in LOG_LEVELS:
        raise ConfigurationError(
            f"logging.level must be one of {', '.join(LOG_LEVELS)}, got '{level}'"
        )

    return HomeSpeakConfig(
        speech=SpeechConfig(default_backend=default_backend, timeout=timeout),
        backends=backends,
        voices=voices,
        cache=CacheConfig(
            enabled=bool(cache.get("enabled", True)),
            storage=storage,
            directory=Path(directory).expanduser() if directory else DEFAULT_CACHE_DIR,
            max_entries=max_entries or None,
            strict=bool(cache.get("strict", False)),
        ),
        playback=PlaybackConfig(
            enabled=bool(playback.get("enabled", True)), volume=float(volume)
        ),
        logging=LoggingConfig(level=level),
    )


def _parse_backend(
    identifier: str,
    table: Mapping[str, Any],
    default_timeout: float,
    env: Mapping[str, str],
) -> BackendConfig:
    provider = table.get("provider")
    if not provider:
        raise ConfigurationError(f"backends.{identifier}.provider is required")

    key_env = table.get("api_key_env", DEFAULT_API_KEY_ENV.get(provider))
    api_key = env.get(key_env) if key_env else None

    return BackendConfig(
        identifier=identifier,
        provider=provider,
        api_key=api_key,
        voice=table.get("voice"),
        language=table.get("language"),
        model=table.get("model"),
        region=table.get("region"),
        audio_format=table.get("format"),
        timeout=_positive_float(
            table.get("timeout", default_timeout), f"backends.{identifier}.timeout"
        ),
        fallback=table.get("fallback"),
    )


def _positive_float(value: Any, name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, int | float) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive number, got {value!r}")
    return float(value)
