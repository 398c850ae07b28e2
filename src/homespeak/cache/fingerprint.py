"""Stable request fingerprints used as audio cache keys."""

import hashlib
import json

from ..tts.models import VoiceParams

# Bump to invalidate previously cached audio when the rendering changes
CACHE_FORMAT_VERSION = 5


def fingerprint(text: str, voice: str, backend: str, params: VoiceParams) -> str:
    """Compute the cache key for a synthesis request.

    Hashes the normalized text, the caller's voice identity, the backend
    identifier and every voice-affecting parameter. Identical requests always
    hash to the same key; any voice, style or backend difference changes it.

    Args:
        text: Phrase text (surrounding whitespace is ignored)
        voice: Voice identity as supplied by the caller
        backend: Configured backend identifier
        params: Resolved voice parameters

    Returns:
        Key of the form ``<backend>-<sha256 hex>``
    """
    hasher = hashlib.sha256()
    for part in (
        text.strip(),
        voice,
        backend,
        json.dumps(params.as_dict(), sort_keys=True),
    ):
        hasher.update(part.encode("utf-8"))
        # Field separator so ("ab", "c") and ("a", "bc") never collide
        hasher.update(b"\x00")
    hasher.update(CACHE_FORMAT_VERSION.to_bytes(4, "big"))
    return f"{backend}-{hasher.hexdigest()}"
