"""homespeak - speech output service for home automation."""

__version__ = "0.1.0"
__all__ = ["speak"]


def __getattr__(name: str):  # type: ignore[no-untyped-def]
    if name == "speak":
        from .core import speak_text

        return speak_text
    raise AttributeError(f"module 'homespeak' has no attribute {name!r}")
