"""Test package structure and imports."""

import sys
from pathlib import Path

# Add src to path for testing
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))


def test_package_imports() -> None:
    """Test that homespeak package can be imported."""
    import homespeak

    assert homespeak.__version__ == "0.1.0"


def test_speak_is_lazy_alias() -> None:
    import homespeak
    from homespeak.core import speak_text

    assert homespeak.speak is speak_text


def test_main_module_imports() -> None:
    """Test that main module can be imported without error."""
    from homespeak.__main__ import main

    assert callable(main)
