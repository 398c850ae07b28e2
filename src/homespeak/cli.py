"""Typer CLI definition for homespeak."""

import asyncio
import logging
import sys
from pathlib import Path

import typer

from .config import CONFIG_PATH, HomeSpeakConfig, generate_config, load_config
from .core import build_service, list_available_voices, speak_text
from .ingest import build_router
from .providers import ProviderRegistry
from .tts.errors import (
    ConfigurationError,
    SynthesisFailed,
    TTSAuthError,
    TTSError,
)

app = typer.Typer(help="Speak text through cloud TTS voices")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

config_option = typer.Option(
    None, "--config", "-c", help="Config file (default ~/.config/homespeak/config.toml)"
)
debug_option = typer.Option(
    False, "--debug", help="Show verbose error messages and cache activity"
)


def _fail(message: str, error: Exception, debug: bool) -> typer.Exit:
    if debug:
        typer.echo(f"Debug - {message}: {error!r}", err=True)
    else:
        typer.echo(f"Error: {error}", err=True)
    return typer.Exit(1)


def _setup(config_path: Path | None, debug: bool) -> HomeSpeakConfig:
    """Load configuration and configure logging, exiting on bad config."""
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        raise _fail("Configuration error", e, debug) from None

    logging.basicConfig(
        level=logging.DEBUG if debug else config.logging.level,
        format=LOG_FORMAT,
    )
    return config


@app.command()
def say(
    text: str | None = typer.Argument(None, help="Text to speak"),
    file: Path | None = typer.Option(None, "-f", "--file", help="Read text from file"),
    voice: str = typer.Option("", "-v", "--voice", help="Voice identity or voice id"),
    backend: str | None = typer.Option(
        None, "-b", "--backend", help="Backend identifier (from config if omitted)"
    ),
    style: str | None = typer.Option(None, "-s", "--style", help="Speaking style"),
    output: Path | None = typer.Option(
        None, "-o", "--output", help="Save output to file instead of playing"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore cached audio"),
    config_path: Path | None = config_option,
    debug: bool = debug_option,
) -> None:
    """Synthesize text and play it (or save it with --output)."""
    config = _setup(config_path, debug)

    # Get text from argument, file, or stdin (in priority order)
    if text is None:
        if file:
            try:
                text = file.read_text()
            except (OSError, UnicodeDecodeError) as e:
                raise _fail(f"Failed to read {file}", e, debug) from None
        elif not sys.stdin.isatty():
            text = sys.stdin.read().strip()

    if not text or not text.strip():
        typer.echo("Error: No text provided", err=True)
        raise typer.Exit(1)

    try:
        asyncio.run(
            speak_text(
                text,
                voice=voice,
                backend=backend,
                style=style,
                output_file=output,
                use_cache=not no_cache,
                config=config,
            )
        )
    except TTSAuthError as e:
        raise _fail("Authentication error", e, debug) from None
    except SynthesisFailed as e:
        raise _fail("Synthesis failed", e, debug) from None
    except TTSError as e:
        raise _fail("TTS error", e, debug) from None
    except OSError as e:
        raise _fail("File system error", e, debug) from None
    except ValueError as e:
        raise _fail("Invalid input", e, debug) from None

    if output:
        typer.echo(f"Audio saved to {output}")


@app.command()
def voices(
    backend: str | None = typer.Option(
        None, "-b", "--backend", help="Backend identifier (default backend if omitted)"
    ),
    config_path: Path | None = config_option,
    debug: bool = debug_option,
) -> None:
    """List the voices a backend offers."""
    config = _setup(config_path, debug)
    try:
        voice_list = asyncio.run(list_available_voices(backend, config))
    except TTSError as e:
        raise _fail("Failed to list voices", e, debug) from None

    for voice in voice_list:
        details = f" ({voice.language})" if voice.language else ""
        typer.echo(f"{voice.name}: {voice.voice_id}{details}")


@app.command()
def backends(
    config_path: Path | None = config_option,
    debug: bool = debug_option,
) -> None:
    """List configured backends and what they support."""
    config = _setup(config_path, debug)
    for identifier, backend in config.backends.items():
        try:
            descriptor = ProviderRegistry.get(backend.provider).descriptor
        except KeyError as e:
            raise _fail("Unknown provider", e, debug) from None

        marker = "*" if identifier == config.speech.default_backend else " "
        line = f"{marker} {identifier}: {backend.provider}"
        if backend.voice:
            line += f", voice {backend.voice}"
        if backend.fallback:
            line += f", falls back to {backend.fallback}"
        typer.echo(line)
        if descriptor.voice_styles:
            typer.echo(f"    styles: {', '.join(sorted(descriptor.voice_styles))}")
        if descriptor.requests_per_minute:
            typer.echo(f"    rate limit: {descriptor.requests_per_minute}/min")


async def _listen(
    config: HomeSpeakConfig, voice: str, use_cache: bool, prefix: str
) -> int:
    service = build_service(config, use_cache=use_cache)
    if service.playback is not None:
        service.playback.start()
    router = build_router(service, prefix)

    handled = 0
    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            if line.startswith("{"):
                topic = f"{prefix}/say"
            else:
                topic = f"{prefix}/say/voice/{voice}"
            if await router.handle_message(topic, line.encode("utf-8")):
                handled += 1
    finally:
        await service.aclose()
    return handled


@app.command()
def listen(
    voice: str = typer.Option(
        "", "-v", "--voice", help="Voice identity for plain-text lines"
    ),
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore cached audio"),
    prefix: str = typer.Option("homespeak", "--prefix", help="Topic prefix"),
    config_path: Path | None = config_option,
    debug: bool = debug_option,
) -> None:
    """Speak phrases read from stdin, one per line.

    Lines starting with '{' are JSON say commands
    ({"content": ..., "voice": ..., "backend": ..., "style": ...}); any other
    line is spoken as-is. Phrases are synthesized concurrently and played in
    the order they were read.
    """
    config = _setup(config_path, debug)
    try:
        handled = asyncio.run(_listen(config, voice, not no_cache, prefix))
    except TTSError as e:
        raise _fail("Listener failed", e, debug) from None
    logging.getLogger(__name__).info(f"Processed {handled} phrases")


@app.command("init-config")
def init_config(
    config_path: Path | None = config_option,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file"),
) -> None:
    """Write the default configuration file."""
    try:
        path = generate_config(config_path or CONFIG_PATH, force=force)
    except FileExistsError as e:
        typer.echo(f"Error: {e} (use --force to overwrite)", err=True)
        raise typer.Exit(1) from None
    typer.echo(f"Config written to {path}")
