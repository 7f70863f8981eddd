"""chatannouncer - main process.

Starts the HTTP/WebSocket server. Monitoring begins when a client calls
POST /start, or right away when --token is given on the command line.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from chatannouncer.ai.responder import DEFAULT_SLANG_TOKENS, ResponseGenerator
from chatannouncer.chat.intake import PipelineState
from chatannouncer.config import get_config, load_config
from chatannouncer.monitor import ChatMonitor
from chatannouncer.source.chat_source import RestartPolicy
from chatannouncer.tts.announcer import SpeechAnnouncer
from chatannouncer.utils.logging import get_logger, setup_logging
from chatannouncer.utils.terminal_ui import ConsoleTranscript

log = get_logger("main")


def create_speech_engine(tts_cfg: dict):
    """Create the configured speech engine, or None for text-only mode."""
    engine = tts_cfg.get("engine", "system")
    if engine == "none":
        return None
    if engine == "openai":
        from chatannouncer.tts.openai_tts import OpenAITextToSpeech

        return OpenAITextToSpeech(
            model=tts_cfg.get("model", "tts-1"),
            voice=tts_cfg.get("voice") or "onyx",
            speed=tts_cfg.get("speed", 1.0),
        )

    from chatannouncer.tts.system_tts import SystemTextToSpeech

    return SystemTextToSpeech(
        voice=tts_cfg.get("voice"),
        rate=tts_cfg.get("rate"),
    )


def create_components(config: dict, *, use_ai: bool = True) -> dict:
    """Create all pipeline components from config.

    Args:
        config: Application configuration dictionary.
        use_ai: If False, never create the reply backend, even when
            ``ai.enabled`` is set.

    Returns:
        Dictionary with component instances.
    """
    ai_cfg = config.get("ai") or {}
    responder_cfg = config.get("responder") or {}
    tts_cfg = config.get("tts") or {}
    source_cfg = config.get("source") or {}
    processor_cfg = config.get("processor") or {}

    backend = None
    if use_ai and ai_cfg.get("enabled", False):
        from chatannouncer.ai.openai_chat import OpenAIChatBackend

        try:
            backend = OpenAIChatBackend(
                model=ai_cfg.get("model", "gpt-4o-mini"),
                timeout=ai_cfg.get("timeout", 10),
                max_tokens=ai_cfg.get("max_tokens", 60),
            )
        except Exception as e:
            log.error("Reply backend unavailable, using canned replies: %s", e)

    generator = ResponseGenerator(
        backend=backend,
        slang_tokens=responder_cfg.get("slang_tokens") or DEFAULT_SLANG_TOKENS,
        min_length=responder_cfg.get("min_length", 8),
        max_length=responder_cfg.get("max_length", 160),
    )

    try:
        engine = create_speech_engine(tts_cfg)
    except Exception as e:
        log.error("Speech engine unavailable, running text-only: %s", e)
        engine = None

    state = PipelineState()
    announcer = SpeechAnnouncer(engine, timeout=tts_cfg.get("timeout", 5), state=state)
    transcript = ConsoleTranscript()

    policy = RestartPolicy(
        initial_delay=source_cfg.get("restart_delay", 5),
        max_delay=source_cfg.get("max_restart_delay", 60),
        max_attempts=source_cfg.get("max_restarts", 10),
        stable_after=source_cfg.get("stable_after", 30),
    )
    monitor = ChatMonitor(
        generator,
        announcer,
        state=state,
        source_command=source_cfg.get("command"),
        restart_policy=policy,
        interval=processor_cfg.get("interval", 1.0),
        on_response=transcript.print_turn,
    )

    return {
        "generator": generator,
        "announcer": announcer,
        "transcript": transcript,
        "monitor": monitor,
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Read live chat comments aloud")
    parser.add_argument("--config", type=Path, help="Path to a config.yaml file")
    parser.add_argument("--host", help="Override server.host")
    parser.add_argument("--port", type=int, help="Override server.port")
    parser.add_argument("--token", help="Token address to start monitoring immediately")
    parser.add_argument("--name", help="Your display name for the greeting")
    parser.add_argument(
        "--no-ai",
        action="store_true",
        help="Use canned replies only, even if the AI backend is enabled",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """Start the chat announcer."""
    args = build_parser().parse_args(argv)

    # Load config first, then set up logging from config values.
    # If config loading fails, fall back to stderr logging.
    try:
        config = load_config(args.config) if args.config else get_config()
    except Exception as e:
        setup_logging(level=logging.DEBUG)
        log.error("Failed to load config: %s", e)
        raise SystemExit(1) from e

    log_cfg = config.get("logging") or {}
    log_level_name = log_cfg.get("level") or "INFO"
    log_level = getattr(logging, str(log_level_name).upper(), logging.INFO)
    setup_logging(level=log_level, log_file=log_cfg.get("file"))

    try:
        components = create_components(config, use_ai=not args.no_ai)
    except Exception as e:
        log.error("Failed to initialize components: %s", e)
        raise SystemExit(1) from e

    import uvicorn

    from chatannouncer.server import create_app

    server_cfg = config.get("server") or {}
    host = args.host or server_cfg.get("host", "127.0.0.1")
    port = args.port or server_cfg.get("port", 5000)
    autostart = (args.token, args.name) if args.token else None

    app = create_app(components["monitor"], autostart=autostart)
    components["transcript"].log(f"chatannouncer running on http://{host}:{port}")
    # uvicorn logs through the handler installed by setup_logging
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=logging.getLevelName(log_level).lower(),
        log_config=None,
    )


if __name__ == "__main__":
    main()
