import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from voice_dictation.config import DictationConfig
from voice_dictation.log_format import ColoredFormatter

ENV_FILE_PATH = Path.home() / ".config" / "voice-dictation" / "env"
CONTROL_COMMANDS = ("toggle", "start", "stop", "status")


def _load_env_file(path: Path = ENV_FILE_PATH) -> None:
    if not path.exists():
        return
    with open(path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key not in os.environ:
                os.environ[key] = value


def _configure_logging(verbose: bool, log_file: str) -> None:
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    console = logging.StreamHandler()
    if sys.stderr.isatty():
        console.setFormatter(ColoredFormatter(datefmt="%H:%M:%S"))
    else:
        console.setFormatter(
            logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s", datefmt="%H:%M:%S")
        )
    root.addHandler(console)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file)
        except OSError:
            logging.warning("Cannot open log file %s", log_file)
        else:
            file_handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(levelname)s %(message)s"))
            root.addHandler(file_handler)

    if verbose:
        logging.getLogger("websockets").setLevel(logging.INFO)
        logging.getLogger("httpcore").setLevel(logging.INFO)
        logging.getLogger("httpx").setLevel(logging.INFO)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="voice-dictation", description="Real-time dictation with voice commands")
    parser.add_argument("--server", help="STT server WebSocket URL")
    parser.add_argument("--language", help="Language hint sent to the STT server")
    parser.add_argument("--note", help="Markdown note to insert transcriptions into")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("toggle", help="Start or stop recording")
    subparsers.add_parser("start", help="Start recording")
    subparsers.add_parser("stop", help="Stop recording")
    subparsers.add_parser("status", help="Query recorder state")
    return parser


def main() -> None:
    _load_env_file()
    args = build_parser().parse_args()

    config = DictationConfig()
    if args.server:
        config.stt_server_url = args.server
    if args.language:
        config.language = args.language
    if args.note:
        config.note_path = args.note

    _configure_logging(args.verbose, config.log_file)

    if args.command in CONTROL_COMMANDS:
        asyncio.run(_run_client_command(args.command, config))
    else:
        asyncio.run(_run_daemon(config))


async def _run_client_command(command: str, config: DictationConfig) -> None:
    from voice_dictation.adapters.unix_control import UnixSocketControlClient

    client = UnixSocketControlClient(socket_path=config.socket_path)

    try:
        result = await client.send_command(command)
    except (ConnectionRefusedError, FileNotFoundError):
        print("Voice dictation is not running", file=sys.stderr)
        sys.exit(1)

    if result.get("status") != "ok":
        print(f"Error: {result.get('error', 'unknown')}", file=sys.stderr)
        sys.exit(1)
    print(result.get("state", ""))


async def _run_daemon(config: DictationConfig) -> None:
    from voice_dictation.factory import create_app

    recorder, control = create_app(config)

    shutdown_event = asyncio.Event()
    shutdown_triggered = False

    def handle_signal() -> None:
        nonlocal shutdown_triggered
        if shutdown_triggered:
            logging.warning("Forced exit")
            sys.exit(1)
        shutdown_triggered = True
        logging.info("Shutting down...")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)

    await control.start()
    logging.info("Voice dictation ready (server=%s)", config.stt_server_url)

    try:
        await shutdown_event.wait()
    finally:
        try:
            await asyncio.wait_for(recorder.close(), timeout=3.0)
        except asyncio.TimeoutError:
            logging.warning("Recorder did not shut down cleanly")
        await control.stop()
