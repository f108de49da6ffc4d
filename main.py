import argparse
import json
import signal
import sys

from config import load_config, require_client_credentials, validate_config
from constants import COMMANDS
from managers.command_dispatcher import CommandDispatcher
from managers.status_publisher import StatusPublisher, status_json, status_once
from spotify_api.credential_manager import CredentialManager
from spotify_api.errors import AuthError, ConfigError
from utils.logger import log_error, log_info, setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="spotify-mini",
        description="Spotify now-playing status and transport controls.",
    )
    parser.add_argument("--mode", choices=["status", "ui", "daemon"], default="status",
                        help="status: print status JSON once; ui: interactive player; daemon: keep the status file fresh")
    parser.add_argument("--cmd", choices=list(COMMANDS), help="Run one transport command and exit")
    parser.add_argument("--logout", action="store_true", help="Forget the stored Spotify credential")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    return parser


def run_command(config: dict, manager: CredentialManager, command: str) -> int:
    try:
        credential = manager.authenticate()
    except AuthError as e:
        print(f"Auth error: {e}")
        return 1

    result = CommandDispatcher(config).dispatch(command, credential)
    if not result.ok:
        print(f"{command} failed: {result.message}")
        return 1
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config()
    except json.JSONDecodeError as e:
        print(f"Config file contains invalid JSON: {e}", file=sys.stderr)
        return 1
    except ConfigError as e:
        print(f"Error loading config: {e}", file=sys.stderr)
        return 1

    setup_logging("DEBUG" if args.verbose else config.get("log_level", "INFO"), config.get("log_file") or None)

    is_valid, errors = validate_config(config)
    if not is_valid:
        for error in errors:
            log_error(f"Config: {error}")
        return 1

    try:
        require_client_credentials(config)
    except ConfigError as e:
        log_error(str(e))
        return 1

    manager = CredentialManager(config)

    if args.logout:
        if manager.token_store.clear():
            log_info(f"Removed {manager.token_store.path}")
        else:
            log_info("No stored credential to remove")
        return 0

    if args.cmd:
        return run_command(config, manager, args.cmd)

    if args.mode == "daemon":
        publisher = StatusPublisher(config, manager)

        def shutdown(signum, frame):
            log_info(f"Received signal {signum}, shutting down...")
            publisher.stop()

        signal.signal(signal.SIGTERM, shutdown)
        try:
            publisher.run()
        except KeyboardInterrupt:
            pass
        return 0

    if args.mode == "ui":
        from menus.player_menu import player_menu

        try:
            player_menu(config, manager)
        except AuthError as e:
            log_error(f"Auth error: {e}")
            return 1
        except KeyboardInterrupt:
            pass
        return 0

    print(status_json(status_once(config, manager)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
