"""Entry point for the ParkChat client."""

import getpass
import logging
import sys

from .client import ChatClient, ClientConfig
from .config import get_config_path, load_config
from .display import Renderer
from .exceptions import ConnectError
from .logging_manager import LogManager
from .prompt import InputLoop
from .session import Identity, Session

logger = logging.getLogger(__name__)


def _ask(label: str, *, secret: bool = False) -> str:
    if secret:
        return getpass.getpass(label).strip()
    return input(label).strip()


def prompt_credentials(config: dict) -> dict:
    """Ask for whatever the config file left out."""
    print(f"No credentials found in {get_config_path()}.")
    print("You will have to type out your data in order to log in.")
    if not config.get("nickname"):
        config["nickname"] = _ask("Nickname: ")
    if not config.get("password"):
        config["password"] = _ask("Password: ", secret=True)
    room = _ask(f"Choose the starting room [{config.get('start_room')}]: ")
    if room:
        config["start_room"] = room
    return config


def main():
    """Entry point for the terminal chat client."""
    config = load_config()

    log_manager = LogManager()
    log_manager.setup_logging(
        level=config.get("log_level", "INFO"),
        log_to_file=config.get("log_to_file", True),
        log_to_console=config.get("log_to_console", False),
        max_bytes=config.get("max_log_size_mb", 10) * 1024 * 1024,
        backup_count=config.get("log_backup_count", 5),
    )

    try:
        if not config.get("nickname") or not config.get("password"):
            config = prompt_credentials(config)
    except (EOFError, KeyboardInterrupt):
        print()
        sys.exit(1)

    if not config.get("nickname"):
        print("Error: a nickname is required.", file=sys.stderr)
        sys.exit(1)

    session = Session(Identity(config["nickname"], config.get("password", "")))
    client = ChatClient(session, Renderer(config), ClientConfig.from_dict(config))

    try:
        client.join_room(config.get("start_room") or "General")
        client.start()
        InputLoop(client).run()
    except ConnectError as e:
        logger.error("Fatal connection error: %s", e)
        print(f"\nError while connecting to the server: {e}", file=sys.stderr)
        client.close()
        sys.exit(1)
    except KeyboardInterrupt:
        print()
        client.close()


if __name__ == "__main__":
    main()
