# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Relay service entry point.

Loads the configuration, enables the relay and runs until SIGINT or
SIGTERM.  Admitted inbound messages are logged; applications embedding
the relay register their own handlers instead.
"""

import argparse
import logging
import signal
import threading
from pathlib import Path

from tgrelay.config import ConfigError, RelayConfig
from tgrelay.logging import configure_logging
from tgrelay.messages import InboundMessage
from tgrelay.relay import TelegramRelay


logger = logging.getLogger(__name__)

START_NOTICE = "Telegram relay started."


def log_inbound_message(relay: TelegramRelay, message: InboundMessage) -> None:
    """Default handler: record admitted messages in the log."""
    del relay
    logger.info(
        "Message from chat %d at %s: %s",
        message.chat_id,
        message.timestamp.isoformat(timespec="seconds"),
        message.text,
    )


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        Exit code (0=success, 1=config error, 2=startup, 3=runtime error).
    """
    parser = argparse.ArgumentParser(
        description="Telegram Bot API relay",
        epilog=(
            "Long-polls a Telegram bot for messages and delivers queued "
            "outbound messages."
        ),
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help=(
            "Path to tgrelay.yaml config file"
            " (default: ~/.config/tgrelay/tgrelay.yaml)"
        ),
    )
    args = parser.parse_args(argv)

    configure_logging(
        level=logging.DEBUG if args.debug else logging.INFO,
        add_secret_filter=True,
    )

    logger.info("Telegram relay starting...")

    try:
        config = RelayConfig.from_yaml(config_path=args.config)
    except ConfigError as e:
        logger.critical("Configuration error: %s", e)
        return 1

    try:
        relay = TelegramRelay(config)
        relay.add_message_handler(log_inbound_message)
    except Exception as e:
        logger.exception("Failed to initialize relay: %s", e)
        return 2

    shutdown = threading.Event()

    def shutdown_handler(signum: int, frame: object) -> None:
        """Handle shutdown signals."""
        logger.info("Received signal %d, initiating shutdown...", signum)
        shutdown.set()

    signal.signal(signal.SIGINT, shutdown_handler)
    signal.signal(signal.SIGTERM, shutdown_handler)

    try:
        relay.enable()
        if config.notify_on_start:
            relay.enqueue_for_administrators(START_NOTICE)
        shutdown.wait()
        return 0
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal runtime error: %s", e)
        return 3
    finally:
        relay.stop()
