"""
HydraBot CLI entry point.

Initializes the bot and keeps it running until interrupted.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from hydrabot import __version__
from hydrabot.config.logging import LogContext, get_logger, setup_logging
from hydrabot.config.settings import Settings, load_settings
from hydrabot.errors import LockHeld

PROG = "hydrabot"


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        description="Discord bot for StarCraft communities: replay information and Twitch livestreams.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"HydraBot {__version__}",
    )

    parser.add_argument(
        "-t",
        "--test",
        action="store_true",
        help="Run initialization and exit",
    )

    parser.add_argument(
        "--cfg-path",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to the config directory (default: ~/.config/hydrabot/)",
    )

    parser.add_argument(
        "--cfg-cache",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to the cache directory (default: ~/.cache/hydrabot/)",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    return parser


def prog_error(message: str) -> str:
    """Format an error the way argparse does."""
    return f"{PROG}: error: {message}"


async def cmd_run(args: argparse.Namespace, settings: Settings, log: LogContext) -> int:
    """Initialize the bot, then run it unless --test was given."""
    # Imported here so --version and --help don't load discord.py
    from hydrabot.bot import HydraBot

    logger = get_logger(__name__)
    logger.info(f"Starting HydraBot {__version__}")
    logger.info(f"Environment: {settings.environment}")
    bot = HydraBot(settings, log)
    try:
        await bot.initialize()
    except LockHeld:
        print(prog_error("another instance is already running."), file=sys.stderr)
        return 1
    except Exception as e:
        print(prog_error(str(e)), file=sys.stderr)
        return 1

    try:
        if args.test:
            logger.info("Initialization succeeded; exiting (--test)")
            return 0
        await bot.launch()
        return 0
    finally:
        await bot.close()


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(prog_error(f"could not load settings: {e}"), file=sys.stderr)
        return 1

    # Command line paths and log level override the environment
    if args.cfg_path:
        settings.config_path = args.cfg_path.expanduser()
    if args.cfg_cache:
        settings.cache_path = args.cfg_cache.expanduser()
    if args.log_level:
        settings.log_level = args.log_level

    # Setup logging
    log = setup_logging(settings)

    try:
        return asyncio.run(cmd_run(args, settings, log))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
