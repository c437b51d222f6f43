#!/usr/bin/env python3
"""
chatpipe CLI - Command line interface for chatpipe.

Usage:
    chatpipe run                            # Console bot on stdin/stdout
    chatpipe run --bundle myapp.weather     # ... with extra bundles
    chatpipe serve                          # HTTP ingestion API
    chatpipe check-config --config-dir ./config
"""

import argparse
import asyncio
import importlib
import sys
from typing import Any

from chatpipe.bot import Bot
from chatpipe.core.config import configure_logging
from chatpipe.core.exceptions import BundleError, ChatpipeError

CHAT_FIELDS = ["service", "group", "text"]


def load_bundle(spec: str) -> Any:
    """Import a bundle given as ``module`` or ``module:attribute``."""
    module_name, _, attr = spec.partition(":")
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise BundleError(f"Cannot import bundle module {module_name!r}: {e}") from e

    if not attr:
        return module
    try:
        return getattr(module, attr)
    except AttributeError:
        raise BundleError(f"Module {module_name!r} has no attribute {attr!r}") from None


def build_bot(args) -> Bot:
    """Create a bot from the config directory and requested bundles."""
    bot = Bot(config_dir=args.config_dir)
    configure_logging(bot.config.logging)

    # Chat adapters always deliver service, group and text
    bot_settings = bot.config.bot.model_copy(update={"required_fields": tuple(CHAT_FIELDS)})
    bot.configure(bot.config.model_copy(update={"bot": bot_settings}))

    if not args.no_builtin:
        from chatpipe.bundles import builtin
        bot.use(builtin)

    for spec in args.bundle:
        bot.use(load_bundle(spec))

    return bot


def run_command(args):
    """Handle the run command."""
    bot = build_bot(args)
    asyncio.run(_run_async(bot))


async def _run_async(bot: Bot):
    """Async implementation of the run command."""
    from chatpipe.bundles import console

    bot.use(console)
    async with bot:
        await console.run_console(bot, sys.stdin)


def serve_command(args):
    """Handle the serve command."""
    import uvicorn

    from chatpipe.api.app import create_app

    bot = build_bot(args)
    settings = bot.config.server
    uvicorn.run(
        create_app(bot),
        host=args.host or settings.host,
        port=args.port or settings.port,
    )


def check_config_command(args):
    """Handle the check-config command."""
    bot = Bot(config_dir=args.config_dir)
    print(bot.config.model_dump_json(indent=2))
    print(f"✓ Configuration is valid (stages: {', '.join(bot.stage_names)})")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="chatpipe CLI - Message pipeline for chat bots",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config-dir",
        type=str,
        default=None,
        help="Directory containing settings.yaml (default: $CHATPIPE_CONFIG_DIR)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    bundle_parser = argparse.ArgumentParser(add_help=False)
    bundle_parser.add_argument(
        "--bundle",
        action="append",
        default=[],
        metavar="MODULE[:ATTR]",
        help="Bundle to register with the bot (repeatable)",
    )
    bundle_parser.add_argument(
        "--no-builtin",
        action="store_true",
        help="Do not register the built-in processors",
    )

    # run command
    run_parser = subparsers.add_parser(
        "run",
        parents=[bundle_parser],
        help="Run a console bot on stdin/stdout",
        description="Read one message per line from stdin and print replies.",
    )
    run_parser.set_defaults(func=run_command)

    # serve command
    serve_parser = subparsers.add_parser(
        "serve",
        parents=[bundle_parser],
        help="Run the HTTP ingestion API",
    )
    serve_parser.add_argument("--host", type=str, default=None, help="Override server.host")
    serve_parser.add_argument("--port", type=int, default=None, help="Override server.port")
    serve_parser.set_defaults(func=serve_command)

    # check-config command
    check_parser = subparsers.add_parser(
        "check-config",
        help="Load and print the configuration",
    )
    check_parser.set_defaults(func=check_config_command)

    # Parse and execute
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        args.func(args)
    except ChatpipeError as e:
        print(f"✗ {e.message}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
