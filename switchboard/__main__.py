"""
Switchboard CLI entry point.

Provides command-line access to the request pipeline and its utilities.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from switchboard import __version__
from switchboard.components import SwitchboardComponents
from switchboard.config.logging import get_logger, setup_logging
from switchboard.config.settings import Settings, load_settings


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="switchboard",
        description="Multi-provider LLM request orchestration with caching and fallback",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Switchboard {__version__}",
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

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Config command
    subparsers.add_parser(
        "config",
        help="Show current configuration",
    )

    # Chat command
    chat_parser = subparsers.add_parser(
        "chat",
        help="Send one message through the pipeline",
    )
    chat_parser.add_argument(
        "message",
        help='Message to send, e.g. "Summarize my site settings"',
    )
    chat_parser.add_argument(
        "--conversation-id",
        default=None,
        help="Continue an existing conversation (default: start a new one)",
    )
    chat_parser.add_argument(
        "--provider",
        default=None,
        help="Provider override for this request (default: LLM__PRIMARY_PROVIDER)",
    )
    chat_parser.add_argument(
        "--no-cache",
        action="store_true",
        help="Bypass the response cache for this request",
    )

    # Providers command
    subparsers.add_parser(
        "providers",
        help="List registered providers and whether an API key resolves",
    )

    # Cache-clear command
    cache_parser = subparsers.add_parser(
        "cache-clear",
        help="Invalidate cached responses",
    )
    cache_parser.add_argument(
        "--provider",
        default=None,
        help="Only invalidate entries for this provider (default: all)",
    )

    return parser


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)

    logger.info("\n=== Switchboard Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nPrimary Provider: {settings.llm.primary_provider}")
    logger.info(f"Fallback Provider: {settings.llm.fallback_provider or 'None'}")
    logger.info(f"Forced Provider: {settings.llm.forced_provider}")
    logger.info(f"Forced Provider Tools: {', '.join(settings.llm.forced_provider_tools)}")
    for provider, model in settings.llm.models.items():
        logger.info(f"  Model ({provider}): {model}")
    logger.info(f"Legacy API Keys: {', '.join(settings.llm.api_keys) or 'None'}")
    logger.info(f"Request Timeout: {settings.llm.request_timeout}s")
    logger.info(f"\nCache: {'enabled' if settings.cache.enabled else 'disabled'} ({settings.cache.backend})")
    logger.info(f"Cache Default TTL: {settings.cache.default_ttl}s")
    logger.info(f"History Backend: {settings.history.backend}")
    logger.info(f"Tool Conflict Exclusions: {', '.join(settings.tools.conflict_exclusions)}")

    return 0


def cmd_providers(settings: Settings) -> int:
    """List providers and credential availability."""
    logger = get_logger(__name__)

    registry = SwitchboardComponents(settings).create_registry()
    for name in registry.list_providers():
        config = registry.get_config(name)
        key_state = "key available" if registry.resolve_api_key(name) else "no key"
        logger.info(f"{name}: {config.default_model} ({key_state})")

    return 0


async def cmd_chat(args, settings: Settings) -> int:
    """
    Send a single message through the ConversationAdapter.

    Uses the configured history backend, so ``--conversation-id`` only
    resumes earlier turns when HISTORY__BACKEND=sqlite.
    """
    logger = get_logger(__name__)

    options = {}
    if args.provider:
        options["provider"] = args.provider
    if args.no_cache:
        options["no_cache"] = True

    adapter = SwitchboardComponents(settings).create_adapter()
    reply = await adapter.process_request(
        args.message,
        conversation_id=args.conversation_id,
        options=options,
    )

    print(reply["message"])
    logger.info(f"Conversation: {reply['conversation_id']}")
    return 0 if reply["status"] == "success" else 1


async def cmd_cache_clear(args, settings: Settings) -> int:
    """Invalidate cached responses for one provider or all of them."""
    logger = get_logger(__name__)

    if settings.cache.backend == "memory":
        logger.warning("Cache backend is in-memory; there is nothing persisted to clear")

    cache = SwitchboardComponents(settings).create_cache()
    removed = await cache.invalidate(args.provider)
    target = args.provider or "all providers"
    logger.info(f"Removed {removed} cached responses for {target}")
    return 0


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    # Setup logging
    setup_logging(settings)

    # Execute command
    if args.command == "config":
        return cmd_config(settings)
    elif args.command == "providers":
        return cmd_providers(settings)
    elif args.command == "chat":
        return asyncio.run(cmd_chat(args, settings))
    elif args.command == "cache-clear":
        return asyncio.run(cmd_cache_clear(args, settings))
    else:
        # Default: show help
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
