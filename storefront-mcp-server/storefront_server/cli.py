"""CLI entry point for Storefront MCP server."""

import argparse
import asyncio
import sys


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Storefront MCP Server - browse products and manage cart and wishlist"
    )
    parser.add_argument(
        "--session-file",
        help="Where to keep the session token (default: ~/.storefront_session.json)",
    )
    parser.add_argument(
        "--base-url",
        help="Commerce API base URL (default: STOREFRONT_BASE_URL or the public API)",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: STOREFRONT_LOG_LEVEL or INFO)",
    )

    args = parser.parse_args()

    from .config import Settings
    from .server import main as server_main

    settings = Settings.from_env()
    overrides = {
        "session_file": args.session_file,
        "base_url": args.base_url,
        "log_level": args.log_level,
    }
    settings = settings.model_copy(update={key: value for key, value in overrides.items() if value})

    try:
        asyncio.run(server_main(settings))
    except KeyboardInterrupt:
        print("\nShutting down...", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    main()
