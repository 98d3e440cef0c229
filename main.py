# main.py

"""Entry point for the AI price analyzer (TUI or headless CLI)."""

import argparse
import asyncio
import logging
import sys

from price_analyzer.config.logging_config import setup_logging
from price_analyzer.config.settings import Settings

logger = logging.getLogger("price_analyzer.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="ai-price-analyzer",
        description=(
            "Product price analysis with a chat-completion model: "
            "competitor and used-market price search."
        ),
        epilog=f"Default model: {Settings.DEFAULT_MODEL}",
    )
    parser.add_argument(
        "-p",
        "--products",
        default=None,
        help="CSV file with products. Omit (and --demo) for the TUI.",
    )
    parser.add_argument(
        "--demo",
        action="store_true",
        default=False,
        help="Add the built-in demo products.",
    )
    parser.add_argument(
        "-k",
        "--kind",
        choices=["competitor", "used"],
        default="competitor",
        help="Price search kind (default: competitor).",
    )
    parser.add_argument(
        "-c",
        "--command",
        default=None,
        help="Run one free-text command instead of a batch search.",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["json", "table"],
        default="json",
        dest="output_format",
        help="Output format (default: json).",
    )
    parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Write the updated products to this CSV file.",
    )
    parser.add_argument(
        "--prompt-file",
        default=None,
        dest="prompt_file",
        help="Custom competitor prompt template ({PRODUCT_NAME} slot).",
    )
    parser.add_argument(
        "--test-connection",
        action="store_true",
        default=False,
        dest="test_connection",
        help="Check connectivity to the model API and exit.",
    )
    return parser


def _run_tui() -> None:
    """Launch the interactive Textual TUI."""
    from price_analyzer.ui.app import PriceAnalyzerApp

    try:
        app = PriceAnalyzerApp()
        app.run()
    except Exception:
        logger.critical("Fatal error during TUI run", exc_info=True)
        raise
    finally:
        logger.info("price analyzer TUI shutting down")


def _run_batch(args: argparse.Namespace) -> None:
    """Run a headless batch search and exit."""
    from price_analyzer.cli.runner import cli_batch

    exit_code = asyncio.run(
        cli_batch(
            products_csv=args.products,
            kind=args.kind,
            output_format=args.output_format,
            output=args.output,
            demo=args.demo,
            prompt_file=args.prompt_file,
        )
    )
    sys.exit(exit_code)


def _run_command(args: argparse.Namespace) -> None:
    """Run a single free-text command and exit."""
    from price_analyzer.cli.runner import cli_command

    exit_code = asyncio.run(
        cli_command(
            command=args.command,
            products_csv=args.products,
            output_format=args.output_format,
            output=args.output,
            demo=args.demo,
        )
    )
    sys.exit(exit_code)


def _run_connection_check() -> None:
    """Probe the model API."""
    from price_analyzer.cli.runner import run_connection_check

    exit_code = asyncio.run(run_connection_check())
    sys.exit(exit_code)


def main() -> None:
    """Route to TUI (no products given) or headless CLI."""
    parser = _build_parser()
    args = parser.parse_args()

    use_tui = (
        not args.test_connection
        and args.command is None
        and args.products is None
        and not args.demo
    )
    log_file = setup_logging(console=not use_tui)
    logger.info("price analyzer starting, log file: %s", log_file)

    if args.test_connection:
        _run_connection_check()
    elif args.command is not None:
        _run_command(args)
    elif use_tui:
        _run_tui()
    else:
        _run_batch(args)


if __name__ == "__main__":
    main()
