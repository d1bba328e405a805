"""Command line interface.

Examples:
  dkb-scrape scrape all --from 01.01.2024 --to 31.01.2024
  dkb-scrape scrape DE12 4567 --from 01.01.2024 --to 31.01.2024 -v -o ./output
  dkb-scrape scrape all --from 01.01.2024 --to 31.01.2024 --mode file -d ./downloads
  dkb-scrape accounts --json
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from .config import (
    DEFAULT_DOWNLOAD_DIR,
    DEFAULT_OUTPUT_DIR,
    DEFAULT_SCREENSHOT_DIR,
    ExtractMode,
    ScraperConfig,
    load_credentials,
)
from .errors import ConfigurationError
from .logging_setup import configure_logging, install_secret_filter, level_from_flags
from .models import TimeRange
from .session import launch_chromium
from .workflow import EXIT_FAILURE, EXIT_OK, list_accounts, run_workflow

logger = logging.getLogger(__name__)


class UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    """Invalid invocations print help and exit with status 1."""

    def error(self, message):
        self.print_help(sys.stderr)
        self.exit(EXIT_FAILURE, f"\n{self.prog}: error: {message}\n")


def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument("-v", "--verbose", action="store_true", help="Log progress (INFO)")
    p.add_argument("-t", "--trace", action="store_true", help="Log everything, including extracted rows")
    p.add_argument("-s", "--screenshotDir", dest="screenshot_dir", default=str(DEFAULT_SCREENSHOT_DIR),
                   help="Directory for diagnostic screenshots (default: ./screenshots)")
    p.add_argument("-i", "--interactive-mode", dest="interactive", action="store_true",
                   help="Show the browser window")
    p.add_argument("--env-file", default=None, help="Read credentials from this .env file")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="dkb-scrape",
        description="Extract transactions from the DKB web banking",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    subparsers = parser.add_subparsers(dest="command", parser_class=_ArgumentParser)

    scrape = subparsers.add_parser("scrape", help="Export transactions of the selected accounts",
                                   formatter_class=argparse.RawDescriptionHelpFormatter)
    scrape.add_argument("accounts", nargs="*",
                        help="'all' or substrings of account names (IBAN / card number fragments)")
    scrape.add_argument("--from", dest="date_from", help="Start date (DD.MM.YYYY), required")
    scrape.add_argument("--to", dest="date_to", help="End date (DD.MM.YYYY), required")
    scrape.add_argument("-o", "--outputFolder", dest="output_folder", default=str(DEFAULT_OUTPUT_DIR),
                        help="Directory for JSON exports (default: ./output)")
    scrape.add_argument("--mode", choices=[m.value for m in ExtractMode], default=ExtractMode.ROWS.value,
                        help="rows: read the result table into JSON; file: save the portal's export file")
    scrape.add_argument("-d", "--download-dir", dest="download_dir", default=str(DEFAULT_DOWNLOAD_DIR),
                        help="Directory for exported files in --mode file (default: ./downloads)")
    scrape.add_argument("-b", "--balance", action="store_true", help="Also read the account balance")
    _add_common(scrape)
    scrape.set_defaults(func=cmd_scrape, command_parser=scrape)

    accounts = subparsers.add_parser("accounts", help="List the accounts available in the portal")
    accounts.add_argument("--json", action="store_true", help="Print accounts as JSON")
    _add_common(accounts)
    accounts.set_defaults(func=cmd_accounts, command_parser=accounts)

    return parser


def _build_config(args, **overrides) -> ScraperConfig:
    credentials, base_url = load_credentials(dotenv_path=Path(args.env_file) if args.env_file else None)
    install_secret_filter(credentials.pin)
    return ScraperConfig(
        credentials=credentials,
        base_url=base_url,
        interactive=args.interactive,
        screenshot_dir=Path(args.screenshot_dir),
        **overrides,
    )


def cmd_scrape(args, launcher=launch_chromium) -> int:
    if not args.accounts:
        raise UsageError("at least one account selector (or 'all') is required")
    try:
        time_range = TimeRange.parse(args.date_from, args.date_to)
    except ConfigurationError as e:
        raise UsageError(str(e)) from e
    if args.balance and args.mode == ExtractMode.FILE.value:
        raise UsageError("--balance cannot be combined with --mode file")

    config = _build_config(
        args,
        output_dir=Path(args.output_folder),
        download_dir=Path(args.download_dir),
        mode=ExtractMode(args.mode),
        include_balance=args.balance,
    )
    logger.info("Scraping %s for %s", ", ".join(args.accounts), time_range)
    return run_workflow(config, args.accounts, time_range, launcher=launcher).exit_code


def cmd_accounts(args, launcher=launch_chromium) -> int:
    config = _build_config(args)
    outcome = list_accounts(config, launcher=launcher)
    if not outcome.ok:
        return outcome.exit_code

    found = outcome.context.discovered or []
    if args.json:
        print(json.dumps(
            [{"id": a.identifier, "name": a.display_name, "type": a.type.value} for a in found],
            ensure_ascii=False, indent=2,
        ))
    else:
        for a in found:
            print(f"{a.display_name} ({a.type.value}) id={a.identifier}")
    return EXIT_OK


def main(argv=None, launcher=launch_chromium) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help(sys.stderr)
        return EXIT_FAILURE

    configure_logging(level_from_flags(args.verbose, args.trace))
    try:
        return args.func(args, launcher=launcher)
    except UsageError as e:
        args.command_parser.print_help(sys.stderr)
        print(f"\nerror: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except ConfigurationError as e:
        logger.error("%s", e)
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
