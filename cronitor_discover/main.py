import sys
import argparse
from typing import List, Optional
from cronitor_discover.config import DiscoverOptions, load_settings
from cronitor_discover.config.logging import install_api_key_filter, logger, set_verbosity
from cronitor_discover.errors import DiscoverError
from cronitor_discover.handlers import discover

DISCOVER_HELP = """
Parse a crontab file and create or update a heartbeat monitor for every job,
then wrap each job with `cronitor exec <code>`.

Examples:
  cronitor discover /path/to/crontab
  cronitor discover /path/to/crontab -e "/var/app/code/path/" -e "> /dev/null"
  cronitor discover /path/to/crontab --save

Unless --no-auto-discover is given, an hourly `cronitor discover --auto` entry
is added so new jobs and schedule changes are picked up automatically.
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="cronitor")
    subparsers = parser.add_subparsers(dest="command", required=True)

    cmd = subparsers.add_parser(
        "discover",
        help="Attach monitoring to new cron jobs and watch for schedule updates",
        description=DISCOVER_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    cmd.add_argument("crontab", help="Path to the crontab file")
    cmd.add_argument("-e", "--exclude-from-name", action="append", default=[], metavar="TEXT",
                     help="Substring to exclude from generated monitor names (repeatable)")
    cmd.add_argument("--save", action="store_true", help="Save the updated crontab file in place")
    cmd.add_argument("--no-auto-discover", action="store_true",
                     help="Do not attach an automatic discover job, or remove it if already attached")
    cmd.add_argument("--no-stdout", action="store_true",
                     help="Do not send job output to the registry when the job completes")
    cmd.add_argument("-v", "--verbose", action="store_true", help="Log requests and responses")
    cmd.add_argument("--api-key", help="API key (overrides CRONITOR_API_KEY and the config file)")
    cmd.add_argument("--config", help="Path to a YAML configuration file")
    cmd.add_argument("--hostname", help="Hostname used in monitor names and keys")
    cmd.add_argument("--auto", action="store_true", help=argparse.SUPPRESS)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    args = build_parser().parse_args(argv)
    set_verbosity(args.verbose)

    options = DiscoverOptions(
        crontab_path=args.crontab,
        exclude_from_name=tuple(args.exclude_from_name),
        no_auto_discover=args.no_auto_discover,
        no_stdout=args.no_stdout,
        save=args.save,
        is_auto=args.auto,
        verbose=args.verbose,
        invocation=tuple([sys.argv[0]] + list(argv)),
    )
    try:
        settings = load_settings({"api_key": args.api_key, "hostname": args.hostname}, path=args.config)
    except DiscoverError as e:
        logger.debug("Could not load settings", exc_info=True)
        print(f"Error: {e.message}", file=sys.stderr)
        return e.exit_code
    install_api_key_filter(settings.api_key)

    return discover.discover(options, settings)


if __name__ == "__main__":
    sys.exit(main())
