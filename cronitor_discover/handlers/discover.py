import sys
from typing import Optional, TextIO
from cronitor_discover.config import DiscoverOptions, Settings, effective_hostname
from cronitor_discover.config.logging import logger
from cronitor_discover.errors import EXIT_OK
from cronitor_discover.helpers.crontab_helpers import (
    FILE_ENCODING, FILE_ERRORS, UserLookup, manage_auto_discover, parse_crontab, read_crontab, render_crontab,
    system_user_exists, write_crontab,
)
from cronitor_discover.helpers.monitor_helpers import build_monitors
from cronitor_discover.helpers.registry_helpers import RegistryClient
from .shared import handle_errors, require_api_key


def write_output(out: TextIO, text: str) -> None:
    """Print crontab text, passing undecodable bytes through unchanged."""
    if not text.endswith("\n"):
        text += "\n"
    buffer = getattr(out, "buffer", None)
    if buffer is None:
        out.write(text)
        return
    out.flush()
    buffer.write(text.encode(FILE_ENCODING, FILE_ERRORS))
    buffer.flush()


@handle_errors
@require_api_key
def discover(options: DiscoverOptions, settings: Settings, client: Optional[RegistryClient] = None,
             is_user: UserLookup = system_user_exists, rng=None, out: Optional[TextIO] = None) -> int:
    """Sync crontab jobs with the registry and wrap them with monitoring."""
    out = out or sys.stdout
    raw_lines = read_crontab(options.crontab_path, save=options.save)

    lines = parse_crontab(raw_lines, is_user)
    lines = manage_auto_discover(lines, options, rng)

    hostname = effective_hostname(settings)
    monitors = build_monitors(lines, options, hostname, settings.timezone, settings.exclude_from_name)
    logger.info("Discovered %d monitorable jobs in %s", len(monitors), options.crontab_path)

    if monitors:
        client = client or RegistryClient(settings)
        client.put_monitors(monitors, is_auto=options.is_auto)

    updated = render_crontab(lines, no_stdout=options.no_stdout)

    if options.save:
        write_crontab(options.crontab_path, updated)
        print(f"Crontab {options.crontab_path} updated", file=out)
    else:
        write_output(out, updated)
    return EXIT_OK
