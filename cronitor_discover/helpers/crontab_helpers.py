import os
import re
import random
import shlex
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence, Tuple
from crontab import SPECIALS
from cronitor_discover.config import DiscoverOptions
from cronitor_discover.config.logging import logger
from cronitor_discover.errors import CrontabNotFoundError, CrontabPermissionError

if TYPE_CHECKING:
    from cronitor_discover.helpers.monitor_helpers import Monitor

# === CRONTAB SYNTAX ===
CRON_FIELD = re.compile(r"^[-,?*/0-9]+$")
AUTO_DISCOVER_COMMAND = re.compile(r"cronitor\s+discover\b")
LEGACY_INTEGRATION_DOMAINS = ("cronitor.io", "cronitor.link")
WRAPPER_PROGRAM = "cronitor"
WRAPPER_SUBCOMMAND = "exec"
NO_STDOUT_FLAG = "--no-stdout"

# Shorthand cadences in the order they are matched
CADENCES = ("yearly", "monthly", "weekly", "daily", "hourly")

# Flags that only make sense for the run that writes the auto-discover line
ONE_SHOT_FLAGS = ("--save", "--verbose", "-v", "--auto")

# Undecodable bytes (e.g. a Latin-1 comment) round-trip unchanged
FILE_ENCODING = "utf-8"
FILE_ERRORS = "surrogateescape"

UserLookup = Callable[[str], bool]


@dataclass
class CrontabLine:
    """One physical line of a crontab file."""
    index: int
    raw: Optional[str]
    schedule: str = ""
    command_tokens: Tuple[str, ...] = ()
    run_as: str = ""
    code: str = ""
    monitor: Optional["Monitor"] = field(default=None, repr=False)

    @property
    def command(self) -> str:
        return " ".join(self.command_tokens)

    @property
    def is_six_field(self) -> bool:
        return len(self.schedule.split()) == 6

    @property
    def is_auto_discover(self) -> bool:
        return bool(AUTO_DISCOVER_COMMAND.search(self.command.lower()))

    @property
    def is_monitorable(self) -> bool:
        if not self.schedule or not self.command_tokens:
            return False
        if shorthand_name(self.schedule) == "reboot":
            return False
        return not any(domain in self.command for domain in LEGACY_INTEGRATION_DOMAINS)


# === SHORTHAND SCHEDULES ===
def shorthand_name(schedule: str) -> Optional[str]:
    """Canonical cadence for an @-shorthand schedule, e.g. @annually -> yearly."""
    if not schedule.startswith("@"):
        return None
    name = schedule[1:].lower()
    if SPECIALS.get(name) == "@reboot":
        return "reboot"
    for cadence in CADENCES:
        if name.startswith(cadence) or SPECIALS.get(name) == SPECIALS[cadence]:
            return cadence
    return None


# === LINE PARSER ===
def split_schedule(tokens: Sequence[str]) -> Tuple[int, int]:
    """Return (schedule_span, command_start) for a tokenized line.

    Decision table:
      - first token starts with '@'          -> 1 schedule token
      - fewer than 6 tokens                   -> no schedule, no command
      - >= 7 tokens and token[5] is a field   -> 6 schedule tokens
      - otherwise                             -> 5 schedule tokens
    """
    if tokens and tokens[0].startswith("@"):
        return 1, 1
    if len(tokens) < 6:
        return 0, len(tokens)
    if len(tokens) >= 7 and CRON_FIELD.match(tokens[5]):
        return 6, 6
    return 5, 5


def system_user_exists(name: str) -> bool:
    """True if name is a valid account on this (non-Windows) host."""
    if os.name == "nt":
        return False
    import pwd
    try:
        pwd.getpwnam(name)
        return True
    except KeyError:
        return False


def extract_wrapper_code(command: Sequence[str]) -> Tuple[str, Tuple[str, ...]]:
    """Split `cronitor [flags] exec CODE cmd...` into (CODE, cmd)."""
    if not command or os.path.basename(command[0]) != WRAPPER_PROGRAM:
        return "", tuple(command)
    idx = 1
    while idx < len(command) and command[idx].startswith("-"):
        idx += 1
    if idx + 1 < len(command) and command[idx] == WRAPPER_SUBCOMMAND:
        return command[idx + 1], tuple(command[idx + 2:])
    return "", tuple(command)


def parse_line(index: int, raw: str, is_user: UserLookup = system_user_exists) -> CrontabLine:
    """Parse one raw line; bad input yields a non-monitorable record."""
    line = CrontabLine(index=index, raw=raw)
    stripped = raw.strip()
    if not stripped or stripped.startswith("#"):
        return line

    tokens = stripped.split()
    span, start = split_schedule(tokens)
    if not span:
        return line

    command = tokens[start:]
    if len(command) > 1 and is_user(command[0]):
        line.run_as = command[0]
        command = command[1:]

    line.schedule = " ".join(tokens[:span])
    line.code, line.command_tokens = extract_wrapper_code(command)
    return line


def parse_crontab(raw_lines: Sequence[str], is_user: UserLookup = system_user_exists) -> List[CrontabLine]:
    """Parse every line of a crontab, keeping order and indices."""
    return [parse_line(i, raw, is_user) for i, raw in enumerate(raw_lines)]


# === AUTO-DISCOVER ===
def build_auto_discover_command(options: DiscoverOptions) -> str:
    """Rebuild the current invocation as a location-independent scheduled run."""
    invocation = list(options.invocation) or [WRAPPER_PROGRAM]
    program = invocation[0]
    if WRAPPER_PROGRAM not in os.path.basename(program):
        program = WRAPPER_PROGRAM

    absolute_path = os.path.abspath(options.crontab_path)
    args = []
    for token in invocation[1:]:
        if token in ONE_SHOT_FLAGS or token == "discover":
            continue
        args.append(absolute_path if token == options.crontab_path else token)

    return " ".join(shlex.quote(t) for t in [program, "discover", "--auto"] + args)


def create_auto_discover_line(options: DiscoverOptions, index: int, six_field: bool,
                              minute: int) -> CrontabLine:
    schedule = f"{minute} * * * *"
    if six_field:
        schedule = f"0 {schedule}"
    command = build_auto_discover_command(options)
    return CrontabLine(index=index, raw=None, schedule=schedule, command_tokens=tuple(command.split()))


def manage_auto_discover(lines: List[CrontabLine], options: DiscoverOptions,
                         rng: Optional[random.Random] = None) -> List[CrontabLine]:
    """Keep, remove or add the self-scheduling line."""
    existing = find_auto_discover_line(lines)
    if options.no_auto_discover:
        if existing is not None:
            logger.info("Removing auto-discover line from %s", options.crontab_path)
        return [line for line in lines if not line.is_auto_discover]
    if existing is not None:
        return list(lines)

    # Insert before trailing blank lines so the file keeps its final newline
    position = len(lines)
    while position > 0 and lines[position - 1].raw is not None and not lines[position - 1].raw.strip():
        position -= 1

    minute = (rng or random).randint(0, 59)
    six_field = any(line.is_six_field for line in lines)
    auto_line = create_auto_discover_line(options, position, six_field, minute)
    logger.info("Adding auto-discover line: %s %s", auto_line.schedule, auto_line.command)
    return lines[:position] + [auto_line] + lines[position:]


def find_auto_discover_line(lines: Sequence[CrontabLine]) -> Optional[CrontabLine]:
    return next((line for line in lines if line.is_auto_discover), None)


# === LINE RECONSTRUCTOR ===
def assigned_code(line: CrontabLine) -> str:
    return line.monitor.code if line.monitor is not None else ""


def render_line(line: CrontabLine, no_stdout: bool = False) -> str:
    """Serialize a line, wrapping it when a new code was assigned."""
    code = assigned_code(line)
    if line.raw is not None and (not line.is_monitorable or line.code or not code):
        return line.raw

    parts = [line.schedule, line.run_as]
    if code:
        parts.append(WRAPPER_PROGRAM)
        if no_stdout:
            parts.append(NO_STDOUT_FLAG)
        parts.extend([WRAPPER_SUBCOMMAND, code])
    parts.append(line.command)
    return " ".join(part for part in parts if part)


def render_crontab(lines: Sequence[CrontabLine], no_stdout: bool = False) -> str:
    return "\n".join(render_line(line, no_stdout) for line in lines)


# === FILE I/O ===
def read_crontab(path: str, save: bool = False) -> List[str]:
    """Read crontab lines; with save, check the file can be written back first."""
    if not os.path.exists(path):
        raise CrontabNotFoundError(f"the file {path} does not exist")
    try:
        with open(path, "r", encoding=FILE_ENCODING, errors=FILE_ERRORS, newline="") as f:
            content = f.read()
    except OSError:
        raise CrontabPermissionError(
            f"the crontab file at {path} could not be read; check permissions and try again")

    if save:
        write_crontab(path, content)

    return content.split("\n")


def write_crontab(path: str, content: str) -> None:
    """Rewrite the crontab in place.

    The symlink target is opened and truncated rather than replaced, so the
    owner, group, mode and any links to the file stay as they were.
    """
    target = os.path.realpath(path)
    try:
        with open(target, "w", encoding=FILE_ENCODING, errors=FILE_ERRORS, newline="") as f:
            f.write(content)
    except OSError:
        raise CrontabPermissionError(
            f"the --save option is supplied but the file at {path} could not be written; "
            "check permissions and try again")
    logger.debug("Wrote %d characters to %s", len(content), target)
