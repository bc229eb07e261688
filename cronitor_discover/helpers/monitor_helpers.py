import os
import hashlib
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence
from cronitor_discover.config import DiscoverOptions
from cronitor_discover.helpers.crontab_helpers import CrontabLine, shorthand_name

# === MONITOR NAMING ===
MAX_NAME_LENGTH = 100
KEY_SEPARATOR = "-"
NAME_TRIM_CHARS = ">'\""
DEFAULT_EXCLUDE_FROM_NAME = (
    "> /dev/null",
    "2>&1",
    "/bin/bash -l -c",
    "/bin/bash -lc",
    "/bin/bash -c -l",
    "/bin/bash -cl",
)
MONITOR_TYPE = "heartbeat"
DEFAULT_TAGS = ("cron-job",)

# === RULES ===
NOT_ON_SCHEDULE = "not_on_schedule"
COMPLETE_PING_NOT_RECEIVED = "complete_ping_not_received"

# cadence -> (value, time unit, grace seconds)
COMPLETION_WINDOWS = {
    "yearly": ("365", "days", 86400),
    "monthly": ("31", "days", 86400),
    "weekly": ("7", "days", 86400),
    "daily": ("24", "hours", 3600),
    "hourly": ("1", "hours", 600),
}


@dataclass(frozen=True)
class Rule:
    rule_type: str
    value: str
    time_unit: str = ""
    grace_seconds: int = 0

    def to_dict(self) -> Dict:
        data = {"rule_type": self.rule_type, "value": self.value}
        if self.time_unit:
            data["time_unit"] = self.time_unit
        if self.grace_seconds:
            data["grace_seconds"] = self.grace_seconds
        return data


@dataclass
class Monitor:
    name: str
    key: str
    rules: List[Rule]
    tags: List[str] = field(default_factory=lambda: list(DEFAULT_TAGS))
    type: str = MONITOR_TYPE
    code: str = ""
    timezone: Optional[str] = None
    note: str = ""

    def to_dict(self) -> Dict:
        """Registry JSON representation; empty optional fields are omitted."""
        data = {
            "defaultName": self.name,
            "key": self.key,
            "rules": [rule.to_dict() for rule in self.rules],
            "tags": list(self.tags),
            "type": self.type,
        }
        if self.code:
            data["code"] = self.code
        if self.timezone:
            data["timezone"] = self.timezone
        if self.note:
            data["defaultNote"] = self.note
        return data


def truncate(text: str, length: int = MAX_NAME_LENGTH) -> str:
    return text[:length]


def create_name(line: CrontabLine, hostname: str, crontab_path: str,
                exclude_from_name: Sequence[str] = ()) -> str:
    """Human readable monitor name, e.g. `[web1] root /opt/job.sh`."""
    if line.is_auto_discover:
        return truncate(f"[{hostname}] Auto discover {crontab_path.strip()}")

    command = line.command
    for substr in tuple(exclude_from_name) + DEFAULT_EXCLUDE_FROM_NAME:
        if substr:
            command = command.replace(substr, "")

    command = truncate(command).strip().strip(NAME_TRIM_CHARS)
    run_as = f"{line.run_as} " if line.run_as else ""
    return truncate(f"[{hostname}] {run_as}{command.strip()}")


def create_key(line: CrontabLine, hostname: str) -> str:
    """Stable identity for a job: sha1 of host, command, schedule and run-as.

    Changing this input format re-keys every existing monitor.
    """
    command = line.command
    schedule = line.schedule
    if line.is_auto_discover:
        # Flags and the randomized minute must not change the identity
        command = " ".join(t for t in line.command_tokens if not t.startswith("-"))
        schedule = ""

    data = KEY_SEPARATOR.join([hostname, command, schedule, line.run_as])
    return hashlib.sha1(data.encode("utf-8")).hexdigest()


def create_rule(schedule: str) -> Rule:
    """Map a schedule onto the check that detects a missed run."""
    cadence = shorthand_name(schedule)
    if cadence in COMPLETION_WINDOWS:
        value, time_unit, grace_seconds = COMPLETION_WINDOWS[cadence]
        return Rule(COMPLETE_PING_NOT_RECEIVED, value, time_unit, grace_seconds)
    return Rule(NOT_ON_SCHEDULE, schedule)


def create_note(line: CrontabLine, crontab_path: str) -> str:
    if line.is_auto_discover:
        return f"Watching for schedule changes and new entries in {crontab_path}"
    return f"Discovered in {os.path.abspath(crontab_path)}:{line.index}"


def build_monitors(lines: Sequence[CrontabLine], options: DiscoverOptions, hostname: str,
                   timezone: Optional[str] = None,
                   exclude_from_name: Sequence[str] = ()) -> Dict[str, Monitor]:
    """Attach a Monitor to every monitorable line, keyed by dedup key."""
    exclusions = tuple(options.exclude_from_name) + tuple(exclude_from_name)
    monitors: Dict[str, Monitor] = {}
    for line in lines:
        if not line.is_monitorable:
            continue
        key = create_key(line, hostname)
        if key not in monitors:
            monitors[key] = Monitor(
                name=create_name(line, hostname, options.crontab_path, exclusions),
                key=key,
                rules=[create_rule(line.schedule)],
                code=line.code,
                timezone=timezone,
                note=create_note(line, options.crontab_path),
            )
        elif line.code and not monitors[key].code:
            monitors[key].code = line.code
        line.monitor = monitors[key]
    return monitors
