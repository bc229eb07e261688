import random
import pytest
from cronitor_discover.config import DiscoverOptions, Settings

API_KEY = "0123456789abcdef"


class FakeRegistry:
    """Stands in for RegistryClient; assigns sequential codes."""

    def __init__(self):
        self.calls = []

    def put_monitors(self, monitors, is_auto=False):
        self.calls.append(({k: m.to_dict() for k, m in monitors.items()}, is_auto))
        for n, monitor in enumerate(monitors.values()):
            if not monitor.code:
                monitor.code = f"c{len(self.calls)}{n}"
        return monitors


def only_root(token):
    return token == "root"


@pytest.fixture
def settings():
    return Settings(api_key=API_KEY, hostname="web1")


@pytest.fixture
def make_options(tmp_path):
    def factory(**kwargs):
        kwargs.setdefault("crontab_path", str(tmp_path / "crontab"))
        kwargs.setdefault("invocation", ("/usr/local/bin/cronitor", "discover", kwargs["crontab_path"]))
        return DiscoverOptions(**kwargs)
    return factory


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def is_user():
    return only_root
