import pytest
import requests
from cronitor_discover.config import Settings
from cronitor_discover.errors import RegistryError
from cronitor_discover.helpers import registry_helpers
from cronitor_discover.helpers.monitor_helpers import Monitor, create_rule
from cronitor_discover.helpers.registry_helpers import RegistryClient, merge_codes


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else repr(body)

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


@pytest.fixture
def client():
    return RegistryClient(Settings(api_key="0123456789abcdef", api_url="https://registry.test/api/monitors"))


@pytest.fixture
def monitors():
    return {
        "new": Monitor(name="[web1] /a.sh", key="new", rules=[create_rule("0 5 * * *")]),
        "old": Monitor(name="[web1] /b.sh", key="old", rules=[create_rule("@daily")], code="keep"),
    }


def fake_put(calls, response):
    def put(url, **kwargs):
        calls.append((url, kwargs))
        if isinstance(response, Exception):
            raise response
        return response
    return put


def test_put_monitors_merges_codes(monkeypatch, client, monitors):
    calls = []
    body = [{"key": "new", "code": "abc123"}, {"key": "old", "code": "other"}, {"key": "unknown", "code": "zz"}]
    monkeypatch.setattr(registry_helpers.requests, "put", fake_put(calls, FakeResponse(body=body)))

    result = client.put_monitors(monitors)

    assert result["new"].code == "abc123"
    assert result["old"].code == "keep"
    url, kwargs = calls[0]
    assert url == "https://registry.test/api/monitors"
    assert kwargs["auth"] == ("0123456789abcdef", "")
    assert kwargs["headers"]["Content-Type"] == "application/json"
    assert [m["key"] for m in kwargs["json"]] == ["new", "old"]
    assert kwargs["json"][1]["code"] == "keep"


def test_auto_runs_are_flagged(monkeypatch, client, monitors):
    calls = []
    monkeypatch.setattr(registry_helpers.requests, "put", fake_put(calls, FakeResponse(body=[])))
    client.put_monitors(monitors, is_auto=True)
    assert calls[0][0] == "https://registry.test/api/monitors?auto-discover=1"


@pytest.mark.parametrize("response", [
    FakeResponse(status_code=401, body={"detail": "Invalid API key"}),
    FakeResponse(status_code=200, body=None, text="<html>oops</html>"),
    FakeResponse(status_code=200, body={"key": "new"}),
    requests.ConnectionError("connection refused"),
])
def test_put_monitors_failures(monkeypatch, client, monitors, response):
    monkeypatch.setattr(registry_helpers.requests, "put", fake_put([], response))
    with pytest.raises(RegistryError) as exc:
        client.put_monitors(monitors)
    assert "https://registry.test/api/monitors" in exc.value.message
    assert exc.value.exit_code == 1
    assert monitors["new"].code == ""


def test_merge_codes_ignores_junk(monitors):
    merge_codes(monitors, ["junk", {"key": "new"}, {"code": "x"}])
    assert monitors["new"].code == ""
    merge_codes(monitors, [{"key": "new", "code": "n1"}])
    assert monitors["new"].code == "n1"
