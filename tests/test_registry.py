import json
import subprocess

import pytest
import requests

from extension_metrics.exceptions import TransportError
from extension_metrics.registry import NpmRegistryClient


class FakeResponse:
    def __init__(self, payload=None, status_code=200, reason="OK"):
        self.payload = payload
        self.status_code = status_code
        self.reason = reason
        self.text = json.dumps(payload)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self.payload

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, responses):
        self.responses = responses
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append((url, params, headers))
        response = self.responses[url]
        if isinstance(response, Exception):
            raise response
        return response


REGISTRY = "https://registry.test"


def test_search_extensions_builds_query():
    session = FakeSession({
        f"{REGISTRY}/-/v1/search": FakeResponse({"objects": [{"package": {"name": "a"}}]}),
    })
    client = NpmRegistryClient(REGISTRY, page_size=50, session=session)

    result = client.search_extensions("", page=2)

    assert result["objects"][0]["package"]["name"] == "a"
    _, params, _ = session.requests[0]
    assert params == {"text": 'keywords:"jupyterlab-extension"', "size": "50", "from": "100"}


def test_failed_search_is_an_empty_page():
    session = FakeSession({f"{REGISTRY}/-/v1/search": FakeResponse(None, 503, "Unavailable")})
    client = NpmRegistryClient(REGISTRY, session=session)

    assert client.search("anything") == {"objects": []}


def test_metadata_errors_raise_transport_error():
    session = FakeSession({f"{REGISTRY}/missing": FakeResponse({"error": "not found"}, 404, "Not Found")})
    client = NpmRegistryClient(REGISTRY, session=session)

    with pytest.raises(TransportError) as excinfo:
        client.fetch_package_metadata("missing")

    assert excinfo.value.status_code == 404


def test_network_errors_raise_transport_error():
    session = FakeSession({f"{REGISTRY}/pkg/latest": requests.ConnectionError("boom")})
    client = NpmRegistryClient(REGISTRY, session=session)

    with pytest.raises(TransportError):
        client.fetch_package_metadata_for_version("pkg")


def test_publish_times_from_npm_cli(monkeypatch):
    calls = []

    def fake_run(cmd, capture_output, text, timeout):
        calls.append(cmd)
        stdout = json.dumps({"created": "2019-01-01T00:00:00Z", "1.0.0": "2019-01-01T00:00:00Z"})
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    client = NpmRegistryClient(REGISTRY, session=FakeSession({}))

    times = client.fetch_publish_times("pkg")

    assert times["1.0.0"] == "2019-01-01T00:00:00Z"
    assert calls[0][:5] == ["npm", "view", "pkg", "time", "--json"]


def test_npm_cli_failure_raises_transport_error(monkeypatch):
    def fake_run(cmd, capture_output, text, timeout):
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="E404")

    monkeypatch.setattr(subprocess, "run", fake_run)
    client = NpmRegistryClient(REGISTRY, session=FakeSession({}))

    with pytest.raises(TransportError):
        client.fetch_versions("pkg")


def test_falls_back_to_packument_without_npm(monkeypatch):
    def fake_run(cmd, capture_output, text, timeout):
        raise FileNotFoundError("npm")

    monkeypatch.setattr(subprocess, "run", fake_run)
    packument = {
        "versions": {"1.0.0": {}, "1.1.0": {}},
        "time": {"modified": "2020-01-01T00:00:00Z", "1.0.0": "2019-01-01T00:00:00Z"},
    }
    session = FakeSession({f"{REGISTRY}/pkg": FakeResponse(packument)})
    client = NpmRegistryClient(REGISTRY, session=session)

    assert client.fetch_versions("pkg") == ["1.0.0", "1.1.0"]
    assert client.fetch_publish_times("pkg")["modified"] == "2020-01-01T00:00:00Z"


def test_single_version_from_npm_cli(monkeypatch):
    def fake_run(cmd, capture_output, text, timeout):
        return subprocess.CompletedProcess(cmd, 0, stdout='"1.0.0"', stderr="")

    monkeypatch.setattr(subprocess, "run", fake_run)
    client = NpmRegistryClient(REGISTRY, session=FakeSession({}))

    assert client.fetch_versions("pkg") == ["1.0.0"]
