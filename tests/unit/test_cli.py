"""Unit tests for the operational CLI."""

from __future__ import annotations

import json
from urllib.parse import parse_qs, urlsplit

import pytest

from fedbridge import cli
from fedbridge.config import Settings
from fedbridge.connector import open_connector
from tests.support import ISSUER, FakeIdentityProvider, build_settings


@pytest.fixture
def cli_idp(monkeypatch: pytest.MonkeyPatch, idp: FakeIdentityProvider) -> FakeIdentityProvider:
    """Point the CLI at the fake identity provider."""
    settings = Settings(connector=build_settings(prompt_type="login"))

    async def _open(connector_settings, transport=None):
        return await open_connector(connector_settings, transport=idp.transport)

    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(cli, "open_connector", _open)
    return idp


def test_discover_prints_endpoints(cli_idp: FakeIdentityProvider, capsys) -> None:
    """discover reports the endpoints and login mode."""
    exit_code = cli.main(["discover"])

    report = json.loads(capsys.readouterr().out)
    assert exit_code == 0
    assert report["issuer"] == ISSUER
    assert report["mode"] == "oauth2"
    assert report["introspection_endpoint"] == f"{ISSUER}/oauth2/introspect"
    assert report["jwks_uri"] == f"{ISSUER}/oauth2/jwks"
    assert report["scopes"][0] == "openid"


def test_login_url_prints_offline_url(cli_idp: FakeIdentityProvider, capsys) -> None:
    """login-url embeds the state and offline access parameters."""
    exit_code = cli.main(["login-url", "--state", "state-1", "--offline-access"])

    url = json.loads(capsys.readouterr().out)["url"]
    query = parse_qs(urlsplit(url).query)
    assert exit_code == 0
    assert query["state"] == ["state-1"]
    assert query["access_type"] == ["offline"]
    assert query["prompt"] == ["login"]


def test_unknown_command_exits_with_usage_error() -> None:
    """Unknown commands are rejected by argparse."""
    with pytest.raises(SystemExit) as exc_info:
        cli.main(["rotate-keys"])

    assert exc_info.value.code == 2
