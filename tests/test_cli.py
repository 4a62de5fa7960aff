"""Tests for the command-line front end."""

from __future__ import annotations

import httpx
import pytest

from abuseportal import cli
from abuseportal.reporter.msrc import MSRCAbuseReporter

SUBMIT_ARGS = [
    "submit",
    "--incident-type", "Spam",
    "--threat-type", "IP Address",
    "--name", "Jane Doe",
    "--email", "jane@example.com",
    "--notes", "Outbound spam relay",
    "--delay-ms", "0",
]


@pytest.fixture
def targets_file(tmp_path, monkeypatch):
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "targets.txt"
    path.write_text("192.0.2.1\nnot-an-ip\n\n198.51.100.2\n")
    return path


def test_validate_reports_counts(targets_file, capsys):
    code = cli.main(["validate", "--threat-type", "IP Address", str(targets_file)])

    out = capsys.readouterr().out
    assert code == 1
    assert "2 valid, 1 invalid (3 total)" in out
    assert "  invalid: not-an-ip" in out


def test_validate_all_valid_exits_zero(tmp_path, monkeypatch, capsys):
    monkeypatch.setenv("CONFIG_DIR", str(tmp_path))
    path = tmp_path / "urls.txt"
    path.write_text("https://example.com/login\n")

    assert cli.main(["validate", "--threat-type", "URL", str(path)]) == 0
    assert "1 valid, 0 invalid (1 total)" in capsys.readouterr().out


def test_parser_rejects_unknown_threat_type():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["validate", "--threat-type", "Domain", "x.txt"])


def test_submit_requires_token(targets_file, monkeypatch, capsys):
    monkeypatch.delenv(cli.TOKEN_ENV, raising=False)

    assert cli.main([*SUBMIT_ARGS, str(targets_file)]) == 2
    assert f"{cli.TOKEN_ENV} is not set" in capsys.readouterr().err


def test_submit_rejects_incomplete_form(targets_file, monkeypatch, capsys):
    monkeypatch.setenv(cli.TOKEN_ENV, "token-123")
    args = [a if a != "jane@example.com" else "not-an-email" for a in SUBMIT_ARGS]

    assert cli.main([*args, str(targets_file)]) == 2
    assert capsys.readouterr().err.strip()


def test_submit_sends_valid_targets(targets_file, monkeypatch, recorder, capsys):
    monkeypatch.setenv(cli.TOKEN_ENV, "token-123")
    handler = recorder(lambda request: httpx.Response(200, json={"id": "ok"}))

    def fake_reporter(token, **kwargs):
        return MSRCAbuseReporter(token, transport=handler.transport)

    monkeypatch.setattr(cli, "MSRCAbuseReporter", fake_reporter)

    assert cli.main([*SUBMIT_ARGS, str(targets_file)]) == 0

    assert [body["sourceIp"] for body in handler.json_bodies()] == ["192.0.2.1", "198.51.100.2"]
    assert handler.requests[0].headers["Authorization"] == "Bearer token-123"
    assert "not-an-ip" in capsys.readouterr().out


def test_submit_failure_sets_exit_code(targets_file, monkeypatch, recorder):
    monkeypatch.setenv(cli.TOKEN_ENV, "token-123")
    handler = recorder(lambda request: httpx.Response(500, json={}))
    monkeypatch.setattr(
        cli,
        "MSRCAbuseReporter",
        lambda token, **kwargs: MSRCAbuseReporter(token, transport=handler.transport),
    )

    assert cli.main([*SUBMIT_ARGS, str(targets_file)]) == 1
