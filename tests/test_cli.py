"""Tests for CLI commands and helper functions."""

import json
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from mail_relay.cli import main, run_async, settings_summary
from mail_relay.config import load_settings
from mail_relay.errors import ConnectFailedError
from mail_relay.relay import DeliveryOutcome


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.ini"
    path.write_text("""
[smtp]
host = smtp.example.com
port = 587
username = mailer
password = secret
""")
    return path


def test_run_async():
    async def async_func():
        return 42

    assert run_async(async_func()) == 42


def test_settings_summary_masks_secrets(config_file):
    summary = settings_summary(load_settings(config_file, environ={"RELAY_API_TOKEN": "tok"}))

    assert summary["smtp_host"] == "smtp.example.com"
    assert summary["smtp_use_tls"] is True
    assert summary["smtp_username"] == "mailer"
    assert summary["smtp_password"] == "***"
    assert summary["api_token"] == "***"


def test_config_command_json(runner, config_file):
    result = runner.invoke(main, ["--config", str(config_file), "config", "--json"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["smtp_port"] == 587
    assert "secret" not in result.output


def test_config_command_table(runner, config_file):
    result = runner.invoke(main, ["--config", str(config_file), "config"])

    assert result.exit_code == 0, result.output
    assert "smtp_host" in result.output
    assert "smtp.example.com" in result.output


def test_send_command_success(runner, config_file):
    deliver = AsyncMock(return_value=DeliveryOutcome.sent(("b@y.com",)))
    with patch("mail_relay.cli.MailRelay.deliver", deliver):
        result = runner.invoke(main, [
            "--config", str(config_file), "send",
            "--from", "a@x.com", "--to", "b@y.com", "--subject", "Hi", "--text", "aGVsbG8=",
            "--encoding", "base64",
        ])

    assert result.exit_code == 0, result.output
    assert "Mail sent to b@y.com" in result.output
    request = deliver.await_args.args[0]
    assert request.from_addr == "a@x.com"
    assert request.to == ["b@y.com"]
    assert request.encoding.value == "base64"


def test_send_command_delivery_failure(runner, config_file):
    outcome = DeliveryOutcome.failed(("b@y.com",), ConnectFailedError("refused"))
    with patch("mail_relay.cli.MailRelay.deliver", AsyncMock(return_value=outcome)):
        result = runner.invoke(main, [
            "--config", str(config_file), "send",
            "--from", "a@x.com", "--to", "b@y.com", "--text", "hello",
        ])

    assert result.exit_code == 1


def test_send_command_invalid_input(runner, config_file):
    result = runner.invoke(main, [
        "--config", str(config_file), "send",
        "--from", "not-an-address", "--to", "b@y.com", "--text", "hello",
    ])

    assert result.exit_code == 2


def test_serve_command_runs_uvicorn(runner, config_file):
    with patch("uvicorn.run") as run:
        result = runner.invoke(main, ["--config", str(config_file), "serve", "--port", "4000", "--workers", "2"])

    assert result.exit_code == 0, result.output
    args, kwargs = run.call_args
    assert args == ("mail_relay.server:app",)
    assert kwargs["port"] == 4000
    assert kwargs["workers"] == 2
    assert kwargs["host"] == "0.0.0.0"


def test_serve_passes_a_valid_log_level(runner, tmp_path):
    config_file = tmp_path / "config.ini"
    config_file.write_text("[logging]\nlevel = verbose\n")
    with patch("uvicorn.run") as run:
        result = runner.invoke(main, ["--config", str(config_file), "serve"])

    assert result.exit_code == 0, result.output
    assert run.call_args.kwargs["log_level"] == "info"
