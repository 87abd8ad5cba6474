"""Tests for addrview/cli.py — Click CLI entry point."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from addrview.cli import cli
from addrview.exceptions import ConnectionFailedError, ServerError
from addrview.models import AddressSummary

from tests.conftest import SUBJECT, SUBJECT_CHECKSUMMED


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Point the CLI at an empty temp config so built-in defaults apply."""
    for var in ("ADDRVIEW_BASE_URL", "ADDRVIEW_PAGE_LENGTH", "ADDRVIEW_OUTPUT_FORMAT"):
        monkeypatch.delenv(var, raising=False)
    return str(tmp_path / "config.toml")


def invoke(runner: CliRunner, config_path: str, *args: str):
    return runner.invoke(
        cli, ["--config", config_path, "--format", "json", "--log-level", "ERROR", *args]
    )


# ── version ───────────────────────────────────────────────────────────────────


def test_cli_version(runner: CliRunner) -> None:
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "0.1.0" in result.output


# ── show ──────────────────────────────────────────────────────────────────────


def test_show_outputs_view(runner: CliRunner, config_path: str, backend: MagicMock) -> None:
    with patch("addrview.cli.get_backend", return_value=backend):
        result = invoke(runner, config_path, "show", SUBJECT)

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["subtitle"] == SUBJECT_CHECKSUMMED
    assert data["address"]["balance"] == "12.5"
    assert data["address"]["signed"] == 7
    assert len(data["transactions"]["rows"]) == 20
    assert data["contract_source"]["found"] is True
    backend.close.assert_awaited()


def test_show_degraded_is_still_success(
    runner: CliRunner, config_path: str, backend: MagicMock
) -> None:
    backend.get_summary.side_effect = ConnectionFailedError("refused")
    with patch("addrview.cli.get_backend", return_value=backend):
        result = invoke(runner, config_path, "show", SUBJECT)

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["degraded"] is True
    assert data["errors"]["summary"]["error"] == "connection_failed"
    assert data["address"]["count"] == 0


def test_show_contract_tab(runner: CliRunner, config_path: str, backend: MagicMock) -> None:
    backend.get_summary.return_value = AddressSummary(
        address_hash=SUBJECT, checksummed_address=SUBJECT_CHECKSUMMED, is_contract=True
    )
    with patch("addrview.cli.get_backend", return_value=backend):
        result = invoke(runner, config_path, "show", SUBJECT, "--tab", "contract")

    data = json.loads(result.stdout)
    assert data["title"] == "Contract Address"
    assert data["active_tab"] == "contract"
    assert data["internal_transactions"] is not None


def test_show_page_and_search(runner: CliRunner, config_path: str, backend: MagicMock) -> None:
    with patch("addrview.cli.get_backend", return_value=backend):
        result = invoke(
            runner, config_path, "show", SUBJECT,
            "--page-size", "10", "--search", "0xtx", "--page", "2", "--no-contract",
        )

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["transactions"]["page_index"] == 2
    assert data["transactions"]["page_size"] == 10
    assert data["transactions"]["search"] == "0xtx"
    assert "contract_source" not in data
    backend.find_contract.assert_not_awaited()


def test_show_unorderable_sort_column(
    runner: CliRunner, config_path: str, backend: MagicMock
) -> None:
    with patch("addrview.cli.get_backend", return_value=backend):
        result = invoke(runner, config_path, "show", SUBJECT, "--sort-column", "2")

    assert result.exit_code == 4
    backend.get_transactions_page.assert_not_awaited()


def test_show_invalid_address(runner: CliRunner, config_path: str) -> None:
    result = invoke(runner, config_path, "show", "not_an_address")
    assert result.exit_code == 4


def test_show_rejects_unlisted_page_size(runner: CliRunner, config_path: str) -> None:
    result = invoke(runner, config_path, "show", SUBJECT, "--page-size", "30")
    assert result.exit_code == 2  # click usage error


# ── traces / contract ─────────────────────────────────────────────────────────


def test_traces_command(runner: CliRunner, config_path: str, backend: MagicMock) -> None:
    with patch("addrview.cli.get_backend", return_value=backend):
        result = invoke(runner, config_path, "traces", SUBJECT)

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["count"] == 1
    assert data["internal_transactions"][0]["tx_hash"] == "0xtx0001"


def test_traces_server_error_exit_code(
    runner: CliRunner, config_path: str, backend: MagicMock
) -> None:
    backend.get_internal_traces.side_effect = ServerError("down", status_code=500)
    with patch("addrview.cli.get_backend", return_value=backend):
        result = invoke(runner, config_path, "traces", SUBJECT)
    assert result.exit_code == 2


def test_contract_command_not_found(
    runner: CliRunner, config_path: str, backend: MagicMock
) -> None:
    backend.find_contract.return_value = None
    with patch("addrview.cli.get_backend", return_value=backend):
        result = invoke(runner, config_path, "contract", SUBJECT)

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"address": SUBJECT, "found": False, "contract": None}


# ── config commands ───────────────────────────────────────────────────────────


def test_config_init(runner: CliRunner, tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    result = runner.invoke(cli, ["--config", str(config_path), "config", "init"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["status"] == "initialized"
    assert config_path.exists()


def test_config_init_already_exists(runner: CliRunner, tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("[backend]\n")
    result = runner.invoke(cli, ["--config", str(config_path), "config", "init"])
    assert json.loads(result.stdout)["status"] == "already_exists"


def test_config_init_force_backs_up(runner: CliRunner, tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text("[backend]\n")
    result = runner.invoke(cli, ["--config", str(config_path), "config", "init", "--force"])
    output = json.loads(result.stdout)
    assert output["status"] == "reinitialized"
    assert Path(output["backup_path"]).exists()


def test_config_show(runner: CliRunner, tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('[backend]\nbase_url = "https://explorer.example"\n')
    result = runner.invoke(cli, ["--config", str(config_path), "config", "show"])
    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["backend"]["base_url"] == "https://explorer.example"
    assert data["table"]["page_length"] == 20
