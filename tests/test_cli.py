from __future__ import annotations

import json
from pathlib import Path

import pytest

from carbon_deploy import cli
from carbon_deploy.config import ConfirmationConfig


def test_to_base_units(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["to-base-units", "1.5", "--decimals", "8"])
    assert capsys.readouterr().out.strip() == "150000000"


def test_to_base_units_rejects_excess_precision(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["to-base-units", "0.001", "--decimals", "2"])
    assert excinfo.value.code == 1
    assert "Fractional precision exceeds decimals (2)" in capsys.readouterr().err


def test_from_base_units(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["from-base-units", "150000000", "--decimals", "8"])
    assert capsys.readouterr().out.strip() == "1.5"


def test_royalties(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["royalties", "2.5"])
    assert capsys.readouterr().out.strip() == "25000000"

    with pytest.raises(SystemExit):
        cli.main(["royalties", "  "])
    assert "Royalties percentage is required" in capsys.readouterr().err


def test_validate_schemas_defaults(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["--json", "validate-schemas"])
    summary = json.loads(capsys.readouterr().out)
    assert "name:String" in summary["rom"]
    assert "royalties:Int32" in summary["rom"]
    assert summary["ram"] == []


def test_validate_schemas_reports_errors(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    path = tmp_path / "schemas.json"
    path.write_text("[1, 2]")
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["validate-schemas", str(path)])
    assert excinfo.value.code == 1
    assert "must be an object" in capsys.readouterr().err


class HaltedRPC:
    def __init__(self, payload: dict) -> None:
        self.payload = payload

    def get_transaction(self, tx_hash: str) -> dict:
        return self.payload


def _patch_status(monkeypatch: pytest.MonkeyPatch, payload: dict) -> None:
    monkeypatch.setattr(cli, "_client", lambda args: HaltedRPC(payload))
    monkeypatch.setattr(
        cli,
        "load_confirmation_config",
        lambda overrides=None: ConfirmationConfig(max_attempts=1, delay_ms=100, failure_detail_attempts=0),
    )


def test_tx_status_success(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    _patch_status(monkeypatch, {"state": "Halt", "result": "01"})

    cli.main(["--json", "tx-status", "abc"])

    data = json.loads(capsys.readouterr().out)
    assert data == {"hash": "abc", "status": "success", "state": "Halt", "result": "01"}


def test_tx_status_failure_exits_with_two(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    _patch_status(monkeypatch, {"state": "Fault", "debugComment": "out of gas"})

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["--json", "tx-status", "abc"])

    assert excinfo.value.code == 2
    data = json.loads(capsys.readouterr().out)
    assert data["status"] == "failure"
    assert data["message"] == "out of gas"


def test_nfts_rejects_bad_token_id(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.setattr(cli, "_client", lambda args: HaltedRPC({}))
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["nfts", "abc"])
    assert excinfo.value.code == 1
    assert "Carbon token id must be a valid integer" in capsys.readouterr().err
