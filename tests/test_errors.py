from __future__ import annotations

import pytest

from carbon_deploy.errors import CarbonDeployError, ExecutionFailure, ensure_error, to_message


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("User cancelled", "User cancelled"),
        (ValueError("bad value"), "bad value"),
        ({"code": 4001}, '{"code": 4001}'),
        (KeyError(), "KeyError"),
    ],
)
def test_to_message_normalizes_thrown_values(raw, expected: str) -> None:
    assert to_message(raw) == expected


def test_ensure_error_keeps_exceptions() -> None:
    original = ExecutionFailure("abc", "out of gas")
    assert ensure_error(original) is original
    assert isinstance(ensure_error("boom"), CarbonDeployError)
    assert str(original) == "Transaction abc failed: out of gas"
