from __future__ import annotations

import asyncio
from typing import Any

import pytest

from carbon_deploy.config import ConfirmationConfig
from carbon_deploy.confirmation import (
    ConfirmationPoller,
    ConfirmationStatus,
    wait_for_transaction_confirmation,
)
from carbon_deploy.errors import ConfirmationTimeoutError, ExecutionFailure
from carbon_deploy.rpc_client import TransactionRecord

RUNNING = {"state": "Running"}
HALT = {"state": "Halt", "result": "0a00000000000000"}
FAULT = {"state": "Fault"}


class ScriptedAPI:
    """Returns queued responses in order and repeats the last one."""

    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls = 0

    def get_transaction(self, tx_hash: str) -> Any:
        index = min(self.calls, len(self.responses) - 1)
        self.calls += 1
        response = self.responses[index]
        if isinstance(response, Exception):
            raise response
        return response


class AsyncAPI(ScriptedAPI):
    async def get_transaction(self, tx_hash: str) -> Any:
        return ScriptedAPI.get_transaction(self, tx_hash)


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _wait(api: ScriptedAPI, sleep: SleepRecorder, **kwargs: Any):
    return asyncio.run(wait_for_transaction_confirmation(api, "h", sleep=sleep, **kwargs))


def test_success_on_third_attempt_after_two_sleeps() -> None:
    api = ScriptedAPI(RUNNING, RUNNING, HALT)
    sleep = SleepRecorder()

    outcome = _wait(api, sleep)

    assert outcome.status is ConfirmationStatus.SUCCESS
    assert outcome.tx.result == HALT["result"]
    assert api.calls == 3
    assert sleep.delays == [1.0, 1.0]


def test_failure_waits_for_debug_comment() -> None:
    failure_detail_attempts = 6
    responses = [FAULT] * (failure_detail_attempts + 1) + [
        {"state": "Fault", "debugComment": "  insufficient KCAL  "}
    ]
    api = ScriptedAPI(*responses)

    outcome = _wait(api, SleepRecorder(), failure_detail_attempts=failure_detail_attempts)

    assert outcome.status is ConfirmationStatus.FAILURE
    assert outcome.message == "insufficient KCAL"
    assert api.calls == failure_detail_attempts + 2


def test_failure_without_comment_falls_back_to_result_then_state() -> None:
    outcome = _wait(ScriptedAPI({"state": "Fault", "result": "ff"}), SleepRecorder(), failure_detail_attempts=0)
    assert outcome.message == "Execution result: ff"

    outcome = _wait(ScriptedAPI(FAULT), SleepRecorder(), failure_detail_attempts=1)
    assert outcome.message == "State: Fault"

    outcome = _wait(ScriptedAPI({"state": ""}), SleepRecorder(), failure_detail_attempts=0)
    assert outcome.message == "State: unknown"


def test_failure_with_comment_is_immediate() -> None:
    api = ScriptedAPI({"state": "Break", "debugComment": "boom"})
    outcome = _wait(api, SleepRecorder())
    assert outcome.status is ConfirmationStatus.FAILURE
    assert outcome.message == "boom"
    assert api.calls == 1


def test_timeout_after_max_attempts() -> None:
    api = ScriptedAPI(RUNNING)
    sleep = SleepRecorder()

    outcome = _wait(api, sleep, max_attempts=3)

    assert outcome.status is ConfirmationStatus.TIMEOUT
    assert api.calls == 3
    assert len(sleep.delays) == 2


def test_fetch_errors_are_not_terminal(caplog: pytest.LogCaptureFixture) -> None:
    api = ScriptedAPI(ConnectionError("reset"), None, HALT)
    outcome = _wait(api, SleepRecorder())
    assert outcome.ok
    assert api.calls == 3
    assert "getTransaction(h) failed" in caplog.text


def test_budgets_are_clamped() -> None:
    api = ScriptedAPI(RUNNING)
    sleep = SleepRecorder()
    outcome = _wait(api, sleep, max_attempts=0, delay_ms=1)
    assert outcome.status is ConfirmationStatus.TIMEOUT
    assert api.calls == 1
    assert sleep.delays == []

    sleep = SleepRecorder()
    _wait(ScriptedAPI(RUNNING), sleep, max_attempts=2, delay_ms=5)
    assert sleep.delays == [0.1]


def test_async_client_is_awaited() -> None:
    outcome = _wait(AsyncAPI(RUNNING, HALT), SleepRecorder())
    assert outcome.ok


def test_poller_uses_config_and_outcome_raises() -> None:
    sleep = SleepRecorder()
    poller = ConfirmationPoller(ScriptedAPI(RUNNING), ConfirmationConfig(max_attempts=2, delay_ms=250), sleep=sleep)

    outcome = asyncio.run(poller.wait("abc"))

    assert sleep.delays == [0.25]
    with pytest.raises(ConfirmationTimeoutError, match="Transaction abc confirmation timed out"):
        outcome.raise_for_status("abc")

    failed = _wait(ScriptedAPI({"state": "Fault", "debugComment": "bad"}), SleepRecorder())
    with pytest.raises(ExecutionFailure, match="Transaction abc failed: bad"):
        failed.raise_for_status("abc")


def test_record_from_payload() -> None:
    record = TransactionRecord.from_payload({"state": "Halt", "result": "00", "debugComment": None}, "h")
    assert record.hash == "h"
    assert record.is_halted
    assert record.debug_comment is None
