"""Confirmation polling for submitted Carbon transactions.

Execution failures and their diagnostics do not always appear in the same
poll, so two budgets are tracked separately: ``max_attempts`` bounds the whole
loop while ``failure_detail_attempts`` bounds how many extra polls a failed
transaction without a debug comment is given to produce one.
"""

from __future__ import annotations

import asyncio
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .config import ConfirmationConfig
from .errors import ConfirmationTimeoutError, ExecutionFailure
from .rpc_client import TransactionRecord

logger = logging.getLogger(__name__)

MIN_DELAY_MS = 100

SleepFn = Callable[[float], Awaitable[Any]]


class ConfirmationStatus(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ConfirmationOutcome:
    status: ConfirmationStatus
    tx: Optional[TransactionRecord] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, tx: TransactionRecord) -> "ConfirmationOutcome":
        return cls(ConfirmationStatus.SUCCESS, tx)

    @classmethod
    def failure(cls, tx: TransactionRecord, message: str) -> "ConfirmationOutcome":
        return cls(ConfirmationStatus.FAILURE, tx, message)

    @classmethod
    def timeout(cls) -> "ConfirmationOutcome":
        return cls(ConfirmationStatus.TIMEOUT)

    @property
    def ok(self) -> bool:
        return self.status is ConfirmationStatus.SUCCESS

    def raise_for_status(self, tx_hash: str) -> TransactionRecord:
        """Return the record on success, otherwise raise the matching error."""

        if self.status is ConfirmationStatus.SUCCESS and self.tx is not None:
            return self.tx
        if self.status is ConfirmationStatus.FAILURE:
            raise ExecutionFailure(tx_hash, self.message or "Transaction execution failed")
        raise ConfirmationTimeoutError(tx_hash)


def failure_message(tx: TransactionRecord) -> str:
    """Best available diagnostic: debug comment, then result, then state."""

    comment = (tx.debug_comment or "").strip()
    if comment:
        return comment
    if tx.result:
        return f"Execution result: {tx.result}"
    return f"State: {tx.state or 'unknown'}"


async def _fetch(api: Any, tx_hash: str) -> Any:
    getter = api.get_transaction
    if inspect.iscoroutinefunction(getter):
        return await getter(tx_hash)
    return await asyncio.to_thread(getter, tx_hash)


async def wait_for_transaction_confirmation(
    api: Any,
    tx_hash: str,
    *,
    max_attempts: int = 30,
    delay_ms: int = 1000,
    failure_detail_attempts: int = 6,
    sleep: SleepFn = asyncio.sleep,
) -> ConfirmationOutcome:
    """Poll ``api.get_transaction`` until the transaction halts, fails or the budget runs out.

    ``api.get_transaction`` may be a plain or a coroutine function.  Fetch
    errors are logged and polling continues.  A failed state without a debug
    comment is re-polled up to ``failure_detail_attempts`` more times before
    it is reported with the best message available.
    """

    max_attempts = max(1, max_attempts)
    delay_ms = max(MIN_DELAY_MS, delay_ms)
    failure_detail_attempts = max(0, failure_detail_attempts)

    attempts = 0
    detail_polls = 0
    while attempts < max_attempts:
        tx: TransactionRecord | None = None
        try:
            payload = await _fetch(api, tx_hash)
            if payload is not None:
                tx = TransactionRecord.from_payload(payload, tx_hash)
        except Exception as exc:  # noqa: BLE001 - any fetch error is non-terminal
            logger.warning("getTransaction(%s) failed: %s", tx_hash, exc)

        if tx is not None:
            if tx.is_halted:
                logger.info("Transaction %s halted after %d attempt(s)", tx_hash, attempts + 1)
                return ConfirmationOutcome.success(tx)
            if not tx.is_running:
                has_comment = bool((tx.debug_comment or "").strip())
                if not has_comment and detail_polls <= failure_detail_attempts:
                    detail_polls += 1
                    logger.debug(
                        "Transaction %s in state %s without diagnostics; waiting for detail (%d/%d)",
                        tx_hash,
                        tx.state,
                        detail_polls,
                        failure_detail_attempts + 1,
                    )
                else:
                    message = failure_message(tx)
                    logger.warning("Transaction %s failed: %s", tx_hash, message)
                    return ConfirmationOutcome.failure(tx, message)

        attempts += 1
        if attempts < max_attempts:
            await sleep(delay_ms / 1000)

    logger.warning("Transaction %s confirmation timed out after %d attempts", tx_hash, max_attempts)
    return ConfirmationOutcome.timeout()


class ConfirmationPoller:
    """Configured wrapper around :func:`wait_for_transaction_confirmation`."""

    def __init__(
        self,
        api: Any,
        config: ConfirmationConfig | None = None,
        *,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.api = api
        self.config = config or ConfirmationConfig()
        self._sleep = sleep

    async def wait(self, tx_hash: str) -> ConfirmationOutcome:
        return await wait_for_transaction_confirmation(
            self.api,
            tx_hash,
            max_attempts=self.config.max_attempts,
            delay_ms=self.config.delay_ms,
            failure_detail_attempts=self.config.failure_detail_attempts,
            sleep=self._sleep,
        )
