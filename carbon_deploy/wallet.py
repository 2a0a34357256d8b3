"""Wallet bridge: public key extraction and callback-to-awaitable signing."""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, Protocol

from .carbon import Address, Bytes32, TxMsg
from .errors import ProtocolError, RejectionError, SigningError, ValidationError, to_message

logger = logging.getLogger(__name__)

UNEXPECTED_RESPONSE = "Unexpected wallet response"
DEFAULT_REJECTION = "Wallet rejected transaction"


class WalletConnection(Protocol):
    """Connected wallet as exposed by the browser or desktop bridge.

    ``sign_carbon_transaction`` signs and broadcasts ``tx``.  Exactly one of the
    callbacks fires exactly once, possibly from another thread, or the call
    raises synchronously.
    """

    address: Optional[str]

    def sign_carbon_transaction(
        self,
        tx: TxMsg,
        on_success: Callable[[Any], None],
        on_error: Callable[[Any], None],
    ) -> None: ...


def extract_public_key_bytes(wallet: Any) -> bytes:
    address_text = getattr(wallet, "address", None)
    if not address_text or not isinstance(address_text, str):
        raise ValidationError("Wallet did not expose account address. Reconnect and try again.")
    try:
        address = Address.from_text(address_text)
    except ValidationError as exc:
        raise ValidationError(f"Failed to parse wallet address '{address_text}': {exc}") from exc
    public_key = address.get_public_key()
    if len(public_key) != 32:
        raise ValidationError("Wallet did not provide a 32-byte public key. Reconnect and try again.")
    return public_key


def wallet_public_key(wallet: Any) -> Bytes32:
    return Bytes32(extract_public_key_bytes(wallet))


@dataclass(frozen=True)
class WalletSignResult:
    hash: str
    id: int
    success: bool = True


def is_wallet_sign_result(payload: Any) -> bool:
    """True when ``payload`` has a string hash, numeric id and boolean success flag."""

    if not isinstance(payload, Mapping):
        return False
    hash_value = payload.get("hash")
    id_value = payload.get("id")
    success = payload.get("success")
    return (
        isinstance(hash_value, str)
        and isinstance(id_value, (int, float))
        and not isinstance(id_value, bool)
        and (isinstance(id_value, int) or math.isfinite(id_value))
        and isinstance(success, bool)
    )


def interpret_sign_payload(payload: Any) -> WalletSignResult:
    """Map a success-callback payload to a result or a :class:`SigningError`."""

    if isinstance(payload, Mapping) and payload.get("success") is False:
        error = payload.get("error")
        raise RejectionError(str(error) if error else DEFAULT_REJECTION)
    if not is_wallet_sign_result(payload):
        raise ProtocolError(UNEXPECTED_RESPONSE)
    return WalletSignResult(hash=payload["hash"], id=int(payload["id"]), success=True)


def _as_signing_error(err: Any) -> SigningError:
    if isinstance(err, SigningError):
        return err
    error = RejectionError(to_message(err) or DEFAULT_REJECTION)
    if isinstance(err, BaseException):
        error.__cause__ = err
    return error


class WalletSigningAdapter:
    """Turn one callback-style signing call into one awaitable outcome.

    Every failure path (synchronous raise, error callback, success flag false,
    malformed payload) surfaces as a :class:`SigningError`.  Later callback
    invocations after the first are ignored.
    """

    def __init__(self, wallet: WalletConnection) -> None:
        self.wallet = wallet

    async def sign(self, tx: TxMsg) -> WalletSignResult:
        loop = asyncio.get_running_loop()
        future: asyncio.Future[WalletSignResult] = loop.create_future()

        def settle(payload: Any, failed: bool) -> None:
            if future.done():
                logger.debug("Ignoring extra wallet callback")
                return
            if failed:
                future.set_exception(_as_signing_error(payload))
                return
            try:
                future.set_result(interpret_sign_payload(payload))
            except Exception as exc:  # noqa: BLE001 - the future must always settle
                future.set_exception(_as_signing_error(exc))

        def on_success(payload: Any) -> None:
            loop.call_soon_threadsafe(settle, payload, False)

        def on_error(err: Any) -> None:
            loop.call_soon_threadsafe(settle, err, True)

        logger.info("Requesting wallet signature for %s transaction", tx.type.name)
        try:
            self.wallet.sign_carbon_transaction(tx, on_success, on_error)
        except Exception as exc:  # noqa: BLE001 - wallet bridges raise arbitrary errors
            settle(exc, True)

        result = await future
        logger.info("Wallet signed transaction", extra={"tx_hash": result.hash, "wallet_id": result.id})
        return result
