"""Error taxonomy shared by the Carbon transaction pipeline."""

from __future__ import annotations

import json
from typing import Any


class CarbonDeployError(RuntimeError):
    """Root of every error raised by ``carbon_deploy``."""


class ValidationError(CarbonDeployError, ValueError):
    """Raised for bad local input; never preceded by a network call."""


class AmountError(ValidationError):
    """Raised when a human amount cannot be converted to base units."""


class MetadataError(ValidationError):
    """Raised when a metadata field is missing or does not match its VM type."""


class SchemaError(ValidationError):
    """Raised when a token schema definition is malformed."""


class SigningError(CarbonDeployError):
    """Single rejection channel for the wallet signing step."""


class ProtocolError(SigningError):
    """Raised when the wallet answers with a payload of the wrong shape."""


class RejectionError(SigningError):
    """Raised when the wallet declines or fails to sign the transaction."""


class ExecutionFailure(CarbonDeployError):
    """Raised when a transaction was accepted on-chain but did not halt cleanly."""

    def __init__(self, tx_hash: str, message: str) -> None:
        super().__init__(f"Transaction {tx_hash} failed: {message}")
        self.tx_hash = tx_hash
        self.message = message


class ConfirmationTimeoutError(CarbonDeployError):
    """Raised when the outcome of a transaction is still unknown after polling."""

    def __init__(self, tx_hash: str) -> None:
        super().__init__(f"Transaction {tx_hash} confirmation timed out")
        self.tx_hash = tx_hash


def ensure_error(err: Any) -> BaseException:
    """Return ``err`` as an exception instance.

    Wallet bridges report failures as strings, mappings or exception objects;
    this collapses all of them into something ``raise`` accepts.
    """

    if isinstance(err, BaseException):
        return err
    if isinstance(err, str):
        return CarbonDeployError(err)
    try:
        text = json.dumps(err, default=str)
    except (TypeError, ValueError):
        text = repr(err)
    return CarbonDeployError(text)


def to_message(err: Any) -> str:
    """Return a human readable message for any thrown value."""

    error = ensure_error(err)
    return str(error) or type(error).__name__
