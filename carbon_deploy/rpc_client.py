"""Typed JSON-RPC client for Phantasma nodes.

The client only forwards well-typed requests and surfaces errors clearly.
Configuration is shared via :func:`~carbon_deploy.config.load_rpc_config` so
CLI commands and library callers reuse one connection surface.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests
from requests import RequestException, Response

from .config import RPCConfig, load_rpc_config

logger = logging.getLogger(__name__)

STATE_HALT = "Halt"
STATE_RUNNING = "Running"


class RPCError(RuntimeError):
    """Raised when the node responds with a JSON-RPC error."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class TransactionRecord:
    """Execution state of a submitted transaction as reported by the node."""

    hash: str
    state: str = ""
    result: str | None = None
    debug_comment: str | None = None
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @property
    def is_halted(self) -> bool:
        return self.state == STATE_HALT

    @property
    def is_running(self) -> bool:
        return self.state == STATE_RUNNING

    @classmethod
    def from_payload(cls, payload: Any, tx_hash: str = "") -> "TransactionRecord":
        if isinstance(payload, TransactionRecord):
            return payload
        if not isinstance(payload, dict):
            raise RPCTransportError(f"Unexpected transaction payload: {payload!r}")
        result = payload.get("result")
        comment = payload.get("debugComment")
        return cls(
            hash=str(payload.get("hash") or tx_hash),
            state=str(payload.get("state") or ""),
            result=result if isinstance(result, str) else None,
            debug_comment=comment if isinstance(comment, str) else None,
            raw=payload,
        )


class PhantasmaRPCClient:
    """Thin JSON-RPC client; each helper maps to one node method."""

    def __init__(self, config: RPCConfig) -> None:
        self.config = config
        self._session = requests.Session()

    @classmethod
    def from_env(cls) -> "PhantasmaRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_rpc_config())

    @property
    def nexus(self) -> str:
        return self.config.nexus

    def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Perform a JSON-RPC request."""

        payload = {
            "jsonrpc": "2.0",
            "id": str(uuid.uuid4()),
            "method": method,
            "params": params or [],
        }
        logger.debug("RPC call %s params=%s", method, params)
        try:
            response = self._session.post(
                self.config.url,
                data=json.dumps(payload),
                headers={"content-type": "application/json"},
                timeout=self.config.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure the Phantasma node is reachable and "
                "PHANTASMA_RPC_URL (or ~/.carbon-deploy.yaml) points to the right endpoint."
            ) from exc
        try:
            self._raise_for_status(response)
        except requests.HTTPError as exc:
            raise RPCTransportError(
                "RPC server returned an HTTP error; check the URL and PHANTASMA_RPC_URL settings.",
                status_code=response.status_code,
            ) from exc
        try:
            result = response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc
        if not isinstance(result, dict):
            raise RPCTransportError("RPC server returned malformed JSON")
        if result.get("error"):
            error = result["error"]
            if isinstance(error, dict):
                raise RPCError(error.get("code", -1), error.get("message", "unknown"))
            raise RPCError(-1, str(error))
        return result.get("result")

    def _raise_for_status(self, response: Response) -> None:
        if not response.ok:
            try:
                err_body = response.json()
            except ValueError:
                err_body = response.text
            logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
            logger.error("RPC error body: %s", err_body)
        response.raise_for_status()

    # Convenience wrappers -------------------------------------------------

    def get_transaction(self, tx_hash: str) -> TransactionRecord:
        return TransactionRecord.from_payload(self.call("getTransaction", [tx_hash]), tx_hash)

    def get_tokens(self, owner_address: str, extended: bool = True) -> list[Dict[str, Any]]:
        return self.call("getTokens", [owner_address, extended]) or []

    def get_token(self, symbol: str, extended: bool = True, carbon_token_id: int = 0) -> Dict[str, Any]:
        return self.call("getToken", [symbol, extended, str(carbon_token_id)])

    def get_token_series(
        self, symbol: str, carbon_token_id: int, page_size: int = 50, cursor: str = ""
    ) -> Dict[str, Any]:
        return self.call("getTokenSeries", [symbol, str(carbon_token_id), page_size, cursor])

    def get_token_nfts(
        self,
        carbon_token_id: int,
        carbon_series_id: int = 0,
        page_size: int = 10,
        cursor: str = "",
        extended: bool = True,
    ) -> Dict[str, Any]:
        return self.call(
            "getTokenNFTs", [str(carbon_token_id), carbon_series_id, page_size, cursor, extended]
        )
