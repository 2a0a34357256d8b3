"""Command-line interface for carbon-deploy.

The CLI covers the read paths and converters: amount and royalties
conversion, token schema validation, transaction confirmation and token
listings.  Signing needs a connected wallet and is only available through the
library workflows.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, Sequence

from .amounts import (
    convert_royalties_percent,
    format_base_units_to_decimal,
    parse_bigint_input,
    parse_human_amount_to_base_units,
)
from .config import ConfigurationError, load_confirmation_config, load_rpc_config, set_default_config_path
from .confirmation import ConfirmationPoller, ConfirmationStatus
from .errors import CarbonDeployError
from .inventory import get_token_extended, get_tokens, list_token_nfts, list_token_series
from .rpc_client import PhantasmaRPCClient, RPCError, RPCTransportError
from .vm import TokenSchemas, default_nft_schemas_json, format_vm_type_label

logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _emit(args: argparse.Namespace, data: Any) -> None:
    if args.json:
        print(json.dumps(data, separators=COMPACT_JSON_SEPARATORS, default=str))
    else:
        print(json.dumps(data, indent=2, default=str))


def _client(args: argparse.Namespace) -> PhantasmaRPCClient:
    overrides = {"url": args.rpc_url} if args.rpc_url else None
    return PhantasmaRPCClient(load_rpc_config(overrides=overrides))


def _parse_token_id(raw: str) -> int:
    return parse_bigint_input(raw, "Carbon token id")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Phantasma Carbon token tooling")
    parser.add_argument("--config", default=None, help="Path to a carbon-deploy YAML config file")
    parser.add_argument("--rpc-url", default=None, help="Override the Phantasma RPC endpoint")
    parser.add_argument("--json", action="store_true", help="Emit compact JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    to_base = subparsers.add_parser("to-base-units", help="convert a decimal amount to base units")
    to_base.add_argument("amount", help="Human readable amount, e.g. 1.5")
    to_base.add_argument("--decimals", type=int, required=True, help="Token decimals")
    to_base.add_argument("--allow-zero", action="store_true", help="Accept a zero amount")

    from_base = subparsers.add_parser("from-base-units", help="convert base units to a decimal amount")
    from_base.add_argument("base_units", help="Integer amount in base units")
    from_base.add_argument("--decimals", type=int, required=True, help="Token decimals")

    royalties = subparsers.add_parser("royalties", help="convert a royalties percentage to base units")
    royalties.add_argument("percent", help="Percentage between 0 and 100, e.g. 2.5")

    schemas = subparsers.add_parser("validate-schemas", help="validate token schemas JSON")
    schemas.add_argument(
        "path",
        nargs="?",
        default=None,
        help="JSON file to validate; prints the default NFT schemas when omitted",
    )

    status = subparsers.add_parser("tx-status", help="wait for a transaction outcome")
    status.add_argument("tx_hash", help="Transaction hash")
    status.add_argument("--max-attempts", type=int, default=None, help="Polling attempts (default: 30)")
    status.add_argument("--delay-ms", type=int, default=None, help="Delay between polls (default: 1000)")
    status.add_argument(
        "--failure-detail-attempts",
        type=int,
        default=None,
        help="Extra polls to wait for a failure diagnostic (default: 6)",
    )

    tokens = subparsers.add_parser("tokens", help="list tokens owned by an address")
    tokens.add_argument("owner", help="Owner address")

    token = subparsers.add_parser("token", help="show one token with extended details")
    token.add_argument("symbol", help="Token symbol")

    series = subparsers.add_parser("series", help="list the series of a token")
    series.add_argument("--symbol", default="", help="Token symbol")
    series.add_argument("--token-id", default=None, help="Carbon token id")
    series.add_argument("--page-size", type=int, default=50, help="Page size (default: 50)")

    nfts = subparsers.add_parser("nfts", help="list NFTs of a token")
    nfts.add_argument("token_id", help="Carbon token id")
    nfts.add_argument("--series-id", type=int, default=0, help="Carbon series id (default: all)")
    nfts.add_argument("--page-size", type=int, default=10, help="Page size (default: 10)")
    nfts.add_argument("--cursor", default="", help="Cursor returned by a previous page")

    return parser


def cmd_to_base_units(args: argparse.Namespace) -> None:
    value = parse_human_amount_to_base_units(args.amount, args.decimals, allow_zero=args.allow_zero)
    print(value)


def cmd_from_base_units(args: argparse.Namespace) -> None:
    value = parse_bigint_input(args.base_units, "Base units")
    print(format_base_units_to_decimal(value, args.decimals))


def cmd_royalties(args: argparse.Namespace) -> None:
    value = convert_royalties_percent(args.percent)
    if value is None:
        raise CLIError("Royalties percentage is required")
    print(value)


def cmd_validate_schemas(args: argparse.Namespace) -> None:
    if args.path is None:
        raw = default_nft_schemas_json()
    else:
        try:
            raw = Path(args.path).read_text()
        except OSError as exc:
            raise CLIError(f"Cannot read {args.path}: {exc}") from exc
    schemas = TokenSchemas.from_json(raw)
    sections = {"seriesMetadata": schemas.series_metadata, "rom": schemas.rom, "ram": schemas.ram}
    summary = {
        key: [f"{named.name}:{format_vm_type_label(named.type)}" for named in schema.fields]
        for key, schema in sections.items()
    }
    _emit(args, summary)


def cmd_tx_status(args: argparse.Namespace) -> None:
    overrides = {
        "max_attempts": args.max_attempts,
        "delay_ms": args.delay_ms,
        "failure_detail_attempts": args.failure_detail_attempts,
    }
    config = load_confirmation_config(overrides=overrides)
    poller = ConfirmationPoller(_client(args), config)
    outcome = asyncio.run(poller.wait(args.tx_hash))
    data: dict[str, Any] = {"hash": args.tx_hash, "status": outcome.status.value}
    if outcome.message:
        data["message"] = outcome.message
    if outcome.tx is not None:
        data["state"] = outcome.tx.state
        data["result"] = outcome.tx.result
    _emit(args, data)
    if outcome.status is not ConfirmationStatus.SUCCESS:
        raise SystemExit(2)


def cmd_tokens(args: argparse.Namespace) -> None:
    _emit(args, get_tokens(_client(args), args.owner))


def cmd_token(args: argparse.Namespace) -> None:
    _emit(args, get_token_extended(_client(args), args.symbol))


def cmd_series(args: argparse.Namespace) -> None:
    token_id = _parse_token_id(args.token_id) if args.token_id is not None else None
    items = list_token_series(_client(args), args.symbol, token_id, args.page_size)
    _emit(args, [asdict(item) for item in items])


def cmd_nfts(args: argparse.Namespace) -> None:
    page = list_token_nfts(
        _client(args),
        _parse_token_id(args.token_id),
        args.series_id,
        args.page_size,
        args.cursor,
    )
    _emit(args, {"items": page.items, "next_cursor": page.next_cursor})


COMMANDS = {
    "to-base-units": cmd_to_base_units,
    "from-base-units": cmd_from_base_units,
    "royalties": cmd_royalties,
    "validate-schemas": cmd_validate_schemas,
    "tx-status": cmd_tx_status,
    "tokens": cmd_tokens,
    "token": cmd_token,
    "series": cmd_series,
    "nfts": cmd_nfts,
}


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)
    if args.config:
        set_default_config_path(args.config)
    try:
        handler = COMMANDS.get(args.command)
        if handler is None:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
        handler(args)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        ConfigurationError,
        RPCError,
        RPCTransportError,
        CarbonDeployError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
