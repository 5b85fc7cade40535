# contract_gateway/cli.py
"""
Contract Gateway command line.

Offline checks and code-generation helpers for contract trees.

Usage:
    contract-gateway check billing.contracts:router          # strict validation
    contract-gateway check billing.contracts:router --lenient
    contract-gateway list billing.contracts:router
    contract-gateway openapi billing.contracts:router --out openapi.json
"""

import argparse
import json
import sys
from typing import List, Optional, Sequence

from fastapi import FastAPI

from contract_gateway import __version__
from contract_gateway.adapters.api.binding import mount_contracts
from contract_gateway.adapters.api.metadata import extract_operation_metadata, summarize
from contract_gateway.adapters.services.contracts_loader import load_contracts
from contract_gateway.adapters.services.module_locator import ModuleServiceLocator
from contract_gateway.core.contracts.registry import OperationRegistry
from contract_gateway.core.contracts.routes import ContractRouter
from contract_gateway.core.domain.exceptions import ContractError, OpMetaValidationError
from contract_gateway.shared.config import settings
from contract_gateway.shared.logging_config import configure_logging


class Colors:
    GREEN = "\033[92m"
    WARNING = "\033[93m"
    FAIL = "\033[91m"
    ENDC = "\033[0m"


def log(msg, color=Colors.ENDC, stream=None):
    stream = stream or sys.stdout
    if stream.isatty():
        msg = f"{color}{msg}{Colors.ENDC}"
    print(msg, file=stream)


# --- COMMANDS ---

def _unresolved_symbols(registry: OperationRegistry) -> List[str]:
    locator = ModuleServiceLocator()
    problems = []
    for operation in registry:
        service = operation.meta.service
        if service is None:
            continue
        refs = [service.function_ref, service.params_schema, service.body_schema, service.query_schema, service.factory]
        for ref in refs:
            if ref is None or (ref is service.function_ref and service.raw):
                continue
            try:
                locator.resolve(ref)
            except ContractError as e:
                problems.append(f"{operation.op}: {e}")
    return problems


def check_contracts(contracts: ContractRouter, *, strict: bool = True, resolve: bool = False) -> int:
    """Builds the registry (metadata, invalidation targets, expressions). Returns an exit code."""
    try:
        registry = OperationRegistry.from_contracts(contracts, strict=strict)
    except OpMetaValidationError as e:
        log("Invalid operation metadata:", Colors.FAIL, sys.stderr)
        for path, message in e.errors.items():
            log(f"  {path}: {message}", Colors.FAIL, sys.stderr)
        return 1
    except ContractError as e:
        log(f"Contract error: {e}", Colors.FAIL, sys.stderr)
        return 1

    if resolve:
        problems = _unresolved_symbols(registry)
        if problems:
            for problem in problems:
                log(f"  {problem}", Colors.FAIL, sys.stderr)
            return 1

    log(f"OK: {len(registry)} operations", Colors.GREEN)
    return 0


def build_contract_app(contracts: ContractRouter, *, strict: bool = True) -> FastAPI:
    """A bare app carrying the contract routes; used for OpenAPI export and metadata listing."""
    app = FastAPI(title=settings.APP_NAME, version=__version__)
    mount_contracts(app, contracts, strict=strict)
    return app


def list_operations(contracts: ContractRouter, *, strict: bool = True) -> int:
    app = build_contract_app(contracts, strict=strict)
    operations = extract_operation_metadata(app)
    rows = [("OP", "METHOD", "PATH", "PERM", "SERVICE", "FLAGS")]
    rows += [
        (o.op, o.method, o.path, o.perm or "-", o.service or "-", ",".join(o.flags) or "-")
        for o in operations
    ]
    widths = [max(len(row[i]) for row in rows) for i in range(len(rows[0]))]
    for row in rows:
        print("  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip())
    counts = summarize(operations)
    print()
    print(", ".join(f"{name}={value}" for name, value in counts.items()))
    return 0


def export_openapi(contracts: ContractRouter, out: Optional[str], *, strict: bool = True) -> int:
    document = build_contract_app(contracts, strict=strict).openapi()
    text = json.dumps(document, indent=2, sort_keys=False)
    if out:
        with open(out, "w", encoding="utf-8") as fh:
            fh.write(text + "\n")
        log(f"Wrote {out}", Colors.GREEN)
    else:
        print(text)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="contract-gateway", description="Contract Gateway tooling")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    check_parser = subparsers.add_parser("check", help="Validate a contract tree")
    check_parser.add_argument("target", help="module:attribute of a ContractRouter")
    check_parser.add_argument("--lenient", action="store_true", help="Skip invalid metadata instead of failing")
    check_parser.add_argument("--resolve", action="store_true", help="Also import every referenced backend symbol")

    list_parser = subparsers.add_parser("list", help="Print the operations of a contract tree")
    list_parser.add_argument("target", help="module:attribute of a ContractRouter")
    list_parser.add_argument("--lenient", action="store_true")

    openapi_parser = subparsers.add_parser("openapi", help="Export the OpenAPI document with x-op-meta")
    openapi_parser.add_argument("target", help="module:attribute of a ContractRouter")
    openapi_parser.add_argument("--out", type=str, default=None, help="Output file (default: stdout)")
    openapi_parser.add_argument("--lenient", action="store_true")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    # keep stdout clean for the command output
    configure_logging(log_format="console", log_level="WARNING")

    try:
        contracts = load_contracts(args.target)
    except ContractError as e:
        log(f"Cannot load {args.target}: {e}", Colors.FAIL, sys.stderr)
        return 1

    strict = not args.lenient
    try:
        if args.command == "check":
            return check_contracts(contracts, strict=strict, resolve=args.resolve)
        if args.command == "list":
            return list_operations(contracts, strict=strict)
        if args.command == "openapi":
            return export_openapi(contracts, args.out, strict=strict)
    except ContractError as e:
        log(f"Contract error: {e}", Colors.FAIL, sys.stderr)
        return 1
    return 1


if __name__ == "__main__":
    sys.exit(main())
