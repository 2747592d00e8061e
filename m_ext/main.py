#!/usr/bin/env python3
"""
============================================================================
M Extension Engine v1.0.0
Operator CLI - Index Previews and Wrap Quotes
============================================================================

Reliability Level: SOVEREIGN TIER (Mission-Critical)
Side Effects: None (read-only computations, stdout only)

COMMANDS:
    preview-sync   Compute the derived index a sync would commit
    quote          Quote a wrap or unwrap at given indices
    show-config    Load, validate and print the extension settings

USAGE:
    python -m m_ext.main preview-sync --last-derived 1000000000000 \\
        --last-source 1000000000000 --new-source 1125000000000 --fee-bps 0

EXIT CODES:
    0 = success, 1 = engine or configuration error, 2 = invalid args

============================================================================
"""

import argparse
import json
import logging
import sys
import uuid
from typing import List, Optional

from dotenv import load_dotenv

from m_ext.accounting.errors import ExtError
from m_ext.accounting.fixed_point_index import index_to_multiplier
from m_ext.logic.compounding_sync import CompoundingSync, PowerMode
from m_ext.logic.quoter import Quoter, WrapOperation
from m_ext.services.extension_config import ExtensionConfigurationError, ExtensionSettings

logger = logging.getLogger("M-EXT-CLI")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="m-ext",
        description="M Extension Engine - operator CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
EXAMPLES:
    # Fee-free sync of a 12.5% source move
    m-ext preview-sync --last-derived 1000000000000 \\
        --last-source 1000000000000 --new-source 1125000000000

    # Wrap 1,000,000 collateral principal at M index 1.05
    m-ext quote --operation wrap --principal 1000000 \\
        --source-index 1050000000000 --ext-index 1000000000000
        """
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--correlation-id",
        type=str,
        default=None,
        help="Correlation ID for audit trail (auto-generated if not provided)"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    preview = subparsers.add_parser("preview-sync", help="Compute a derived index")
    preview.add_argument("--last-derived", type=int, required=True)
    preview.add_argument("--last-source", type=int, required=True)
    preview.add_argument("--new-source", type=int, required=True)
    preview.add_argument("--fee-bps", type=int, default=0)
    preview.add_argument(
        "--power-mode",
        choices=[m.value for m in PowerMode],
        default=PowerMode.DECIMAL.value,
    )

    quote = subparsers.add_parser("quote", help="Quote a wrap or unwrap")
    quote.add_argument("--operation", choices=[o.value for o in WrapOperation], required=True)
    quote.add_argument("--principal", type=int, required=True)
    quote.add_argument("--source-index", type=int, required=True)
    quote.add_argument("--ext-index", type=int, required=True)
    quote.add_argument("--exact-out", action="store_true")

    subparsers.add_parser("show-config", help="Validate and print settings")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    CLI entry point.

    Returns:
        Exit code (0 = success, 1 = failure)
    """
    load_dotenv()
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    correlation_id = args.correlation_id or f"CLI-{uuid.uuid4().hex[:8].upper()}"

    try:
        if args.command == "preview-sync":
            derived = CompoundingSync(PowerMode(args.power_mode)).compute(
                args.last_derived, args.last_source, args.new_source, args.fee_bps,
                correlation_id
            )
            print(json.dumps({
                "derived_index": derived,
                "multiplier": index_to_multiplier(derived),
                "changed": derived != args.last_derived,
            }))
        elif args.command == "quote":
            quoted = Quoter(args.source_index, args.ext_index).quote(
                WrapOperation(args.operation), args.principal, args.exact_out, correlation_id
            )
            print(json.dumps({
                "operation": args.operation,
                "exact_out": args.exact_out,
                "principal": args.principal,
                "quote": quoted,
            }))
        else:
            settings = ExtensionSettings.from_environment(validate=True)
            print(json.dumps(settings.to_dict(), sort_keys=True))
    except (ExtError, ExtensionConfigurationError) as e:
        logger.error("[%s] CLI command failed | command=%s | correlation_id=%s",
                     e.error_code, args.command, correlation_id)
        print(f"[ERROR] {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
