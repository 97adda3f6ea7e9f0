"""
Main Entry Point for the CLOB Auth Manager
Builds the AuthManager once and runs one operator command against it.

Run with:
    python src/main.py                # self-test (default)
    python src/main.py --validate
    python src/main.py --derive
    python src/main.py --balance
"""

import argparse
import asyncio
import os
import sys
from typing import List, Optional

# Add src to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from pydantic import ValidationError

from auth.manager import AuthManager
from config.settings import get_settings
from utils.exceptions import ConfigurationError, PolymarketBotError
from utils.helpers import mask
from utils.logger import get_logger, log_error_with_context, setup_logging


logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Polymarket CLOB credential diagnostics")
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--self-test', action='store_true', help="identity, keys and balance (default)")
    group.add_argument('--validate', action='store_true', help="check the active API key is listed")
    group.add_argument('--derive', action='store_true', help="create or derive new API credentials")
    group.add_argument('--balance', action='store_true', help="signed USDC balance query")
    parser.add_argument('--log-file', default=None, help="log file path, '' disables file logging")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace, manager: AuthManager) -> bool:
    """Execute the selected command. Returns True on success."""
    if args.validate:
        v = await manager.validate_creds()
        print(f"getApiKeys: {'OK' if v.ok else 'FAIL'} active={mask(v.active_api_key)} keys={len(v.api_keys)}")
        if v.unauthorized:
            print("unauthorized: api key likely invalid for this POLY_ADDRESS / account mode")
        return v.ok

    if args.derive:
        creds = await manager.derive_creds("manual CLI request")
        print(
            f"derived: apiKey={mask(creds.api_key)} secret={mask(creds.secret)} "
            f"passphrase={mask(creds.passphrase)}"
        )
        print("credentials are kept in memory only; store them in your environment to reuse")
        return True

    if args.balance:
        b = await manager.get_balance()
        if b.ok:
            print(f"balance: {b.usdc:.2f} USDC ({manager.get_balance_query_address()})")
        else:
            print(f"balance: FAIL status={b.status} err={b.error}")
        return b.ok

    report = await manager.self_test()
    for line in report.details:
        print(line)
    print(f"self-test: {'OK' if report.ok else 'FAIL'}")
    return report.ok


async def amain(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    try:
        settings = get_settings()
    except ValidationError as e:
        setup_logging(log_file=args.log_file)
        logger.error(f"Configuration error: invalid POLYMARKET_* settings: {e}")
        return 2
    setup_logging(log_level=settings.log_level, log_file=args.log_file)

    try:
        manager = AuthManager.from_settings(settings)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    try:
        ok = await run(args, manager)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2
    except PolymarketBotError as e:
        log_error_with_context(
            logger, "Command failed", e,
            error_code=e.error_code, details=e.details
        )
        return 1
    finally:
        await manager.close()

    return 0 if ok else 1


def main() -> None:
    """Console script entry point"""
    try:
        sys.exit(asyncio.run(amain()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
