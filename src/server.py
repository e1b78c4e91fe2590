"""Protean Engine runner for the storefront domain.

Starts Engine workers that process events asynchronously, including the
handler that attributes referral commissions when an order is paid.

Usage:
    PROTEAN_ENV=production python src/server.py
"""

import argparse
import asyncio

from protean.server.engine import Engine


def _get_domain():
    from storefront.domain import storefront
    from storefront.utils.logging import configure_logging

    configure_logging()
    storefront.init()
    return storefront


async def run(test_mode=False):
    engine = Engine(_get_domain(), test_mode=test_mode)
    await engine.run()


def main():
    parser = argparse.ArgumentParser(description="Storefront Engine runner")
    parser.add_argument(
        "--test-mode",
        action="store_true",
        help="Process pending messages once and exit",
    )
    args = parser.parse_args()

    asyncio.run(run(args.test_mode))


if __name__ == "__main__":
    main()
