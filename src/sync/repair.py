"""
Repair — принудительная пересинхронизация пулов из ledger

force_resync(reconciler, addresses) перезаписывает кэш авторитетным
состоянием (включая content_id и параметры кривой) и возвращает исходы.

CLI:
    python -m src.sync.repair ADDRESS [ADDRESS ...] [--timeout 10]
"""

import argparse
import asyncio
import json
from typing import Any

import httpx
from loguru import logger

from src.cache.store import CacheStore
from src.core.config import load_config
from src.core.logs import configure_logging
from src.core.math.curve import detect_price_discrepancy
from src.sync.reconciler import Reconciler, ReconcileOutcome
from src.sync.wiring import build_reader, build_reconciler


async def force_resync(
    reconciler: Reconciler,
    pool_addresses: list[str],
    timeout: float | None = None,
) -> dict[str, ReconcileOutcome]:
    """
    Принудительный reconcile (force=True) каждого адреса.

    Returns:
        {address: ReconcileOutcome}, порядок адресов сохраняется
    """
    addresses = list(dict.fromkeys(pool_addresses))
    outcomes = await asyncio.gather(
        *(reconciler.reconcile(address, timeout=timeout, force=True) for address in addresses)
    )
    applied = sum(1 for outcome in outcomes if outcome.applied)
    logger.info("[Repair] force resync done: {}/{} applied", applied, len(addresses))
    return dict(zip(addresses, outcomes))


def describe_outcome(outcome: ReconcileOutcome) -> dict[str, Any]:
    """Полная диагностика исхода (JSON-сериализуемая; широкие целые — строками)."""
    item: dict[str, Any] = {
        "pool_address": outcome.pool_address,
        "status": outcome.status.value,
        "applied_fields": list(outcome.applied_fields),
        "changed_fields": list(outcome.changed_fields),
    }
    if outcome.failure is not None:
        item["failure"] = {
            "kind": outcome.failure.kind.value,
            "message": outcome.failure.message,
            "details": outcome.failure.details,
        }
    if outcome.inconsistency is not None:
        item["inconsistency"] = {
            "message": outcome.inconsistency.message,
            "details": outcome.inconsistency.details,
        }
    if outcome.record is not None:
        item["record"] = outcome.record.model_dump(mode="json", exclude={"pool_address"})
        for name in ("sqrt_price_long_x96", "sqrt_price_short_x96"):
            value = getattr(outcome.record, name)
            item["record"][name] = str(value) if value is not None else None
    if outcome.snapshot is not None:
        item["lifecycle"] = outcome.snapshot.lifecycle.value
        item["price_discrepancies"] = [
            {
                "side": finding.side.value,
                "ledger_price_micro": finding.ledger_price_micro,
                "local_price_micro": finding.local_price_micro,
                "deviation": str(finding.deviation),
            }
            for finding in detect_price_discrepancy(outcome.snapshot)
        ]
    return item


async def _run(addresses: list[str], timeout: float | None) -> dict[str, ReconcileOutcome]:
    config = load_config()
    store = CacheStore.from_url(config.database_url)
    store.create_schema()
    try:
        async with httpx.AsyncClient() as client:
            reconciler = build_reconciler(config, build_reader(config, client), store)
            return await force_resync(reconciler, addresses, timeout=timeout)
    finally:
        store.engine.dispose()


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Force-resync pool cache rows from the ledger.")
    parser.add_argument("addresses", nargs="+", metavar="ADDRESS", help="Pool ledger address")
    parser.add_argument("--timeout", type=float, default=None, help="Per-pool budget in seconds")
    args = parser.parse_args(argv)

    if args.timeout is not None and args.timeout <= 0:
        raise SystemExit("--timeout must be > 0")

    configure_logging(load_config().log_level)
    outcomes = asyncio.run(_run(args.addresses, args.timeout))

    report = [describe_outcome(outcome) for outcome in outcomes.values()]
    print(json.dumps(report, indent=2, default=str))
    return 0 if all(outcome.applied for outcome in outcomes.values()) else 1


if __name__ == "__main__":
    raise SystemExit(main())
