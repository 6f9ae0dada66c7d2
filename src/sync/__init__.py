"""
Sync layer: reconcile ledger → cache, decay projection, presentation views.

Repair CLI lives in src.sync.repair (run as a module).
"""

from src.sync.decay_service import DecayService
from src.sync.pool_view import PoolViewService, build_pool_view
from src.sync.reconciler import (
    BACKFILL_FIELDS,
    VOLATILE_FIELDS,
    ReconcileOutcome,
    Reconciler,
    ReconcileStatus,
    plan_cache_update,
)
from src.sync.wiring import build_reader, build_reconciler, build_view_service

__all__ = [
    "BACKFILL_FIELDS",
    "DecayService",
    "PoolViewService",
    "ReconcileOutcome",
    "ReconcileStatus",
    "Reconciler",
    "VOLATILE_FIELDS",
    "build_pool_view",
    "build_reader",
    "build_reconciler",
    "build_view_service",
    "plan_cache_update",
]
