"""
Settlement: эксклюзивное применение закона settlement на границе эпохи.
"""

from src.settlement.engine import SettlementEngine

__all__ = ["SettlementEngine"]
