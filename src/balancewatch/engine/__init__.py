"""Balance engine: live cache, cycle scheduler, and the engine facade."""

from balancewatch.engine.engine import BalanceEngine, build_engine

__all__ = ["BalanceEngine", "build_engine"]
