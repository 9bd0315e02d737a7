"""Pipeline orchestration"""

from flasharb.monitors.arbitrage_bot import ArbitrageBot, BotStatus

__all__ = ["ArbitrageBot", "BotStatus"]
