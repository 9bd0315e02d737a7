"""Cross-venue flash-loan arbitrage pipeline"""

__version__ = "0.1.0"
