"""Configuration module"""

from .models import ChainConfig, ExecutionConfig, Pool, ScannerConfig, ScoringConfig, Settings, Token

__all__ = [
    "ChainConfig",
    "ExecutionConfig",
    "Pool",
    "ScannerConfig",
    "ScoringConfig",
    "Settings",
    "Token",
]
