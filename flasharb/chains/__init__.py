"""Blockchain interaction layer"""

from flasharb.chains.base_connector import BaseConnector
from flasharb.chains.connector import ChainConnector, CircuitBreaker, CircuitState
from flasharb.chains.soroban_client import InvocationResult, SorobanClient

__all__ = [
    "BaseConnector",
    "ChainConnector",
    "CircuitBreaker",
    "CircuitState",
    "InvocationResult",
    "SorobanClient",
]
