"""Base (L2) chain connector implementation"""

from typing import Optional

from flasharb.chains.connector import ChainConnector
from flasharb.config.models import ChainConfig

BASE_CHAIN_ID = 8453


class BaseConnector(ChainConnector):
    """Base-specific blockchain connector"""

    def __init__(self, config: ChainConfig, private_key: Optional[str] = None):
        """Initialize Base connector with configuration"""
        if config.chain_id != BASE_CHAIN_ID:
            raise ValueError(f"Invalid chain_id for Base: {config.chain_id}, expected {BASE_CHAIN_ID}")

        super().__init__(config, private_key=private_key)
