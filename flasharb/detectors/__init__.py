"""Price acquisition, swap simulation and opportunity detection"""

from flasharb.detectors.opportunity_detector import OpportunityDetector
from flasharb.detectors.opportunity_store import OpportunityStore
from flasharb.detectors.pool_scanner import PoolScanner

__all__ = [
    "OpportunityDetector",
    "OpportunityStore",
    "PoolScanner",
]
