"""Prometheus metrics for the arbitrage pipeline"""

from prometheus_client import Counter, Gauge, Histogram, generate_latest, start_http_server

# Scanner Metrics
scan_latency = Histogram(
    'scan_latency_seconds',
    'Full scan cycle latency in seconds',
    buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0)
)

pools_priced = Gauge(
    'pools_priced',
    'Number of pools priced in the last scan cycle'
)

venue_fetch_failures = Counter(
    'venue_fetch_failures_total',
    'Total number of failed pool state fetches',
    ['venue', 'reason']
)

chain_rpc_latency = Histogram(
    'chain_rpc_latency_seconds',
    'RPC call latency in seconds',
    ['chain', 'endpoint', 'method'],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0)
)

chain_rpc_errors = Counter(
    'chain_rpc_errors_total',
    'Total number of RPC errors',
    ['chain', 'error_type']
)

# Detection Metrics
opportunities_detected = Counter(
    'opportunities_detected_total',
    'Total number of opportunities detected',
    ['pair']
)

opportunities_active = Gauge(
    'opportunities_active',
    'Number of live opportunities in the store'
)

opportunities_scored = Counter(
    'opportunities_scored_total',
    'Total number of opportunity evaluations',
    ['decision']
)

# Execution Metrics
executions_total = Counter(
    'executions_total',
    'Total number of execution attempt sequences',
    ['outcome']
)

execution_rejections = Counter(
    'execution_rejections_total',
    'Execution requests rejected before start',
    ['reason']
)

execution_latency = Histogram(
    'execution_latency_seconds',
    'Execution latency in seconds',
    buckets=(0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0)
)

executions_in_flight = Gauge(
    'executions_in_flight',
    'Number of executions currently in flight'
)

# Business Metrics
realized_profit_usd = Counter(
    'realized_profit_usd_total',
    'Cumulative realized profit in USD'
)

execution_cost_usd = Counter(
    'execution_cost_usd_total',
    'Cumulative execution cost in USD'
)

execution_success_rate = Gauge(
    'execution_success_rate',
    'Rolling execution success rate'
)


def get_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest()


def start_metrics_server(port: int = 9090) -> None:
    """
    Start Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default 9090)
    """
    start_http_server(port)
