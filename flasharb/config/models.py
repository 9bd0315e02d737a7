"""Configuration models for tokens, pools, chains and pipeline settings"""

from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

EXECUTION_MODES = ("dry_run", "live")


class Token(BaseModel):
    """Token supported by the bot"""

    symbol: str
    name: str
    address: str
    decimals: int = Field(ge=0, le=36)
    is_native: bool = False

    model_config = ConfigDict(frozen=True)


class Pool(BaseModel):
    """Liquidity pool on a specific venue"""

    venue: str
    venue_type: int
    chain: str
    pool_address: str
    token_a: str
    token_b: str
    fee_bps: int = Field(ge=0, lt=10000)
    enabled: bool = True

    model_config = ConfigDict(frozen=True)

    def trades_pair(self, symbol_a: str, symbol_b: str) -> bool:
        """Check if pool trades the given unordered token pair"""
        return {self.token_a, self.token_b} == {symbol_a, symbol_b}


class ChainConfig(BaseSettings):
    """Configuration for a blockchain network"""

    name: str
    chain_id: int
    rpc_urls: List[str]
    block_time_seconds: float
    native_token: str
    native_token_usd: Decimal

    model_config = SettingsConfigDict(frozen=True)


class SorobanConfig(BaseModel):
    """Configuration for a Soroban (Stellar) network"""

    name: str = "Stellar"
    rpc_url: str
    network_passphrase: str
    native_token: str = "XLM"
    native_token_usd: Decimal

    model_config = ConfigDict(frozen=True)


class ScannerConfig:
    """Scanner, detector and store configuration"""

    def __init__(
        self,
        min_profit_bps: int = 50,
        min_liquidity_usd: Decimal = Decimal("10000"),
        scan_interval_ms: int = 5000,
        opportunity_ttl_seconds: int = 300,
        max_opportunities: int = 100,
        fetch_timeout_seconds: float = 10.0,
        trial_borrow_halvings: int = 5,
        reference_prices_usd: Optional[Dict[str, Decimal]] = None,
    ):
        self.min_profit_bps = min_profit_bps
        self.min_liquidity_usd = Decimal(str(min_liquidity_usd))
        self.scan_interval_ms = scan_interval_ms
        self.opportunity_ttl_seconds = opportunity_ttl_seconds
        self.max_opportunities = max_opportunities
        self.fetch_timeout_seconds = fetch_timeout_seconds
        self.trial_borrow_halvings = trial_borrow_halvings
        self.reference_prices_usd = dict(reference_prices_usd or {})


class ScoringConfig:
    """AI decision engine configuration"""

    def __init__(
        self,
        enabled: bool = True,
        risk_threshold: float = 30.0,
        min_success_probability: float = 0.7,
    ):
        self.enabled = enabled
        self.risk_threshold = risk_threshold
        self.min_success_probability = min_success_probability


class ExecutionConfig:
    """Execution engine configuration"""

    def __init__(
        self,
        auto_execute: bool = False,
        mode: str = "dry_run",
        max_concurrent_executions: int = 3,
        max_retries: int = 2,
        retry_delay_ms: int = 1000,
        tx_timeout_seconds: float = 30.0,
        request_max_age_seconds: float = 30.0,
        min_execution_profit_usd: Decimal = Decimal("1"),
        min_profit_bps: int = 50,
        max_slippage_bps: int = 100,
        max_trade_size_usd: Decimal = Decimal("50000"),
        optimizer_min_multiplier_pct: int = 50,
        optimizer_max_multiplier_pct: int = 150,
        optimizer_step_pct: int = 10,
        flash_loan_executor_address: str = "",
        executor_addresses: Optional[Dict[str, str]] = None,
        history_size: int = 100,
    ):
        self.auto_execute = auto_execute
        self.mode = mode
        self.max_concurrent_executions = max_concurrent_executions
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self.tx_timeout_seconds = tx_timeout_seconds
        self.request_max_age_seconds = request_max_age_seconds
        self.min_execution_profit_usd = Decimal(str(min_execution_profit_usd))
        self.min_profit_bps = min_profit_bps
        self.max_slippage_bps = max_slippage_bps
        self.max_trade_size_usd = Decimal(str(max_trade_size_usd))
        self.optimizer_min_multiplier_pct = optimizer_min_multiplier_pct
        self.optimizer_max_multiplier_pct = optimizer_max_multiplier_pct
        self.optimizer_step_pct = optimizer_step_pct
        self.flash_loan_executor_address = flash_loan_executor_address
        self.executor_addresses = dict(executor_addresses or {})
        self.history_size = history_size


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Trading
    min_profit_bps: int = Field(default=50, ge=0, le=10000, alias="MIN_PROFIT_BPS")
    max_slippage_bps: int = Field(default=100, ge=0, le=10000, alias="MAX_SLIPPAGE_BPS")
    min_liquidity_usd: Decimal = Field(default=Decimal("10000"), ge=0, alias="MIN_LIQUIDITY_USD")
    max_trade_size_usd: Decimal = Field(default=Decimal("50000"), gt=0, alias="MAX_TRADE_SIZE_USD")
    reference_prices_usd: Dict[str, Decimal] = Field(
        default_factory=lambda: {"ETH": Decimal("3000"), "XLM": Decimal("0.1")},
        alias="REFERENCE_PRICES_USD",
    )

    # Scanner
    scan_interval_ms: int = Field(default=5000, gt=0, alias="SCAN_INTERVAL_MS")
    opportunity_ttl_seconds: int = Field(default=300, gt=0, alias="OPPORTUNITY_TTL_SECONDS")
    max_opportunities: int = Field(default=100, gt=0, alias="MAX_OPPORTUNITIES")
    fetch_timeout_seconds: float = Field(default=10.0, gt=0, alias="FETCH_TIMEOUT_SECONDS")
    trial_borrow_halvings: int = Field(default=5, ge=0, le=20, alias="TRIAL_BORROW_HALVINGS")

    # AI Decision Engine
    ai_enabled: bool = Field(default=True, alias="AI_ENABLED")
    ai_risk_threshold: float = Field(default=30.0, ge=0, le=100, alias="AI_RISK_THRESHOLD")
    ai_min_success_prob: float = Field(default=0.7, ge=0, le=1, alias="AI_MIN_SUCCESS_PROB")

    # Execution
    auto_execute: bool = Field(default=False, alias="AUTO_EXECUTE")
    execution_mode: str = Field(default="dry_run", alias="EXECUTION_MODE")
    max_concurrent_executions: int = Field(default=3, gt=0, alias="MAX_CONCURRENT_EXECUTIONS")
    max_retries: int = Field(default=2, gt=0, alias="MAX_RETRIES")
    retry_delay_ms: int = Field(default=1000, ge=0, alias="RETRY_DELAY_MS")
    tx_timeout_seconds: float = Field(default=30.0, gt=0, alias="TX_TIMEOUT_SECONDS")
    request_max_age_seconds: float = Field(default=30.0, gt=0, alias="REQUEST_MAX_AGE_SECONDS")
    min_execution_profit_usd: Decimal = Field(default=Decimal("1"), ge=0, alias="MIN_EXECUTION_PROFIT_USD")
    optimizer_min_multiplier_pct: int = Field(default=50, gt=0, alias="OPTIMIZER_MIN_MULTIPLIER_PCT")
    optimizer_max_multiplier_pct: int = Field(default=150, gt=0, alias="OPTIMIZER_MAX_MULTIPLIER_PCT")
    optimizer_step_pct: int = Field(default=10, gt=0, alias="OPTIMIZER_STEP_PCT")

    # Chains
    base_enabled: bool = Field(default=True, alias="BASE_ENABLED")
    stellar_enabled: bool = Field(default=True, alias="STELLAR_ENABLED")
    pool_registry_file: Optional[str] = Field(default=None, alias="POOL_REGISTRY_FILE")

    # Base Configuration
    base_rpc_primary: str = Field(default="https://mainnet.base.org", alias="BASE_RPC_PRIMARY")
    base_rpc_fallback: str = Field(default="https://base.llamarpc.com", alias="BASE_RPC_FALLBACK")
    flash_loan_executor_address: str = Field(default="", alias="FLASH_LOAN_EXECUTOR_ADDRESS")
    bot_private_key: str = Field(default="", alias="BOT_PRIVATE_KEY")

    # Stellar Configuration
    stellar_rpc_url: str = Field(default="https://soroban-testnet.stellar.org", alias="STELLAR_RPC_URL")
    stellar_network_passphrase: str = Field(
        default="Test SDF Network ; September 2015",
        alias="STELLAR_NETWORK_PASSPHRASE",
    )
    stellar_secret_key: str = Field(default="", alias="STELLAR_SECRET_KEY")
    stellar_executor_contract_id: str = Field(default="", alias="STELLAR_EXECUTOR_CONTRACT_ID")

    # Monitoring
    prometheus_port: int = Field(default=9090, alias="PROMETHEUS_PORT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_execution_settings(self) -> "Settings":
        """Reject inconsistent execution settings at startup"""
        if self.execution_mode not in EXECUTION_MODES:
            raise ValueError(
                f"EXECUTION_MODE must be one of {', '.join(EXECUTION_MODES)}, got {self.execution_mode!r}"
            )

        if self.optimizer_min_multiplier_pct > self.optimizer_max_multiplier_pct:
            raise ValueError("OPTIMIZER_MIN_MULTIPLIER_PCT must not exceed OPTIMIZER_MAX_MULTIPLIER_PCT")

        if not (self.base_enabled or self.stellar_enabled):
            raise ValueError("At least one chain must be enabled (BASE_ENABLED, STELLAR_ENABLED)")

        if self.execution_mode == "live":
            if self.base_enabled:
                if not self.bot_private_key:
                    raise ValueError("BOT_PRIVATE_KEY is required in live mode")
                if not self.flash_loan_executor_address:
                    raise ValueError("FLASH_LOAN_EXECUTOR_ADDRESS is required in live mode")
            if self.stellar_enabled:
                if not self.stellar_secret_key:
                    raise ValueError("STELLAR_SECRET_KEY is required in live mode")
                if not self.stellar_executor_contract_id:
                    raise ValueError("STELLAR_EXECUTOR_CONTRACT_ID is required in live mode")

        return self

    def get_base_config(self) -> ChainConfig:
        """Get Base chain configuration"""
        return ChainConfig(
            name="Base",
            chain_id=8453,
            rpc_urls=[self.base_rpc_primary, self.base_rpc_fallback],
            block_time_seconds=2.0,
            native_token="ETH",
            native_token_usd=self.reference_prices_usd.get("ETH", Decimal("3000")),
        )

    def get_stellar_config(self) -> SorobanConfig:
        """Get Stellar network configuration"""
        return SorobanConfig(
            rpc_url=self.stellar_rpc_url,
            network_passphrase=self.stellar_network_passphrase,
            native_token_usd=self.reference_prices_usd.get("XLM", Decimal("0.1")),
        )

    def get_chain_enablement(self) -> Dict[str, bool]:
        """Chain name to enabled flag"""
        return {"Stellar": self.stellar_enabled, "Base": self.base_enabled}

    def get_scanner_config(self) -> ScannerConfig:
        """Get scanner, detector and store configuration"""
        return ScannerConfig(
            min_profit_bps=self.min_profit_bps,
            min_liquidity_usd=self.min_liquidity_usd,
            scan_interval_ms=self.scan_interval_ms,
            opportunity_ttl_seconds=self.opportunity_ttl_seconds,
            max_opportunities=self.max_opportunities,
            fetch_timeout_seconds=self.fetch_timeout_seconds,
            trial_borrow_halvings=self.trial_borrow_halvings,
            reference_prices_usd=self.reference_prices_usd,
        )

    def get_scoring_config(self) -> ScoringConfig:
        """Get AI decision engine configuration"""
        return ScoringConfig(
            enabled=self.ai_enabled,
            risk_threshold=self.ai_risk_threshold,
            min_success_probability=self.ai_min_success_prob,
        )

    def get_execution_config(self) -> ExecutionConfig:
        """Get execution engine configuration"""
        return ExecutionConfig(
            auto_execute=self.auto_execute,
            mode=self.execution_mode,
            max_concurrent_executions=self.max_concurrent_executions,
            max_retries=self.max_retries,
            retry_delay_ms=self.retry_delay_ms,
            tx_timeout_seconds=self.tx_timeout_seconds,
            request_max_age_seconds=self.request_max_age_seconds,
            min_execution_profit_usd=self.min_execution_profit_usd,
            min_profit_bps=self.min_profit_bps,
            max_slippage_bps=self.max_slippage_bps,
            max_trade_size_usd=self.max_trade_size_usd,
            optimizer_min_multiplier_pct=self.optimizer_min_multiplier_pct,
            optimizer_max_multiplier_pct=self.optimizer_max_multiplier_pct,
            optimizer_step_pct=self.optimizer_step_pct,
            flash_loan_executor_address=self.flash_loan_executor_address,
            executor_addresses={
                chain: address
                for chain, address in (
                    ("Base", self.flash_loan_executor_address),
                    ("Stellar", self.stellar_executor_contract_id),
                )
                if address
            },
        )
