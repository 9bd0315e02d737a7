"""Tests for configuration models"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from flasharb.config.models import ChainConfig, Pool, Settings, Token
from flasharb.config.registry import (
    BASE_POOLS,
    BASE_TOKENS,
    DEFAULT_REGISTRY,
    STELLAR_POOLS,
    ChainRegistry,
    PoolRegistry,
    VenueType,
    find_arbitrage_pairs,
    load_registry,
)


def test_chain_config_creation():
    """Test ChainConfig model creation"""
    config = ChainConfig(
        name="Base",
        chain_id=8453,
        rpc_urls=["https://mainnet.base.org"],
        block_time_seconds=2.0,
        native_token="ETH",
        native_token_usd=Decimal("3000"),
    )

    assert config.name == "Base"
    assert config.chain_id == 8453
    assert len(config.rpc_urls) == 1
    assert config.native_token_usd == Decimal("3000")


def test_token_decimals_validated():
    """Test token decimals must be in range"""
    with pytest.raises(ValidationError):
        Token(symbol="BAD", name="Bad", address="0x0", decimals=-1)


def test_pool_fee_validated():
    """Test pool fee must be below 100%"""
    with pytest.raises(ValidationError):
        Pool(
            venue="Aerodrome",
            venue_type=VenueType.AERODROME,
            chain="Base",
            pool_address="0x0",
            token_a="ETH",
            token_b="USDC",
            fee_bps=10000,
        )


def test_settings_defaults():
    """Test defaults without any environment"""
    settings = Settings()

    assert settings.min_profit_bps == 50
    assert settings.ai_enabled is True
    assert settings.execution_mode == "dry_run"
    assert settings.auto_execute is False
    assert settings.max_concurrent_executions == 3
    assert settings.max_retries == 2
    assert settings.optimizer_min_multiplier_pct == 50
    assert settings.optimizer_max_multiplier_pct == 150


def test_settings_with_env_vars(monkeypatch):
    """Test Settings loading from environment variables"""
    monkeypatch.setenv("MIN_PROFIT_BPS", "75")
    monkeypatch.setenv("MIN_LIQUIDITY_USD", "25000")
    monkeypatch.setenv("SCAN_INTERVAL_MS", "2000")
    monkeypatch.setenv("AI_ENABLED", "false")
    monkeypatch.setenv("AI_RISK_THRESHOLD", "40")
    monkeypatch.setenv("AUTO_EXECUTE", "true")
    monkeypatch.setenv("MAX_CONCURRENT_EXECUTIONS", "5")
    monkeypatch.setenv("BASE_RPC_PRIMARY", "https://base-primary.example.com")
    monkeypatch.setenv("REFERENCE_PRICES_USD", '{"ETH": "3100.5"}')
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    settings = Settings()

    assert settings.min_profit_bps == 75
    assert settings.min_liquidity_usd == Decimal("25000")
    assert settings.scan_interval_ms == 2000
    assert settings.ai_enabled is False
    assert settings.ai_risk_threshold == 40.0
    assert settings.auto_execute is True
    assert settings.max_concurrent_executions == 5
    assert settings.base_rpc_primary == "https://base-primary.example.com"
    assert settings.reference_prices_usd == {"ETH": Decimal("3100.5")}
    assert settings.log_level == "DEBUG"


def test_settings_invalid_execution_mode(monkeypatch):
    """Test unknown execution modes are rejected at startup"""
    monkeypatch.setenv("EXECUTION_MODE", "paper")

    with pytest.raises(ValidationError, match="EXECUTION_MODE"):
        Settings()


def test_settings_live_mode_requires_key(monkeypatch):
    """Test live mode on Base needs a signing key and executor address"""
    monkeypatch.setenv("EXECUTION_MODE", "live")
    monkeypatch.setenv("STELLAR_ENABLED", "false")

    with pytest.raises(ValidationError, match="BOT_PRIVATE_KEY"):
        Settings()

    monkeypatch.setenv("BOT_PRIVATE_KEY", "0x" + "11" * 32)
    with pytest.raises(ValidationError, match="FLASH_LOAN_EXECUTOR_ADDRESS"):
        Settings()

    monkeypatch.setenv("FLASH_LOAN_EXECUTOR_ADDRESS", "0x9999999999999999999999999999999999999999")
    assert Settings().execution_mode == "live"


def test_settings_live_mode_requires_stellar_key(monkeypatch):
    """Test live mode on Stellar needs a secret key and executor contract"""
    monkeypatch.setenv("EXECUTION_MODE", "live")
    monkeypatch.setenv("BASE_ENABLED", "false")

    with pytest.raises(ValidationError, match="STELLAR_SECRET_KEY"):
        Settings()

    monkeypatch.setenv("STELLAR_SECRET_KEY", "S" + "A" * 55)
    with pytest.raises(ValidationError, match="STELLAR_EXECUTOR_CONTRACT_ID"):
        Settings()

    monkeypatch.setenv("STELLAR_EXECUTOR_CONTRACT_ID", "C" + "A" * 55)
    assert Settings().execution_mode == "live"


def test_settings_require_an_enabled_chain(monkeypatch):
    """Test disabling every chain is rejected at startup"""
    monkeypatch.setenv("BASE_ENABLED", "false")
    monkeypatch.setenv("STELLAR_ENABLED", "false")

    with pytest.raises(ValidationError, match="At least one chain"):
        Settings()


def test_settings_optimizer_bounds(monkeypatch):
    """Test the optimizer range must not be inverted"""
    monkeypatch.setenv("OPTIMIZER_MIN_MULTIPLIER_PCT", "200")

    with pytest.raises(ValidationError, match="OPTIMIZER_MIN_MULTIPLIER_PCT"):
        Settings()


@pytest.mark.parametrize(
    "name,value",
    [
        ("MIN_PROFIT_BPS", "-1"),
        ("AI_MIN_SUCCESS_PROB", "1.5"),
        ("MAX_CONCURRENT_EXECUTIONS", "0"),
        ("SCAN_INTERVAL_MS", "0"),
    ],
)
def test_settings_out_of_range(monkeypatch, name, value):
    """Test out-of-range numeric settings are rejected"""
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        Settings()


def test_settings_component_configs(monkeypatch):
    """Test settings are mapped onto component configs"""
    monkeypatch.setenv("MAX_SLIPPAGE_BPS", "80")
    monkeypatch.setenv("OPPORTUNITY_TTL_SECONDS", "120")
    monkeypatch.setenv("AI_MIN_SUCCESS_PROB", "0.6")
    monkeypatch.setenv("REFERENCE_PRICES_USD", '{"ETH": "2500"}')
    monkeypatch.setenv("STELLAR_EXECUTOR_CONTRACT_ID", "C" + "B" * 55)
    monkeypatch.setenv("BASE_ENABLED", "false")

    settings = Settings()
    scanner = settings.get_scanner_config()
    scoring = settings.get_scoring_config()
    execution = settings.get_execution_config()
    base = settings.get_base_config()
    stellar = settings.get_stellar_config()

    assert scanner.opportunity_ttl_seconds == 120
    assert scanner.reference_prices_usd == {"ETH": Decimal("2500")}
    assert scoring.min_success_probability == 0.6
    assert execution.max_slippage_bps == 80
    assert execution.mode == "dry_run"
    assert base.chain_id == 8453
    assert base.rpc_urls == [settings.base_rpc_primary, settings.base_rpc_fallback]
    assert base.native_token_usd == Decimal("2500")
    assert stellar.native_token == "XLM"
    assert stellar.native_token_usd == Decimal("0.1")
    assert execution.executor_addresses == {"Stellar": "C" + "B" * 55}
    assert settings.get_chain_enablement() == {"Stellar": True, "Base": False}



class TestRegistry:
    """Test the per-chain token and pool registry"""

    def test_default_registry_covers_both_chains(self):
        """Test the built-in registry keys tokens by chain"""
        tokens = DEFAULT_REGISTRY.tokens()

        assert set(tokens) == {"Stellar", "Base"}
        assert tokens["Stellar"]["USDC"].decimals == 7
        assert tokens["Base"]["USDC"].decimals == 6
        assert DEFAULT_REGISTRY.get_chain("Stellar").venues() == ["Aquarius", "Soroswap"]
        assert DEFAULT_REGISTRY.get_chain("Solana") is None

    def test_disabled_chain_is_excluded(self):
        """Test chain switches remove a chain's pools and tokens"""
        registry = load_registry(enabled={"Stellar": False})

        assert [chain.name for chain in registry.enabled_chains()] == ["Base"]
        assert registry.pools() == BASE_POOLS
        assert set(registry.tokens()) == {"Base"}
        assert len(DEFAULT_REGISTRY.enabled_chains()) == 2

    def test_load_registry_from_file(self, tmp_path):
        """Test a JSON registry file replaces the built-in pools"""
        chain = ChainRegistry(name="Base", tokens=BASE_TOKENS, pools=BASE_POOLS[:1])
        path = tmp_path / "registry.json"
        path.write_text(PoolRegistry(chains=[chain]).model_dump_json(), encoding="utf-8")

        registry = load_registry(str(path), {"Base": True, "Stellar": True})

        assert registry.pools() == BASE_POOLS[:1]
        assert registry.get_chain("Stellar") is None

    def test_pool_on_wrong_chain_rejected(self):
        """Test a chain cannot list another chain's pools"""
        with pytest.raises(ValidationError, match="not Stellar"):
            ChainRegistry(name="Stellar", tokens=BASE_TOKENS, pools=BASE_POOLS)

    def test_pool_with_unknown_token_rejected(self):
        """Test every pool token must be registered on its chain"""
        with pytest.raises(ValidationError, match="unknown token"):
            ChainRegistry(name="Base", tokens={"ETH": BASE_TOKENS["ETH"]}, pools=BASE_POOLS)

    def test_unsupported_and_duplicate_chains_rejected(self):
        """Test the registry only accepts each supported chain once"""
        with pytest.raises(ValidationError, match="Unsupported chains"):
            PoolRegistry(chains=[ChainRegistry(name="Solana", tokens={}, pools=[])])

        base = ChainRegistry(name="Base", tokens=BASE_TOKENS, pools=BASE_POOLS)
        with pytest.raises(ValidationError, match="once"):
            PoolRegistry(chains=[base, base])

    def test_find_arbitrage_pairs(self):
        """Test only cross-venue pools on the same pair are paired"""
        pairs = find_arbitrage_pairs(BASE_POOLS)

        assert len(pairs) == 1
        pool_a, pool_b = pairs[0]
        assert pool_a.venue != pool_b.venue
        assert pool_a.trades_pair(pool_b.token_a, pool_b.token_b)

    def test_find_arbitrage_pairs_on_stellar(self):
        """Test the Soroswap and Aquarius XLM/USDC pools form the only Stellar pair"""
        pairs = find_arbitrage_pairs(STELLAR_POOLS)

        assert [(a.venue, b.venue) for a, b in pairs] == [("Soroswap", "Aquarius")]

    def test_find_arbitrage_pairs_never_crosses_chains(self):
        """Test pools on different chains are never paired"""
        stellar_eth = Pool(
            venue="Soroswap",
            venue_type=VenueType.SOROSWAP,
            chain="Stellar",
            pool_address="CSTELLARETHUSDC",
            token_a="ETH",
            token_b="USDC",
            fee_bps=30,
        )

        pairs = find_arbitrage_pairs(BASE_POOLS + [stellar_eth])

        assert len(pairs) == 1
        assert {pool.chain for pair in pairs for pool in pair} == {"Base"}
