import pytest

from confluence_signal_bot.config import DEFAULT_SYMBOLS, Config, ProviderConfig, StrategyConfig, load_config

_ENV_KEYS = ("TELEGRAM_TOKEN", "TELEGRAM_CHAT_IDS", "SCAN_SYMBOLS", "ACCOUNT_BALANCE", "RISK_PER_TRADE", "MAX_LEVERAGE")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults_without_file():
    cfg = load_config()
    assert cfg.provider.symbols == list(DEFAULT_SYMBOLS)
    assert cfg.provider.baseline_timeframe == "15m"
    assert cfg.provider.candle_limit == 300
    assert cfg.strategy.min_votes == 2
    assert cfg.risk.max_risk_percent == 5.0
    assert cfg.telegram.chat_ids == []


def test_yaml_sections_are_loaded(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "\n".join(
            [
                "app:",
                "  log_level: DEBUG",
                "provider:",
                "  symbols: [BTCUSDT, XRPUSDT]",
                "  scan_concurrency: 2",
                "regime:",
                "  trending_timeframes: ['4h', '1d']",
                "risk:",
                "  account_balance: 2500",
                "  max_leverage: 3",
                "telegram:",
                "  token: abc",
                "  chat_ids: [12345]",
            ]
        ),
        encoding="utf-8",
    )
    cfg = load_config(str(path))
    assert cfg.app.log_level == "DEBUG"
    assert cfg.provider.symbols == ["BTCUSDT", "XRPUSDT"]
    assert cfg.provider.scan_concurrency == 2
    assert cfg.regime.trending_timeframes == ["4h", "1d"]
    assert cfg.risk.account_balance == 2500.0
    assert cfg.risk.max_leverage == 3
    assert cfg.telegram.token == "abc"
    assert cfg.telegram.chat_ids == ["12345"]


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("TELEGRAM_TOKEN", "from-env")
    monkeypatch.setenv("TELEGRAM_CHAT_IDS", "1, 2")
    monkeypatch.setenv("SCAN_SYMBOLS", "adausdt,dogeusdt")
    monkeypatch.setenv("ACCOUNT_BALANCE", "500")
    monkeypatch.setenv("MAX_LEVERAGE", "not-a-number")
    cfg = load_config()
    assert cfg.telegram.token == "from-env"
    assert cfg.telegram.chat_ids == ["1", "2"]
    assert cfg.provider.symbols == ["ADAUSDT", "DOGEUSDT"]
    assert cfg.risk.account_balance == 500.0
    assert cfg.risk.max_leverage == 10  # unparsable values keep the default


def test_unknown_key_is_rejected(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("strategy:\n  ema_fastest: 3\n", encoding="utf-8")
    with pytest.raises(TypeError):
        load_config(str(path))


def test_validate_collects_errors():
    cfg = Config(provider=ProviderConfig(symbols=[], candle_limit=100), strategy=StrategyConfig(ema_fast=30))
    with pytest.raises(ValueError) as ei:
        cfg.validate()
    msg = str(ei.value)
    assert "provider.symbols" in msg
    assert "candle_limit" in msg
    assert "ema_fast" in msg


def test_validate_requires_history_for_trend_filter():
    cfg = Config(strategy=StrategyConfig(min_bars=150))
    with pytest.raises(ValueError, match="trend_sma_len"):
        cfg.validate()
