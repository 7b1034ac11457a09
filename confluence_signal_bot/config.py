from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List, Optional
import os
import yaml


DEFAULT_SYMBOLS = ("BTCUSDT", "ETHUSDT", "SOLUSDT", "BNBUSDT")


def _env_override(value: Any, env_key: str) -> Any:
    env_val = os.getenv(env_key)
    if env_val is None:
        return value
    # basic parsing
    if isinstance(value, bool):
        return env_val.strip().lower() in ("1", "true", "yes", "y", "on")
    if isinstance(value, int):
        try:
            return int(env_val)
        except ValueError:
            return value
    if isinstance(value, float):
        try:
            return float(env_val)
        except ValueError:
            return value
    return env_val


def _env_list(value: List[str], env_key: str) -> List[str]:
    env_val = os.getenv(env_key)
    if not env_val:
        return value
    return [x.strip() for x in env_val.split(",") if x.strip()]


@dataclass
class AppConfig:
    name: str = "Confluence Sentinel"
    log_level: str = "INFO"


@dataclass
class ProviderConfig:
    type: str = "binance"
    market: str = "spot"  # spot|futures
    symbols: List[str] = None
    baseline_timeframe: str = "15m"
    candle_limit: int = 300
    rest_timeout_s: int = 20
    max_retries: int = 3
    retry_sleep_s: float = 2.0
    rate_limit_sleep_s: float = 5.0
    scan_concurrency: int = 4


@dataclass
class RegimeConfig:
    min_bars: int = 50
    adx_period: int = 14
    atr_period: int = 14
    atr_lookback: int = 20
    volatility_multiplier: float = 1.8
    adx_ranging_below: float = 20.0
    adx_trending_above: float = 25.0
    ranging_timeframes: List[str] = field(default_factory=lambda: ["5m", "15m"])
    transition_timeframes: List[str] = field(default_factory=lambda: ["15m", "1h"])
    trending_timeframes: List[str] = field(default_factory=lambda: ["1h", "4h"])
    default_timeframes: List[str] = field(default_factory=lambda: ["15m", "1h"])


@dataclass
class StrategyConfig:
    min_bars: int = 200
    trend_sma_len: int = 200
    ema_fast: int = 9
    ema_slow: int = 21
    rsi_len: int = 14
    rsi_oversold: float = 30.0
    rsi_overbought: float = 70.0
    bb_len: int = 20
    bb_std_mult: float = 2.0
    volume_sma_len: int = 20
    atr_len: int = 14
    atr_stop_mult: float = 2.0
    reward_multiple: float = 2.0  # target distance / stop distance
    min_votes: int = 2


@dataclass
class RiskConfig:
    account_balance: float = 1000.0
    risk_per_trade: float = 1.0  # percent of balance
    max_leverage: int = 10
    max_risk_percent: float = 5.0
    min_stop_pct: float = 0.001
    max_stop_pct: float = 0.10
    min_rr: float = 2.0


@dataclass
class TelegramConfig:
    enabled: bool = True
    token: str = ""
    chat_ids: List[str] = None
    parse_mode: str = "HTML"  # HTML | MarkdownV2
    disable_web_page_preview: bool = True


@dataclass
class Config:
    app: AppConfig = field(default_factory=AppConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    regime: RegimeConfig = field(default_factory=RegimeConfig)
    strategy: StrategyConfig = field(default_factory=StrategyConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)

    def __post_init__(self) -> None:
        if self.provider.symbols is None:
            self.provider.symbols = list(DEFAULT_SYMBOLS)
        if self.telegram.chat_ids is None:
            self.telegram.chat_ids = []

    def validate(self) -> None:
        errs = []
        if not self.provider.symbols:
            errs.append("provider.symbols must not be empty")
        if self.provider.candle_limit < self.strategy.min_bars:
            errs.append(
                f"provider.candle_limit={self.provider.candle_limit} is below strategy.min_bars={self.strategy.min_bars}"
            )
        if self.risk.account_balance <= 0:
            errs.append("risk.account_balance must be positive")
        if self.risk.risk_per_trade <= 0:
            errs.append("risk.risk_per_trade must be positive")
        if int(self.risk.max_leverage) < 1:
            errs.append("risk.max_leverage must be >= 1")
        if self.regime.adx_ranging_below > self.regime.adx_trending_above:
            errs.append("regime.adx_ranging_below must not exceed regime.adx_trending_above")
        if self.strategy.min_bars < self.strategy.trend_sma_len:
            errs.append(
                f"strategy.min_bars={self.strategy.min_bars} is below strategy.trend_sma_len={self.strategy.trend_sma_len}"
            )
        if self.strategy.ema_fast >= self.strategy.ema_slow:
            errs.append("strategy.ema_fast must be shorter than strategy.ema_slow")
        if errs:
            raise ValueError("Invalid config: " + "; ".join(errs))


def load_config(path: Optional[str] = None) -> Config:
    raw = {}
    if path:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

    cfg = Config(
        app=AppConfig(**raw.get("app", {})),
        provider=ProviderConfig(**raw.get("provider", {})),
        regime=RegimeConfig(**raw.get("regime", {})),
        strategy=StrategyConfig(**raw.get("strategy", {})),
        risk=RiskConfig(**raw.get("risk", {})),
        telegram=TelegramConfig(**raw.get("telegram", {})),
    )

    # env overrides (useful on servers)
    cfg.telegram.token = _env_override(cfg.telegram.token, "TELEGRAM_TOKEN")
    cfg.telegram.chat_ids = [str(x).strip() for x in _env_list(cfg.telegram.chat_ids, "TELEGRAM_CHAT_IDS")]
    cfg.provider.symbols = [s.upper() for s in _env_list(cfg.provider.symbols, "SCAN_SYMBOLS")]
    cfg.risk.account_balance = _env_override(float(cfg.risk.account_balance), "ACCOUNT_BALANCE")
    cfg.risk.risk_per_trade = _env_override(float(cfg.risk.risk_per_trade), "RISK_PER_TRADE")
    cfg.risk.max_leverage = _env_override(int(cfg.risk.max_leverage), "MAX_LEVERAGE")

    cfg.validate()
    return cfg
