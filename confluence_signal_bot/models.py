from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

LONG = "LONG"
SHORT = "SHORT"

STATUS_PENDING = "PENDING"
STATUS_SENT = "SENT"
STATUS_FAILED = "FAILED"

# Rejection codes. Every non-signal outcome of the pipeline carries one of these.
INSUFFICIENT_HISTORY = "insufficient_history"
VOLATILITY_ANOMALY = "volatility_anomaly"
NO_VOTES = "no_votes"
LOW_CONFLUENCE = "low_confluence"
VOTE_TIE = "vote_tie"
TREND_MISMATCH = "trend_mismatch"
VOLUME_UNCONFIRMED = "volume_unconfirmed"
ZERO_STOP_DISTANCE = "zero_stop_distance"
STOP_TOO_TIGHT = "stop_too_tight"
STOP_TOO_WIDE = "stop_too_wide"
RR_TOO_LOW = "rr_too_low"
INVALID_RISK_INPUT = "invalid_risk_input"


@dataclass(frozen=True)
class Candle:
    open_time_ms: int
    close_time_ms: int
    open: float
    high: float
    low: float
    close: float
    volume: float


@dataclass(frozen=True)
class Signal:
    symbol: str
    timeframe: str
    strategy: str  # which votes agreed, e.g. "Confluence: EMA Cross + RSI Oversold"
    side: str  # LONG or SHORT
    entry_price: float
    stop_loss: float
    take_profit: float
    created_ms: int
    status: str = STATUS_PENDING
    position_size: Optional[float] = None  # base asset units
    suggested_leverage: Optional[int] = None
    signal_id: Optional[str] = None
    extra: dict = field(default_factory=dict)

    @property
    def stop_distance(self) -> float:
        return abs(self.entry_price - self.stop_loss)

    @property
    def reward_distance(self) -> float:
        return abs(self.take_profit - self.entry_price)

    @property
    def risk_reward(self) -> Optional[float]:
        d = self.stop_distance
        if d == 0:
            return None
        return self.reward_distance / d


@dataclass(frozen=True)
class Rejection:
    code: str
    reason: str

    def __str__(self) -> str:
        return self.reason


@dataclass(frozen=True)
class RegimeDecision:
    regime: str  # ranging | transition | trending | default
    timeframes: List[str]
    is_volatile: bool
    adx: Optional[float] = None
    atr: Optional[float] = None
    atr_mean: Optional[float] = None


@dataclass
class ConfluenceResult:
    signals: List[Signal] = field(default_factory=list)
    rejections: List[Rejection] = field(default_factory=list)


@dataclass(frozen=True)
class RiskDecision:
    is_valid: bool
    signal: Signal
    code: Optional[str] = None
    reason: Optional[str] = None
