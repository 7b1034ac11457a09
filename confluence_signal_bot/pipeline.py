from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .config import Config
from .models import Candle, Rejection, RegimeDecision, Signal
from .regime import classify_regime
from .risk import apply_risk_management
from .strategy import ConfluenceEngine

STAGE_CONFLUENCE = "confluence"
STAGE_RISK = "risk"


@dataclass
class TimeframeReport:
    symbol: str
    timeframe: str
    signals: List[Signal] = field(default_factory=list)  # passed both gates
    candidates: List[Signal] = field(default_factory=list)  # passed confluence only
    rejections: List[Rejection] = field(default_factory=list)
    stages: List[str] = field(default_factory=list)  # stage of each rejection, same order


def select_timeframes(candles: Sequence[Candle], cfg: Config) -> RegimeDecision:
    return classify_regime(candles, cfg.regime)


def evaluate_timeframe(
    symbol: str,
    timeframe: str,
    candles: Sequence[Candle],
    cfg: Config,
    *,
    engine: Optional[ConfluenceEngine] = None,
    now_ms: Optional[int] = None,
) -> TimeframeReport:
    """Run confluence then risk sizing for one (symbol, timeframe) series."""
    engine = engine or ConfluenceEngine(cfg.strategy)
    report = TimeframeReport(symbol=symbol, timeframe=timeframe)

    conf = engine.evaluate(symbol, timeframe, candles, now_ms=now_ms)
    for rej in conf.rejections:
        report.rejections.append(rej)
        report.stages.append(STAGE_CONFLUENCE)

    risk = cfg.risk
    for candidate in conf.signals:
        report.candidates.append(candidate)
        decision = apply_risk_management(
            candidate,
            risk.account_balance,
            risk.risk_per_trade,
            risk.max_leverage,
            risk,
        )
        if not decision.is_valid:
            report.rejections.append(Rejection(decision.code, f"{symbol} {timeframe}: {decision.reason}"))
            report.stages.append(STAGE_RISK)
            continue
        report.signals.append(decision.signal)

    return report
