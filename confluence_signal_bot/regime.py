from __future__ import annotations

import logging
from typing import Optional, Sequence

from .config import RegimeConfig
from .indicators import adx, atr
from .models import Candle, RegimeDecision

log = logging.getLogger("regime")

RANGING = "ranging"
TRANSITION = "transition"
TRENDING = "trending"
DEFAULT = "default"


def classify_regime(candles: Sequence[Candle], cfg: Optional[RegimeConfig] = None) -> RegimeDecision:
    """Pick the timeframes worth scanning and flag abnormal volatility.

    Short histories fail open: the default timeframe pair comes back with
    ``is_volatile=False`` so the caller still scans the symbol.
    """
    cfg = cfg or RegimeConfig()
    if len(candles) < int(cfg.min_bars):
        log.debug("regime_default bars=%d min_bars=%d", len(candles), cfg.min_bars)
        return RegimeDecision(regime=DEFAULT, timeframes=list(cfg.default_timeframes), is_volatile=False)

    adx_vals = adx(candles, cfg.adx_period)
    atr_vals = atr(candles, cfg.atr_period)
    current_adx = adx_vals[-1]
    current_atr = atr_vals[-1]

    lookback = max(1, int(cfg.atr_lookback))
    trailing = atr_vals[-lookback:]
    atr_mean = sum(trailing) / float(len(trailing))
    is_volatile = current_atr > atr_mean * float(cfg.volatility_multiplier)

    if current_adx < cfg.adx_ranging_below:
        regime, tfs = RANGING, cfg.ranging_timeframes
    elif current_adx > cfg.adx_trending_above:
        regime, tfs = TRENDING, cfg.trending_timeframes
    else:
        regime, tfs = TRANSITION, cfg.transition_timeframes

    return RegimeDecision(
        regime=regime,
        timeframes=list(tfs),
        is_volatile=is_volatile,
        adx=current_adx,
        atr=current_atr,
        atr_mean=atr_mean,
    )
