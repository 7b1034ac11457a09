from __future__ import annotations

from dataclasses import replace
import logging
import math
from typing import Optional

from .config import RiskConfig
from .models import (
    INVALID_RISK_INPUT,
    RR_TOO_LOW,
    STOP_TOO_TIGHT,
    STOP_TOO_WIDE,
    ZERO_STOP_DISTANCE,
    RiskDecision,
    Signal,
)

log = logging.getLogger("risk")

# targets are built as exact multiples of the stop distance; float rounding must not
# push a 2.0 ratio to 1.9999999
_RR_TOLERANCE = 1e-9


def _reject(signal: Signal, code: str, reason: str) -> RiskDecision:
    log.info("risk_rejected symbol=%s tf=%s side=%s code=%s reason=%s", signal.symbol, signal.timeframe, signal.side, code, reason)
    return RiskDecision(is_valid=False, signal=signal, code=code, reason=reason)


def apply_risk_management(
    signal: Signal,
    balance: float,
    risk_percent: float,
    max_leverage: int,
    cfg: Optional[RiskConfig] = None,
) -> RiskDecision:
    """Validate a candidate's stop/target geometry and size the position.

    Checks run in order and the first failure is returned. On success the
    returned signal carries ``position_size`` (asset units, 6 decimals) and an
    integer ``suggested_leverage`` never above ``max_leverage``.
    """
    cfg = cfg or RiskConfig()
    entry = signal.entry_price
    if entry <= 0 or balance <= 0:
        return _reject(signal, INVALID_RISK_INPUT, f"Cannot size position (entry={entry:g}, balance={balance:g})")

    sl_distance = abs(entry - signal.stop_loss)

    if sl_distance == 0:
        return _reject(signal, ZERO_STOP_DISTANCE, "Zero distance stop loss")

    sl_pct = sl_distance / entry
    if sl_pct <= cfg.min_stop_pct:
        return _reject(
            signal,
            STOP_TOO_TIGHT,
            f"Unsafe: SL distance too small ({sl_pct * 100:.3f}% <= {cfg.min_stop_pct * 100:.1f}%, market noise)",
        )
    if sl_pct > cfg.max_stop_pct:
        return _reject(
            signal,
            STOP_TOO_WIDE,
            f"Unsafe: SL distance too large ({sl_pct * 100:.2f}% > {cfg.max_stop_pct * 100:.1f}%, extreme volatility)",
        )

    rr = abs(signal.take_profit - entry) / sl_distance
    if rr < cfg.min_rr - _RR_TOLERANCE:
        return _reject(signal, RR_TOO_LOW, f"R/R ratio too low ({rr:.2f} < {cfg.min_rr:.1f})")

    effective_pct = min(float(risk_percent), float(cfg.max_risk_percent))
    risk_amount = balance * (effective_pct / 100.0)
    position_size = risk_amount / sl_distance

    required_leverage = (position_size * entry) / balance
    leverage = int(math.ceil(required_leverage))
    max_leverage = int(max_leverage)
    if leverage > max_leverage:
        # shrink the position instead of exceeding the leverage cap
        leverage = max_leverage
        position_size = (balance * max_leverage) / entry
    leverage = max(1, leverage)

    sized = replace(signal, position_size=round(position_size, 6), suggested_leverage=leverage)
    log.info(
        "risk_accepted symbol=%s tf=%s side=%s size=%.6f leverage=%dx risk_amount=%.2f rr=%.2f",
        sized.symbol,
        sized.timeframe,
        sized.side,
        sized.position_size,
        leverage,
        risk_amount,
        rr,
    )
    return RiskDecision(is_valid=True, signal=sized)
