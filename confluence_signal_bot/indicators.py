from __future__ import annotations
from dataclasses import dataclass
from typing import List, Sequence, Tuple
import math

from .models import Candle

# Every series returned here has the same length as its input. Indices inside the
# warm-up window hold a sentinel (0.0, or 50.0 for RSI) instead of a value.

RSI_NEUTRAL = 50.0


def sma(values: Sequence[float], period: int) -> List[float]:
    n = len(values)
    out = [0.0] * n
    if period <= 0 or n < period:
        return out
    for i in range(period - 1, n):
        out[i] = math.fsum(values[i - period + 1 : i + 1]) / float(period)
    return out


def ema(values: Sequence[float], period: int) -> List[float]:
    if not values:
        return []
    k = 2.0 / (period + 1.0)
    out = [float(values[0])]
    for i in range(1, len(values)):
        out.append(values[i] * k + out[i - 1] * (1.0 - k))
    return out


def rsi(closes: Sequence[float], period: int = 14) -> List[float]:
    """Wilder RSI.

    Averages are seeded from the first ``period`` deltas, so the first real value
    sits at index ``period + 1``; everything before holds ``RSI_NEUTRAL``. A zero
    average loss (including a constant series) reads as 100.
    """
    n = len(closes)
    out = [RSI_NEUTRAL] * n
    if period <= 0 or n < period + 1:
        return out

    gains = 0.0
    losses = 0.0
    for i in range(1, period + 1):
        ch = closes[i] - closes[i - 1]
        if ch >= 0:
            gains += ch
        else:
            losses -= ch
    avg_gain = gains / period
    avg_loss = losses / period

    for i in range(period + 1, n):
        ch = closes[i] - closes[i - 1]
        gain = ch if ch > 0 else 0.0
        loss = -ch if ch < 0 else 0.0
        avg_gain = (avg_gain * (period - 1) + gain) / period
        avg_loss = (avg_loss * (period - 1) + loss) / period
        if avg_loss == 0:
            out[i] = 100.0
        else:
            rs = avg_gain / avg_loss
            out[i] = 100.0 - (100.0 / (1.0 + rs))
    return out


@dataclass(frozen=True)
class BollingerBands:
    upper: List[float]
    middle: List[float]
    lower: List[float]


def bollinger_bands(closes: Sequence[float], period: int = 20, std_mult: float = 2.0) -> BollingerBands:
    n = len(closes)
    upper = [0.0] * n
    middle = sma(closes, period)
    lower = [0.0] * n
    if period <= 0 or n < period:
        return BollingerBands(upper=upper, middle=middle, lower=lower)
    for i in range(period - 1, n):
        mean = middle[i]
        window = closes[i - period + 1 : i + 1]
        variance = math.fsum((x - mean) ** 2 for x in window) / period
        half = std_mult * math.sqrt(variance)
        upper[i] = mean + half
        lower[i] = mean - half
    return BollingerBands(upper=upper, middle=middle, lower=lower)


def true_range(high: float, low: float, prev_close: float) -> float:
    return max(high - low, abs(high - prev_close), abs(low - prev_close))


def true_ranges(candles: Sequence[Candle]) -> List[float]:
    out: List[float] = []
    for i, c in enumerate(candles):
        if i == 0:
            out.append(c.high - c.low)
        else:
            out.append(true_range(c.high, c.low, candles[i - 1].close))
    return out


def wilder_smooth(values: Sequence[float], period: int) -> List[float]:
    """Wilder moving average seeded with the simple mean of the first ``period`` values."""
    n = len(values)
    out = [0.0] * n
    if period <= 0 or n < period:
        return out
    out[period - 1] = math.fsum(values[:period]) / period
    for i in range(period, n):
        out[i] = (out[i - 1] * (period - 1) + values[i]) / period
    return out


def atr(candles: Sequence[Candle], period: int = 14) -> List[float]:
    return wilder_smooth(true_ranges(candles), period)


def directional_movement(candles: Sequence[Candle]) -> Tuple[List[float], List[float]]:
    n = len(candles)
    plus_dm = [0.0] * n
    minus_dm = [0.0] * n
    for i in range(1, n):
        up_move = candles[i].high - candles[i - 1].high
        down_move = candles[i - 1].low - candles[i].low
        if up_move > down_move and up_move > 0:
            plus_dm[i] = up_move
        if down_move > up_move and down_move > 0:
            minus_dm[i] = down_move
    return plus_dm, minus_dm


def adx(candles: Sequence[Candle], period: int = 14) -> List[float]:
    plus_dm, minus_dm = directional_movement(candles)
    atr_vals = atr(candles, period)

    dx: List[float] = []
    for i in range(len(candles)):
        denom = atr_vals[i] or 1.0
        plus_di = 100.0 * plus_dm[i] / denom
        minus_di = 100.0 * minus_dm[i] / denom
        di_sum = plus_di + minus_di
        dx.append(100.0 * abs(plus_di - minus_di) / (di_sum or 1.0))

    return wilder_smooth(dx, period)
