from __future__ import annotations

from dataclasses import dataclass
import hashlib
import logging
import time
from typing import Dict, List, Optional, Sequence, Tuple

from .config import StrategyConfig
from .indicators import atr, bollinger_bands, ema, rsi, sma
from .models import (
    LONG,
    SHORT,
    INSUFFICIENT_HISTORY,
    LOW_CONFLUENCE,
    NO_VOTES,
    TREND_MISMATCH,
    VOLUME_UNCONFIRMED,
    VOTE_TIE,
    Candle,
    ConfluenceResult,
    Rejection,
    Signal,
)

log = logging.getLogger("strategy")

# vote name -> label used when the vote is bullish / bearish
VOTE_LABELS: Dict[str, Tuple[str, str]] = {
    "ema_cross": ("EMA Cross Up", "EMA Cross Down"),
    "rsi": ("RSI Oversold", "RSI Overbought"),
    "bollinger": ("BB Lower Re-entry", "BB Upper Re-entry"),
}


@dataclass(frozen=True)
class VoteOutcome:
    side: Optional[str]
    contributors: List[str]
    rejections: List[Rejection]


def ema_cross_vote(fast: Sequence[float], slow: Sequence[float], prev: int, last: int) -> int:
    if fast[prev] <= slow[prev] and fast[last] > slow[last]:
        return 1
    if fast[prev] >= slow[prev] and fast[last] < slow[last]:
        return -1
    return 0


def rsi_vote(rsi_last: float, oversold: float, overbought: float) -> int:
    if rsi_last < oversold:
        return 1
    if rsi_last > overbought:
        return -1
    return 0


def bollinger_vote(closes: Sequence[float], upper: Sequence[float], lower: Sequence[float], prev: int, last: int) -> int:
    # price coming back inside the band after closing outside it
    if closes[prev] < lower[prev] and closes[last] >= lower[last]:
        return 1
    if closes[prev] > upper[prev] and closes[last] <= upper[last]:
        return -1
    return 0


def resolve_votes(votes: Dict[str, int], min_votes: int = 2) -> VoteOutcome:
    """Turn per-indicator votes into at most one direction.

    A direction needs ``min_votes`` agreeing votes. A lone vote is rejected as low
    confluence, and two confluent directions at once are a tie with no signal.
    """
    longs = [name for name, v in votes.items() if v > 0]
    shorts = [name for name, v in votes.items() if v < 0]

    if not longs and not shorts:
        return VoteOutcome(None, [], [Rejection(NO_VOTES, "No directional indicator votes")])

    long_ok = len(longs) >= min_votes
    short_ok = len(shorts) >= min_votes
    if long_ok and short_ok:
        reason = f"Vote tie: LONG ({', '.join(longs)}) vs SHORT ({', '.join(shorts)}); no signal"
        return VoteOutcome(None, [], [Rejection(VOTE_TIE, reason)])

    rejections: List[Rejection] = []
    for side, names, ok in ((LONG, longs, long_ok), (SHORT, shorts, short_ok)):
        if names and not ok:
            rejections.append(Rejection(
                LOW_CONFLUENCE,
                f"Low confluence: {side} has {len(names)}/{min_votes} votes ({', '.join(names)})",
            ))

    if long_ok:
        return VoteOutcome(LONG, longs, rejections)
    if short_ok:
        return VoteOutcome(SHORT, shorts, rejections)
    return VoteOutcome(None, [], rejections)


class ConfluenceEngine:
    """Multi-indicator confluence check over one (symbol, timeframe) candle series."""

    def __init__(self, cfg: Optional[StrategyConfig] = None):
        self.cfg = cfg or StrategyConfig()

    def evaluate(
        self,
        symbol: str,
        timeframe: str,
        candles: Sequence[Candle],
        *,
        now_ms: Optional[int] = None,
    ) -> ConfluenceResult:
        cfg = self.cfg
        result = ConfluenceResult()
        tag = f"{symbol} {timeframe}"

        if len(candles) < int(cfg.min_bars):
            result.rejections.append(Rejection(
                INSUFFICIENT_HISTORY,
                f"{tag}: insufficient history ({len(candles)} < {cfg.min_bars} bars)",
            ))
            return self._finish(symbol, timeframe, result)

        closes = [c.close for c in candles]
        volumes = [c.volume for c in candles]
        last = len(candles) - 1
        prev = last - 1

        trend = sma(closes, cfg.trend_sma_len)
        fast = ema(closes, cfg.ema_fast)
        slow = ema(closes, cfg.ema_slow)
        rsi_vals = rsi(closes, cfg.rsi_len)
        bands = bollinger_bands(closes, cfg.bb_len, cfg.bb_std_mult)
        vol_avg = sma(volumes, cfg.volume_sma_len)

        votes = {
            "ema_cross": ema_cross_vote(fast, slow, prev, last),
            "rsi": rsi_vote(rsi_vals[last], cfg.rsi_oversold, cfg.rsi_overbought),
            "bollinger": bollinger_vote(closes, bands.upper, bands.lower, prev, last),
        }
        outcome = resolve_votes(votes, int(cfg.min_votes))
        for rej in outcome.rejections:
            result.rejections.append(Rejection(rej.code, f"{tag}: {rej.reason}"))
        if outcome.side is None:
            return self._finish(symbol, timeframe, result)

        side = outcome.side
        price = closes[last]
        if (side == LONG and not price > trend[last]) or (side == SHORT and not price < trend[last]):
            rel = "above" if side == LONG else "below"
            result.rejections.append(Rejection(
                TREND_MISMATCH,
                f"{tag}: {side} rejected, price {price:g} not {rel} SMA{cfg.trend_sma_len} {trend[last]:g}",
            ))
            return self._finish(symbol, timeframe, result)

        if not volumes[last] > vol_avg[last]:
            result.rejections.append(Rejection(
                VOLUME_UNCONFIRMED,
                f"{tag}: {side} rejected, volume {volumes[last]:g} <= {cfg.volume_sma_len}-bar average {vol_avg[last]:g}",
            ))
            return self._finish(symbol, timeframe, result)

        atr_last = atr(candles, cfg.atr_len)[last]
        stop_dist = float(cfg.atr_stop_mult) * atr_last
        target_dist = float(cfg.reward_multiple) * stop_dist
        if side == LONG:
            stop, target = price - stop_dist, price + target_dist
        else:
            stop, target = price + stop_dist, price - target_dist

        label_idx = 0 if side == LONG else 1
        labels = [VOTE_LABELS[name][label_idx] for name in outcome.contributors]
        created = int(time.time() * 1000) if now_ms is None else int(now_ms)

        result.signals.append(Signal(
            symbol=symbol,
            timeframe=timeframe,
            strategy="Confluence: " + " + ".join(labels),
            side=side,
            entry_price=price,
            stop_loss=stop,
            take_profit=target,
            created_ms=created,
            signal_id=self._signal_id(symbol, timeframe, side, candles[last].close_time_ms),
            extra={
                "votes": dict(votes),
                "ema_fast": fast[last],
                "ema_slow": slow[last],
                "rsi": rsi_vals[last],
                "bb_upper": bands.upper[last],
                "bb_lower": bands.lower[last],
                "trend_sma": trend[last],
                "volume": volumes[last],
                "volume_avg": vol_avg[last],
                "atr": atr_last,
                "bar_close_ms": candles[last].close_time_ms,
            },
        ))
        return self._finish(symbol, timeframe, result)

    def _finish(self, symbol: str, timeframe: str, result: ConfluenceResult) -> ConfluenceResult:
        for rej in result.rejections:
            log.info("confluence_rejected symbol=%s tf=%s code=%s reason=%s", symbol, timeframe, rej.code, rej.reason)
        for sig in result.signals:
            log.info(
                "confluence_signal symbol=%s tf=%s side=%s entry=%g sl=%g tp=%g strategy=%s",
                sig.symbol,
                sig.timeframe,
                sig.side,
                sig.entry_price,
                sig.stop_loss,
                sig.take_profit,
                sig.strategy,
            )
        return result

    @staticmethod
    def _signal_id(symbol: str, timeframe: str, side: str, bar_close_ms: int) -> str:
        base = f"{symbol}:{timeframe}:{side}:{bar_close_ms}"
        return hashlib.sha256(base.encode("utf-8")).hexdigest()
