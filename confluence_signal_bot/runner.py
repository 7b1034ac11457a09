from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
import logging
from typing import Dict, List, Optional

from .config import Config
from .formatters import format_signal
from .models import INSUFFICIENT_HISTORY, STATUS_FAILED, STATUS_SENT, VOLATILITY_ANOMALY, RegimeDecision, Signal
from .notifier.telegram import TelegramNotifier
from .pipeline import evaluate_timeframe, select_timeframes
from .providers.binance import BinanceProvider
from .strategy import ConfluenceEngine

log = logging.getLogger("runner")


@dataclass
class ScanReport:
    signals: List[Signal] = field(default_factory=list)
    regimes: Dict[str, RegimeDecision] = field(default_factory=dict)
    rejections: List[str] = field(default_factory=list)  # "code: reason" lines, scan order
    failed_symbols: List[str] = field(default_factory=list)


@dataclass
class _SymbolResult:
    symbol: str
    signals: List[Signal] = field(default_factory=list)
    regime: Optional[RegimeDecision] = None
    rejections: List[str] = field(default_factory=list)


class ScanRunner:
    """One pass over the configured symbols: regime, confluence, risk, notify."""

    def __init__(self, cfg: Config, provider=None, notifier=None, *, dry_run: bool = False):
        self.cfg = cfg
        self.dry_run = dry_run
        self.provider = provider or BinanceProvider(
            market=cfg.provider.market,
            rest_timeout_s=cfg.provider.rest_timeout_s,
            max_retries=cfg.provider.max_retries,
            retry_sleep_s=cfg.provider.retry_sleep_s,
            rate_limit_sleep_s=cfg.provider.rate_limit_sleep_s,
        )
        self.tg = notifier or TelegramNotifier(
            token=cfg.telegram.token,
            chat_ids=cfg.telegram.chat_ids,
            parse_mode=cfg.telegram.parse_mode,
            disable_web_page_preview=cfg.telegram.disable_web_page_preview,
        )
        self.engine = ConfluenceEngine(cfg.strategy)

    def _notify_enabled(self) -> bool:
        return not self.dry_run and bool(self.cfg.telegram.enabled) and self.tg.enabled()

    async def scan_once(self) -> ScanReport:
        symbols = [s.upper() for s in (self.cfg.provider.symbols or [])]
        if not symbols:
            raise ValueError("No symbols configured.")

        log.info(
            "scan_start symbols=%d baseline_tf=%s notify=%s",
            len(symbols),
            self.cfg.provider.baseline_timeframe,
            self._notify_enabled(),
        )
        sem = asyncio.Semaphore(max(1, int(self.cfg.provider.scan_concurrency)))

        async def _one(sym: str):
            try:
                async with sem:
                    return await self._scan_symbol(sym)
            except Exception as e:
                log.exception("scan_symbol_failed symbol=%s err=%s", sym, e)
                return sym

        results = await asyncio.gather(*[_one(sym) for sym in symbols])

        report = ScanReport()
        # gather keeps input order, so the report follows the configured symbol order
        for res in results:
            if isinstance(res, str):
                report.failed_symbols.append(res)
                continue
            report.signals.extend(res.signals)
            report.rejections.extend(res.rejections)
            if res.regime is not None:
                report.regimes[res.symbol] = res.regime

        log.info(
            "scan_done symbols=%d signals=%d rejections=%d failed=%d",
            len(symbols),
            len(report.signals),
            len(report.rejections),
            len(report.failed_symbols),
        )
        return report

    async def _scan_symbol(self, sym: str) -> _SymbolResult:
        pcfg = self.cfg.provider
        out = _SymbolResult(symbol=sym)

        baseline_tf = pcfg.baseline_timeframe
        baseline = await self.provider.fetch_klines(sym, baseline_tf, pcfg.candle_limit)
        min_bars = int(self.cfg.strategy.min_bars)
        if len(baseline) < min_bars:
            out.rejections.append(
                f"{INSUFFICIENT_HISTORY}: {sym} {baseline_tf}: insufficient history ({len(baseline)} < {min_bars} bars)"
            )
            log.warning("symbol_skipped symbol=%s reason=insufficient_history bars=%d", sym, len(baseline))
            return out

        decision = select_timeframes(baseline, self.cfg)
        out.regime = decision
        log.info(
            "regime symbol=%s regime=%s adx=%s atr=%s atr_mean=%s volatile=%s timeframes=%s",
            sym,
            decision.regime,
            _fmt_opt(decision.adx),
            _fmt_opt(decision.atr),
            _fmt_opt(decision.atr_mean),
            decision.is_volatile,
            ",".join(decision.timeframes),
        )
        if decision.is_volatile:
            out.rejections.append(
                f"{VOLATILITY_ANOMALY}: {sym}: ATR spike {_fmt_opt(decision.atr)} > "
                f"{self.cfg.regime.volatility_multiplier:g} x mean {_fmt_opt(decision.atr_mean)}"
            )
            log.warning("symbol_skipped symbol=%s reason=volatility_anomaly", sym)
            return out

        for tf in decision.timeframes:
            if tf == baseline_tf:
                candles = baseline
            else:
                candles = await self.provider.fetch_klines(sym, tf, pcfg.candle_limit)

            tf_report = evaluate_timeframe(sym, tf, candles, self.cfg, engine=self.engine)
            for rej in tf_report.rejections:
                out.rejections.append(f"{rej.code}: {rej.reason}")
            for sig in tf_report.signals:
                out.signals.append(await self._handle_signal(sig))

        return out

    async def _handle_signal(self, sig: Signal) -> Signal:
        log.info(
            "signal symbol=%s tf=%s side=%s entry=%g sl=%g tp=%g size=%s leverage=%s signal_id=%s",
            sig.symbol,
            sig.timeframe,
            sig.side,
            sig.entry_price,
            sig.stop_loss,
            sig.take_profit,
            sig.position_size,
            sig.suggested_leverage,
            sig.signal_id,
        )
        if not self._notify_enabled():
            reason = "dry_run" if self.dry_run else "not_configured"
            log.info("telegram_skipped symbol=%s tf=%s reason=%s", sig.symbol, sig.timeframe, reason)
            return sig

        msg = format_signal(sig, self.cfg.telegram.parse_mode)
        ok = await self.tg.send(msg)
        if not ok:
            log.error("telegram_alert_failed symbol=%s tf=%s signal_id=%s", sig.symbol, sig.timeframe, sig.signal_id)
        return replace(sig, status=STATUS_SENT if ok else STATUS_FAILED)


def _fmt_opt(val: Optional[float]) -> str:
    return "-" if val is None else f"{val:.2f}"
