from __future__ import annotations

import html
from datetime import datetime, timezone
from typing import Optional

from .models import Signal


def _fmt_ms(ts_ms: int) -> str:
    dt = datetime.fromtimestamp(ts_ms / 1000.0, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M")


def _escape_markdown_v2(text: str) -> str:
    specials = r"\_*[]()~`>#+-=|{}.!"
    escaped = []
    for ch in str(text):
        if ch in specials:
            escaped.append("\\" + ch)
        else:
            escaped.append(ch)
    return "".join(escaped)


def _escape_text(text: str, parse_mode: str) -> str:
    if parse_mode == "MARKDOWNV2":
        return _escape_markdown_v2(text)
    return html.escape(str(text), quote=False)


def _bold(text: str, parse_mode: str) -> str:
    escaped = _escape_text(text, parse_mode)
    if parse_mode == "MARKDOWNV2":
        return f"*{escaped}*"
    return f"<b>{escaped}</b>"


def _fmt_price(val: Optional[float]) -> str:
    if val is None:
        return "-"
    return f"{val:,.8g}"


def base_asset(symbol: str) -> str:
    return symbol.upper().replace("USDT", "")


def _field(label: str, value: str, parse_mode: str) -> str:
    return f"{_bold(label + ':', parse_mode)} {_escape_text(value, parse_mode)}"


def format_signal(signal: Signal, parse_mode: str = "HTML") -> str:
    """Render a confirmed signal as a Telegram message body."""
    mode = (parse_mode or "HTML").upper()

    lines = [
        _bold("Crypto Signal", mode),
        "",
        _field("Strategy", signal.strategy, mode),
        _field("Symbol", signal.symbol, mode),
        _field("Timeframe", signal.timeframe, mode),
        _field("Direction", signal.side, mode),
        _field("Entry", _fmt_price(signal.entry_price), mode),
        _field("Stop Loss", _fmt_price(signal.stop_loss), mode),
        _field("Take Profit", _fmt_price(signal.take_profit), mode),
    ]
    if signal.position_size is not None:
        lines.append(_field("Position Size", f"{signal.position_size:g} {base_asset(signal.symbol)}", mode))
    if signal.suggested_leverage is not None:
        lines.append(_field("Leverage", f"{signal.suggested_leverage}x", mode))

    lines.append("")
    lines.append(_escape_text(f"Time (UTC): {_fmt_ms(signal.created_ms)} | Status: Automated Scan", mode))
    return "\n".join(lines)
