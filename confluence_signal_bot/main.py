from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from .config import load_config
from .runner import ScanRunner


def _setup_logging(level: str) -> None:
    lvl = getattr(logging, (level or "INFO").upper(), logging.INFO)
    logging.basicConfig(
        level=lvl,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main(argv=None) -> int:
    p = argparse.ArgumentParser(description="Confluence Sentinel - regime-aware multi-indicator signal scan")
    p.add_argument("--config", default=None, help="Path to YAML config (defaults built in)")
    p.add_argument("--symbols", default=None, help="Comma separated symbols, overrides config")
    p.add_argument("--dry-run", action="store_true", help="Scan and size signals without sending Telegram alerts")
    p.add_argument("--log-level", default=None, help="Overrides app.log_level")
    args = p.parse_args(argv)

    log = logging.getLogger("main")
    try:
        cfg = load_config(args.config)
        if args.symbols:
            cfg.provider.symbols = [s.strip().upper() for s in args.symbols.split(",") if s.strip()]
            cfg.validate()
    except (OSError, ValueError, TypeError) as e:
        _setup_logging(args.log_level or "INFO")
        log.exception("config_error err=%s", e)
        return 1

    _setup_logging(args.log_level or cfg.app.log_level)
    log.info("start app=%s symbols=%s dry_run=%s", cfg.app.name, ",".join(cfg.provider.symbols), args.dry_run)

    runner = ScanRunner(cfg, dry_run=args.dry_run)

    async def _run():
        try:
            return await runner.scan_once()
        finally:
            # Close shared REST session cleanly.
            await runner.provider.close()

    try:
        report = asyncio.run(_run())
    except KeyboardInterrupt:
        return 0
    except Exception as e:
        log.exception("fatal err=%s", e)
        return 1

    for sig in report.signals:
        print(
            f"{sig.symbol} {sig.timeframe} {sig.side} entry={sig.entry_price:g} sl={sig.stop_loss:g} "
            f"tp={sig.take_profit:g} size={sig.position_size} lev={sig.suggested_leverage}x "
            f"status={sig.status} | {sig.strategy}"
        )
    if not report.signals:
        print("No signals met the confluence and risk requirements.", file=sys.stderr)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
