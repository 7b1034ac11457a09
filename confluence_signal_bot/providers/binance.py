from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import replace
from typing import List, Optional

import aiohttp

from ..models import Candle

log = logging.getLogger("binance")


def _rest_base(market: str) -> str:
    return "https://fapi.binance.com" if market == "futures" else "https://api.binance.com"


def _klines_path(market: str) -> str:
    return "/fapi/v1/klines" if market == "futures" else "/api/v3/klines"


def _row_to_candle(row) -> Candle:
    # [0]=open time, [6]=close time
    return Candle(
        open_time_ms=int(row[0]),
        close_time_ms=int(row[6]),
        open=float(row[1]),
        high=float(row[2]),
        low=float(row[3]),
        close=float(row[4]),
        volume=float(row[5]),
    )


def forward_fill(candles: List[Candle]) -> List[Candle]:
    """Replace a missing (zero/NaN) close with the previous bar's close."""
    out: List[Candle] = []
    for c in candles:
        bad = math.isnan(c.close) or c.close == 0
        if bad and out:
            c = replace(c, close=out[-1].close)
        out.append(c)
    return out


class BinanceProvider:
    def __init__(
        self,
        market: str = "spot",
        *,
        rest_timeout_s: int = 20,
        max_retries: int = 3,
        retry_sleep_s: float = 2.0,
        rate_limit_sleep_s: float = 5.0,
        rest_conn_limit: int = 40,
        rest_conn_limit_per_host: int = 10,
    ):
        self.market = market
        self.rest_timeout_s = rest_timeout_s

        # REST robustness
        self.max_retries = max(1, int(max_retries))
        self.retry_sleep_s = float(retry_sleep_s)
        self.rate_limit_sleep_s = float(rate_limit_sleep_s)
        self.rest_conn_limit = rest_conn_limit
        self.rest_conn_limit_per_host = rest_conn_limit_per_host

        self._session: Optional[aiohttp.ClientSession] = None

    async def close(self) -> None:
        """Close the shared aiohttp session (best-effort)."""
        if self._session is not None and not self._session.closed:
            await self._session.close()

    def _timeout(self) -> aiohttp.ClientTimeout:
        return aiohttp.ClientTimeout(
            total=self.rest_timeout_s,
            connect=min(10, self.rest_timeout_s),
            sock_connect=min(10, self.rest_timeout_s),
            sock_read=max(10, int(self.rest_timeout_s * 0.75)),
        )

    def _connector(self) -> aiohttp.TCPConnector:
        return aiohttp.TCPConnector(
            limit=self.rest_conn_limit,
            limit_per_host=self.rest_conn_limit_per_host,
            ttl_dns_cache=300,
            enable_cleanup_closed=True,
        )

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout(), connector=self._connector())
        return self._session

    async def fetch_klines(self, symbol: str, timeframe: str, limit: int = 300) -> List[Candle]:
        """Latest ``limit`` klines for (symbol, timeframe), forward-filled.

        Never raises on transport problems: after ``max_retries`` attempts the
        failure is logged and an empty list comes back.
        """
        url = _rest_base(self.market) + _klines_path(self.market)
        params = {"symbol": symbol.upper(), "interval": timeframe, "limit": int(limit)}

        sess = await self._get_session()

        data = None
        last_err: Optional[BaseException] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                async with sess.get(url, params=params) as resp:
                    # Rate-limit / ban signals
                    if resp.status in (418, 429):
                        txt = await resp.text()
                        retry_after = resp.headers.get("Retry-After")
                        sleep_s = float(retry_after) if (retry_after and retry_after.isdigit()) else self.rate_limit_sleep_s
                        log.warning(
                            "rest_rate_limited status=%s symbol=%s tf=%s attempt=%d/%d sleep=%.1fs body=%s",
                            resp.status,
                            symbol,
                            timeframe,
                            attempt,
                            self.max_retries,
                            sleep_s,
                            txt[:200],
                        )
                        last_err = RuntimeError(f"rate limited: {resp.status}")
                        await asyncio.sleep(sleep_s)
                        continue

                    if resp.status != 200:
                        txt = await resp.text()
                        raise aiohttp.ClientResponseError(
                            resp.request_info,
                            resp.history,
                            status=resp.status,
                            message=txt[:500],
                        )

                    # Some proxies return a wrong content-type; be tolerant.
                    data = await resp.json(content_type=None)
                break

            except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
                last_err = e
                log.warning(
                    "rest_fetch_failed attempt=%d/%d symbol=%s tf=%s retry_in=%.1fs err=%s",
                    attempt,
                    self.max_retries,
                    symbol,
                    timeframe,
                    self.retry_sleep_s,
                    e,
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_sleep_s)

        if data is None:
            log.error("rest_fetch_gave_up symbol=%s tf=%s attempts=%d err=%s", symbol, timeframe, self.max_retries, last_err)
            return []

        try:
            candles = [_row_to_candle(row) for row in data]
        except (TypeError, ValueError, IndexError) as e:
            log.error("rest_bad_payload symbol=%s tf=%s err=%s", symbol, timeframe, e)
            return []
        return forward_fill(candles)
