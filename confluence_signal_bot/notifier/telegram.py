from __future__ import annotations

import asyncio
import aiohttp
from typing import List, Optional
import logging

log = logging.getLogger("telegram")


class TelegramNotifier:
    def __init__(
        self,
        token: str,
        chat_ids: List[str],
        *,
        parse_mode: str = "HTML",
        disable_web_page_preview: bool = True,
        timeout_s: int = 15,
    ):
        self.token = (token or "").strip()
        self.chat_ids = [str(x).strip() for x in (chat_ids or []) if str(x).strip()]
        self.parse_mode = parse_mode
        self.disable_web_page_preview = disable_web_page_preview
        self.timeout_s = timeout_s

    def enabled(self) -> bool:
        return bool(self.token) and bool(self.chat_ids)

    async def send(self, text: str, chat_ids: Optional[List[str]] = None) -> bool:
        """Post ``text`` to every chat. True only if every chat accepted it."""
        if not self.enabled():
            log.warning("telegram_not_configured")
            return False
        targets = chat_ids if chat_ids is not None else self.chat_ids
        url = f"https://api.telegram.org/bot{self.token}/sendMessage"
        ok = True
        async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout_s)) as sess:
            for chat_id in targets:
                payload = {
                    "chat_id": chat_id,
                    "text": text,
                    "disable_web_page_preview": self.disable_web_page_preview,
                }
                if self.parse_mode:
                    payload["parse_mode"] = self.parse_mode
                try:
                    async with sess.post(url, json=payload) as resp:
                        if resp.status != 200:
                            body = await resp.text()
                            log.warning("telegram_send_failed chat_id=%s status=%s body=%s", chat_id, resp.status, body[:2000])
                            ok = False
                except (asyncio.TimeoutError, aiohttp.ClientError) as e:
                    log.exception("telegram_send_exception chat_id=%s err=%s", chat_id, e)
                    ok = False
        return ok
