import asyncio

import aiohttp

from confluence_signal_bot.notifier.telegram import TelegramNotifier


class _Resp:
    def __init__(self, status):
        self.status = status

    async def text(self):
        return "error"

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class _Session:
    posts = []
    statuses = []

    def __init__(self, *args, **kwargs):
        pass

    def post(self, url, json=None):
        _Session.posts.append((url, json))
        return _Resp(_Session.statuses.pop(0))

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _patch(monkeypatch, statuses):
    _Session.posts = []
    _Session.statuses = list(statuses)
    monkeypatch.setattr(aiohttp, "ClientSession", _Session)


def test_enabled_requires_token_and_chats():
    assert not TelegramNotifier("", ["1"]).enabled()
    assert not TelegramNotifier("tok", [" ", ""]).enabled()
    assert TelegramNotifier("tok", [123]).enabled()


def test_send_without_config_returns_false():
    assert asyncio.run(TelegramNotifier("", []).send("hi")) is False


def test_send_posts_to_every_chat(monkeypatch):
    _patch(monkeypatch, [200, 200])
    tg = TelegramNotifier("tok", ["1", "2"], parse_mode="HTML")
    assert asyncio.run(tg.send("<b>hi</b>")) is True
    assert [p[1]["chat_id"] for p in _Session.posts] == ["1", "2"]
    url, payload = _Session.posts[0]
    assert url == "https://api.telegram.org/bottok/sendMessage"
    assert payload["parse_mode"] == "HTML"
    assert payload["disable_web_page_preview"] is True


def test_send_reports_partial_failure(monkeypatch):
    _patch(monkeypatch, [200, 400])
    tg = TelegramNotifier("tok", ["1", "2"])
    assert asyncio.run(tg.send("hi")) is False
    assert len(_Session.posts) == 2
