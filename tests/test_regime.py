import pytest

from confluence_signal_bot.config import RegimeConfig
from confluence_signal_bot.regime import DEFAULT, RANGING, TRANSITION, TRENDING, classify_regime

from _series import _c, volatile_tail


def test_short_history_falls_back_to_default():
    candles = [_c(i, 100, 101, 99, 100) for i in range(30)]
    d = classify_regime(candles)
    assert d.regime == DEFAULT
    assert d.timeframes == ["15m", "1h"]
    assert d.is_volatile is False
    assert d.adx is None


def test_flat_market_is_ranging():
    candles = [_c(i, 100, 101, 99, 100) for i in range(120)]
    d = classify_regime(candles)
    assert d.regime == RANGING
    assert d.timeframes == ["5m", "15m"]
    assert d.adx == pytest.approx(0.0)
    assert d.is_volatile is False


def test_steady_trend_is_trending():
    candles = [_c(i, 100 + i, 100 + i + 0.5, 100 + i - 0.5, 100 + i) for i in range(120)]
    d = classify_regime(candles)
    assert d.regime == TRENDING
    assert d.timeframes == ["1h", "4h"]
    assert d.is_volatile is False


def test_mid_adx_is_transition():
    # one higher high every 5 bars keeps ADX oscillating just above 20
    candles = [_c(i, 100, 102 if i % 5 == 4 else 101, 99, 100) for i in range(250)]
    d = classify_regime(candles)
    assert 20 <= d.adx <= 25
    assert d.regime == TRANSITION
    assert d.timeframes == ["15m", "1h"]


def test_atr_spike_flags_volatility():
    d = classify_regime(volatile_tail(100))
    assert d.is_volatile is True
    assert d.atr == pytest.approx(9.0)
    assert d.atr_mean == pytest.approx(2.35)


def test_thresholds_and_labels_come_from_config():
    cfg = RegimeConfig(adx_ranging_below=0.0, adx_trending_above=100.0, transition_timeframes=["30m"])
    candles = [_c(i, 100, 101, 99, 100) for i in range(120)]
    d = classify_regime(candles, cfg)
    assert d.regime == TRANSITION
    assert d.timeframes == ["30m"]
