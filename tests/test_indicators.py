import pytest

from confluence_signal_bot.indicators import (
    RSI_NEUTRAL,
    adx,
    atr,
    bollinger_bands,
    ema,
    rsi,
    sma,
    true_ranges,
    wilder_smooth,
)

from _series import _c, from_closes, long_setup


def test_sma_warmup_sentinel_and_values():
    out = sma([1, 2, 3, 4, 5], 3)
    assert out[:2] == [0.0, 0.0]
    assert out[2:] == pytest.approx([2.0, 3.0, 4.0])


def test_sma_does_not_look_ahead():
    base = [float(i) for i in range(30)]
    changed = base[:20] + [1000.0] * 10
    assert sma(base, 5)[:20] == sma(changed, 5)[:20]


def test_sma_short_input_is_all_sentinel():
    assert sma([1.0, 2.0], 5) == [0.0, 0.0]


def test_ema_seeded_with_first_value():
    vals = [10.0, 11.0, 12.0, 13.0]
    out = ema(vals, 3)
    assert len(out) == len(vals)
    assert out[0] == 10.0
    # k = 0.5
    assert out[1] == pytest.approx(10.5)
    assert out[2] == pytest.approx(11.25)


def test_ema_empty():
    assert ema([], 9) == []


def test_rsi_short_series_is_neutral():
    assert rsi([1.0, 2.0, 3.0], 14) == [RSI_NEUTRAL] * 3


def test_rsi_constant_series_reads_100():
    out = rsi([50.0] * 30, 14)
    assert out[:15] == [RSI_NEUTRAL] * 15
    assert out[15:] == [100.0] * 15


def test_rsi_bounds_and_direction():
    closes = [100 + ((i * 7) % 11) - 5 for i in range(120)]
    out = rsi(closes, 14)
    assert all(0.0 <= v <= 100.0 for v in out)

    falling = rsi([200.0 - i for i in range(40)], 14)
    assert falling[-1] == pytest.approx(0.0)


def test_rsi_oversold_after_selloff():
    closes = [c.close for c in long_setup()]
    assert rsi(closes, 14)[-1] < 30


def test_bollinger_bands_flat_and_ordered():
    closes = [100.0] * 19 + [100.0, 104.0, 96.0, 101.0]
    bands = bollinger_bands(closes, 20, 2.0)
    assert bands.upper[18] == 0.0 and bands.lower[18] == 0.0
    assert bands.upper[19] == bands.lower[19] == 100.0
    for i in range(19, len(closes)):
        assert bands.lower[i] <= bands.middle[i] <= bands.upper[i]


def test_bollinger_uses_population_std():
    closes = [1.0, 3.0] * 10
    bands = bollinger_bands(closes, 20, 2.0)
    # mean 2, population std 1
    assert bands.middle[-1] == pytest.approx(2.0)
    assert bands.upper[-1] == pytest.approx(4.0)
    assert bands.lower[-1] == pytest.approx(0.0)


def test_true_range_first_bar_is_high_minus_low():
    candles = [_c(0, 10, 12, 9, 11), _c(1, 11, 11.5, 10.5, 11), _c(2, 11, 15, 14, 14.5)]
    trs = true_ranges(candles)
    assert trs[0] == 3.0
    assert trs[1] == pytest.approx(1.0)
    assert trs[2] == pytest.approx(4.0)  # gap up from 11


def test_wilder_smooth_seed_and_step():
    out = wilder_smooth([2.0, 4.0, 6.0, 8.0], 3)
    assert out[:2] == [0.0, 0.0]
    assert out[2] == pytest.approx(4.0)
    assert out[3] == pytest.approx((4.0 * 2 + 8.0) / 3)


def test_atr_non_negative_and_constant_range():
    candles = [_c(i, 100, 101, 99, 100) for i in range(40)]
    out = atr(candles, 14)
    assert all(v >= 0 for v in out)
    assert out[-1] == pytest.approx(2.0)


def test_adx_stays_in_range():
    closes = [100 + ((i * 13) % 17) - 8 + 0.3 * i for i in range(150)]
    out = adx(from_closes(closes), 14)
    assert len(out) == 150
    assert all(0.0 <= v <= 100.0 for v in out)


def test_adx_strong_trend_near_100():
    candles = [_c(i, 100 + i, 100 + i + 0.5, 100 + i - 0.5, 100 + i) for i in range(80)]
    assert adx(candles, 14)[-1] > 95
