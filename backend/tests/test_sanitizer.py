import pytest

from signal_advisor.schemas.analysis import BollingerBands, IndicatorSet, MACDValue, RawAnalysis
from signal_advisor.services.response_parser import parse_json_response
from signal_advisor.services.sanitizer import sanitize_analysis, to_float


@pytest.fixture
def indicators():
    return IndicatorSet(
        sma20=101.0,
        sma50=98.5,
        sma200=None,
        rsi14=55.0,
        bollinger=BollingerBands(upper=105.0, middle=101.0, lower=97.0),
        macd=MACDValue(macd=1.2, signal=1.02, histogram=0.18),
    )


def _sanitize(payload, indicators=None, price=100.0):
    return sanitize_analysis(RawAnalysis.model_validate(payload), "AAPL", price, indicators)


def test_empty_object_gets_conservative_defaults():
    result = _sanitize({})

    assert result.symbol == "AAPL"
    assert result.signal_level == "weak"
    assert result.action == "watch"
    assert result.risk_estimation == "moderate"
    assert result.technical_summary.trend == "neutral"
    assert result.suggested_buy_price is None
    assert result.suggested_sell_price is None
    assert result.stop_loss_price is None
    assert result.confidence == 0.5
    assert result.time_horizon == "N/A"
    assert result.reasoning == (
        "Analysis for AAPL at $100.00. Signal: weak. No detailed reasoning was returned by the AI model."
    )
    assert result.technical_summary.support_levels == []
    assert result.technical_summary.resistance_levels == []


def test_out_of_range_enums_fall_back():
    result = _sanitize({
        "signal_level": "extreme",
        "action": "BUY",
        "risk_estimation": 3,
        "technical_summary": {"trend": "up"},
    })
    assert (result.signal_level, result.action, result.risk_estimation) == ("weak", "watch", "moderate")
    assert result.technical_summary.trend == "neutral"


@pytest.mark.parametrize("raw,expected", [
    (1.7, 1.0),
    (-0.2, 0.0),
    ("0.8", 0.8),
    ("high", 0.5),
    (True, 0.5),
    (None, 0.5),
])
def test_confidence_clamped(raw, expected):
    assert _sanitize({"confidence": raw}).confidence == expected


def test_price_targets_pass_through():
    result = _sanitize({
        "suggested_buy_price": 98.25,
        "suggested_sell_price": "112.5",
        "stop_loss_price": "n/a",
    })
    assert result.suggested_buy_price == 98.25
    assert result.suggested_sell_price == 112.5
    assert result.stop_loss_price is None


def test_levels_must_be_arrays_of_numbers():
    result = _sanitize({"technical_summary": {
        "support_levels": "around 95",
        "resistance_levels": [110, "115.5", "far away", None],
        "key_indicators": "RSI neutral",
    }})
    assert result.technical_summary.support_levels == []
    assert result.technical_summary.resistance_levels == [110.0, 115.5]
    assert result.technical_summary.key_indicators == "RSI neutral"


def test_blank_reasoning_is_synthesized_and_text_trimmed():
    result = _sanitize({"reasoning": "   ", "signal_level": "strong", "time_horizon": "  3 days–4 weeks "}, price=123.456)
    assert result.reasoning.startswith("Analysis for AAPL at $123.46. Signal: strong.")
    assert result.time_horizon == "3 days–4 weeks"


def test_indicator_echoes_are_overwritten(indicators):
    result = _sanitize({"technical_summary": {"sma_20": 999.0, "rsi": 12.0, "macd": -5.0, "bb_upper": 1.0}}, indicators)
    summary = result.technical_summary
    assert summary.sma_20 == 101.0
    assert summary.sma_50 == 98.5
    assert summary.sma_200 is None
    assert summary.rsi == 55.0
    assert summary.macd == 1.2
    assert (summary.bb_upper, summary.bb_middle, summary.bb_lower) == (105.0, 101.0, 97.0)


def test_missing_indicators_are_written_as_none():
    result = _sanitize({"technical_summary": {"sma_20": 999.0}})
    assert result.technical_summary.sma_20 is None
    assert result.technical_summary.bb_upper is None


def test_sanitizer_is_idempotent(indicators):
    first = _sanitize({
        "signal_level": "medium",
        "action": "buy",
        "suggested_buy_price": 99.5,
        "risk_estimation": "low",
        "reasoning": "RSI is neutral while price holds SMA 20.",
        "technical_summary": {"trend": "bullish", "support_levels": [97, 95], "resistance_levels": [105]},
        "confidence": 0.72,
        "time_horizon": "3 days–4 weeks",
    }, indicators)

    second = _sanitize(first.model_dump(), indicators)
    assert second == first


def test_to_float():
    assert to_float("1e3") == 1000.0
    assert to_float(float("nan")) is None
    assert to_float(float("inf")) is None
    assert to_float(False) is None
    assert to_float("") is None
    assert to_float([1]) is None


def test_oversized_integers_are_treated_as_absent():
    """超出 float 范围的整数 (Integers too large for a float)"""
    huge = "1" + "0" * 400
    raw = RawAnalysis.model_validate(parse_json_response(
        '{"confidence": ' + huge + ', "stop_loss_price": ' + huge + ', "technical_summary": {"support_levels": [' + huge + ', 95]}}'
    ))
    result = sanitize_analysis(raw, "AAPL", 100.0)

    assert result.confidence == 0.5
    assert result.stop_loss_price is None
    assert result.technical_summary.support_levels == [95.0]
    assert to_float(int(huge)) is None
