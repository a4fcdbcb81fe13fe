# 输出净化器 (Output Sanitizer)
# 把“AI 给了不完整的数据”转换为“合法但保守的结果”，而不是让整次请求失败；
# 随后用本地计算的指标覆盖 LLM 回显的指标数值
import math
from typing import Any, Dict, List, Optional

from signal_advisor.schemas.analysis import (
    AnalysisResult, IndicatorSet, RawAnalysis, TechnicalSummary,
)

VALID_SIGNALS = ("weak", "medium", "strong", "very_strong")
VALID_ACTIONS = ("buy", "sell", "hold", "watch")
VALID_RISKS = ("low", "moderate", "high", "very_high")
VALID_TRENDS = ("bullish", "bearish", "neutral", "sideways")

DEFAULT_CONFIDENCE = 0.5
DEFAULT_TIME_HORIZON = "N/A"


def _choice(value: Any, allowed: tuple, default: str) -> str:
    return value if isinstance(value, str) and value in allowed else default


def to_float(val: Any) -> Optional[float]:
    """数值或数值字符串 -> float；其他 (含 bool / NaN / 空串) -> None"""
    if val is None or val == "" or isinstance(val, bool):
        return None
    try:
        num = float(val)
    except (ValueError, TypeError, OverflowError):
        return None
    return num if math.isfinite(num) else None


def _levels(val: Any) -> List[float]:
    """非数组 -> []；数组中无法转为数字的元素被丢弃"""
    if not isinstance(val, list):
        return []
    return [num for num in (to_float(item) for item in val) if num is not None]


def _text(val: Any) -> str:
    return val.strip() if isinstance(val, str) else ""


def apply_indicators(summary: TechnicalSummary, indicators: IndicatorSet) -> TechnicalSummary:
    """以本地计算结果覆盖指标回显 (LLM 的数值一律不采信)"""
    bb = indicators.bollinger
    return summary.model_copy(update={
        "bb_upper": bb.upper if bb else None,
        "bb_middle": bb.middle if bb else None,
        "bb_lower": bb.lower if bb else None,
        "sma_20": indicators.sma20,
        "sma_50": indicators.sma50,
        "sma_200": indicators.sma200,
        "rsi": indicators.rsi14,
        "macd": indicators.macd.macd if indicators.macd else None,
    })


def sanitize_analysis(
    raw: RawAnalysis,
    symbol: str,
    current_price: float,
    indicators: Optional[IndicatorSet] = None,
) -> AnalysisResult:
    """
    保证输出满足 AnalysisResult 契约 (Enforce output schema)

    - 枚举字段越界/缺失时回退: weak / watch / moderate / neutral
    - 价格目标缺失时保持 None，不填默认数字
    - reasoning 为空时根据代码、价格与信号等级合成
    - confidence 截断到 [0, 1]，非数值时为 0.5
    - time_horizon 为空时为 "N/A"
    """
    signal_level = _choice(raw.signal_level, VALID_SIGNALS, "weak")

    reasoning = _text(raw.reasoning) or (
        f"Analysis for {symbol} at ${current_price:.2f}. "
        f"Signal: {signal_level}. "
        f"No detailed reasoning was returned by the AI model."
    )

    confidence = to_float(raw.confidence)
    confidence = DEFAULT_CONFIDENCE if confidence is None else min(1.0, max(0.0, confidence))

    ts: Dict[str, Any] = raw.technical_summary if isinstance(raw.technical_summary, dict) else {}
    key_indicators = ts.get("key_indicators")
    summary = TechnicalSummary(
        trend=_choice(ts.get("trend"), VALID_TRENDS, "neutral"),
        support_levels=_levels(ts.get("support_levels")),
        resistance_levels=_levels(ts.get("resistance_levels")),
        key_indicators=key_indicators if isinstance(key_indicators, str) else "",
    )
    summary = apply_indicators(summary, indicators or IndicatorSet())

    return AnalysisResult(
        symbol=symbol,
        signal_level=signal_level,
        action=_choice(raw.action, VALID_ACTIONS, "watch"),
        suggested_buy_price=to_float(raw.suggested_buy_price),
        suggested_sell_price=to_float(raw.suggested_sell_price),
        stop_loss_price=to_float(raw.stop_loss_price),
        risk_estimation=_choice(raw.risk_estimation, VALID_RISKS, "moderate"),
        reasoning=reasoning,
        technical_summary=summary,
        confidence=confidence,
        time_horizon=_text(raw.time_horizon) or DEFAULT_TIME_HORIZON,
    )
