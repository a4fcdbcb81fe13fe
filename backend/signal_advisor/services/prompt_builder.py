# Prompt 构建器 (Prompt Builder)
# 职责：把报价、技术指标、用户画像与持仓拼装成确定性的分析请求文本，
# 并要求模型只输出严格 JSON (无 Markdown 代码块、无额外说明)
from typing import Optional

from signal_advisor.schemas.analysis import AnalysisRequest, IndicatorSet, OpenPosition

# 最近 N 根 K 线写入 Prompt
RECENT_BARS = 30

# --- 风险偏好规则 (领域策略常量，逐字保留) ---
RISK_RULES = {
    "conservative": """- Only recommend "buy" when RSI < 35 AND price is near/below the lower Bollinger Band AND SMA trend is stable.
- Set stop_loss_price tightly (1–2% below buy price).
- Prefer "watch" or "hold" over "buy" when signals are ambiguous.
- Set risk_estimation to "low" or "moderate" only; avoid "very_strong" signal levels.
- Confidence threshold: only output confidence > 0.7 if multiple indicators align clearly.""",
    "moderate": """- Balance risk and reward; recommend "buy" when RSI is between 40–60 and trend is confirmed by SMA.
- Set stop_loss_price at 3–4% below buy price.
- Use "strong" signal only when at least 2 indicators confirm the direction.
- Confidence range: 0.5–0.8 based on signal clarity.""",
    "aggressive": """- Accept higher volatility; recommend "buy" on strong momentum even if RSI is elevated.
- Stop losses can be wider (4–8% below entry) to avoid premature exits on volatile stocks.
- Actively suggest entries on breakouts above resistance with volume confirmation.
- Can return "very_strong" signal levels when 2+ indicators align.
- Higher confidence acceptable (0.6+) even with partial confirmation.""",
}

# --- 交易风格规则 ---
STYLE_RULES = {
    "day_trading": """- Focus on intraday momentum: MACD crossovers, RSI extremes (>70 or <30), and Bollinger Band squeezes.
- time_horizon must be "intraday" or "1–2 days".
- suggested_buy_price and suggested_sell_price should be precise (within 0.5% of current price).
- Ignore SMA 200 (irrelevant for intraday); weight MACD and volume heavily.
- Flag very high volume spikes as entry signals.""",
    "swing": """- Focus on multi-day patterns: Bollinger Band bounces, RSI reversals from extremes, MACD crossovers.
- time_horizon must be "3 days–4 weeks".
- Weight SMA 20 and SMA 50 crossovers as key signals.
- suggested_sell_price should target 5–15% gains from entry.
- stop_loss_price should be 3–6% below entry.""",
    "long_term": """- Focus on macro trend: price vs SMA 200 position is the primary signal.
- time_horizon must be "1–6 months" or longer.
- Minor RSI fluctuations and short-term Bollinger Band touches are noise — ignore them.
- Only recommend "buy" if price is above SMA 200 (or within 5% below it in a clear uptrend).
- suggested_sell_price should target 15–30% gains; stop_loss_price should be 8–12% below entry.""",
}


def risk_instructions(risk_level: str) -> str:
    return RISK_RULES.get(risk_level, RISK_RULES["moderate"])


def style_instructions(investment_style: str) -> str:
    return STYLE_RULES.get(investment_style, STYLE_RULES["swing"])


def _money(value: Optional[float]) -> str:
    return f"${value:.2f}" if value is not None else "N/A"


def _count(value: float) -> str:
    """整数位千分位格式 (1,234,567)"""
    return f"{int(round(value or 0)):,}"


def _qty(value: Optional[float]) -> str:
    if value is None:
        return "0"
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def format_position(position: OpenPosition) -> str:
    """
    渲染单条持仓
    - 股票: "- BUY 10 shares @ $150.00 (active)"
    - 期权: "- BUY 2 CALL contracts · Strike $200.00 · Expires 2025-06-20 · Premium $3.50/sh (active)"
    """
    action = position.direction.upper()
    if position.is_option:
        kind = "CALL" if position.instrument_type == "call_option" else "PUT"
        contracts = position.contracts or 0
        plural = "s" if contracts > 1 else ""
        expires = position.expiration_date.isoformat() if position.expiration_date else "N/A"
        return (
            f"- {action} {contracts} {kind} contract{plural} · Strike ${position.strike_price or 0:.2f}"
            f" · Expires {expires} · Premium ${position.price:.2f}/sh ({position.status})"
        )
    return f"- {action} {_qty(position.quantity)} shares @ ${position.price:.2f} ({position.status})"


def format_indicators(ind: IndicatorSet) -> str:
    bb = ind.bollinger
    macd = ind.macd
    return "\n".join([
        f"- SMA 20: {_money(ind.sma20)}",
        f"- SMA 50: {_money(ind.sma50)}",
        f"- SMA 200: {_money(ind.sma200)}",
        f"- RSI (14): {f'{ind.rsi14:.2f}' if ind.rsi14 is not None else 'N/A'}",
        f"- Bollinger Bands: Upper={_money(bb.upper if bb else None)}, "
        f"Mid={_money(bb.middle if bb else None)}, Lower={_money(bb.lower if bb else None)}",
        f"- MACD: {f'{macd.macd:.4f}' if macd else 'N/A'} | Signal: {f'{macd.signal:.4f}' if macd else 'N/A'}"
        f" | Histogram: {f'{macd.histogram:.4f}' if macd else 'N/A'}",
    ])


def build_prompt(request: AnalysisRequest, indicators: IndicatorSet) -> str:
    """
    构建完整分析 Prompt (Build analysis prompt)

    Args:
        request: 不可变的分析请求 (报价 / K 线 / 画像 / 持仓)
        indicators: 由 TechnicalIndicators.calculate_all 计算的指标快照

    Returns:
        str: 相同输入总是得到相同文本
    """
    risk_level = request.profile.risk_level
    investment_style = request.profile.investment_style
    quote = request.quote
    recent = request.history[-RECENT_BARS:]

    recent_lines = "\n".join(
        f"{bar.date.isoformat()}: ${bar.close:.2f} | {_count(bar.volume)}" for bar in recent
    ) or "No history available"
    positions = "\n".join(format_position(p) for p in request.positions) if request.positions else "None"

    return f"""You are an expert financial analyst. Analyze the stock data below and produce a recommendation STRICTLY tailored to this user's profile.

## User Profile (these rules MUST govern your output)
- Risk Level: {risk_level}
- Investment Style: {investment_style}

### Risk rules ({risk_level}):
{risk_instructions(risk_level)}

### Style rules ({investment_style}):
{style_instructions(investment_style)}

---

## Stock: {request.symbol}

## Current Quote
- Price: ${quote.price:.2f}
- Day Change: ${quote.change:.2f} ({quote.change_percent:.2f}%)
- Open: ${quote.open:.2f} | High: ${quote.high:.2f} | Low: ${quote.low:.2f}
- Prev Close: ${quote.previous_close:.2f} | Volume: {_count(quote.volume)}

## Technical Indicators
{format_indicators(indicators)}

## Last {RECENT_BARS} Days (Date, Close, Volume)
{recent_lines}

## Existing Positions
{positions}

## Output
Respond ONLY with a valid JSON object — no markdown, no code fences, no extra text:

{{
  "symbol": "{request.symbol}",
  "signal_level": "weak|medium|strong|very_strong",
  "action": "buy|sell|hold|watch",
  "suggested_buy_price": <number or null>,
  "suggested_sell_price": <number or null>,
  "stop_loss_price": <number or null>,
  "risk_estimation": "low|moderate|high|very_high",
  "reasoning": "<2-3 sentences referencing both the technicals AND this user's {risk_level} risk / {investment_style} style>",
  "technical_summary": {{
    "trend": "bullish|bearish|neutral|sideways",
    "support_levels": [<number>, <number>],
    "resistance_levels": [<number>, <number>],
    "key_indicators": "<brief summary of which indicators drove this recommendation>"
  }},
  "confidence": <0.0 to 1.0>,
  "time_horizon": "<must match the {investment_style} style rules above>"
}}"""
