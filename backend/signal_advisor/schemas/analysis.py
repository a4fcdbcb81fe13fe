from pydantic import BaseModel, ConfigDict, Field
from datetime import date
from typing import Any, Optional, List, Literal

from signal_advisor.schemas.market_data import PriceBar, Quote

RiskLevel = Literal["conservative", "moderate", "aggressive"]
InvestmentStyle = Literal["day_trading", "swing", "long_term"]
SignalLevel = Literal["weak", "medium", "strong", "very_strong"]
SuggestionAction = Literal["buy", "sell", "hold", "watch"]
RiskEstimation = Literal["low", "moderate", "high", "very_high"]
Trend = Literal["bullish", "bearish", "neutral", "sideways"]

# --- 用户上下文 (由外部资料/持仓存储提供的只读快照) ---

class UserProfile(BaseModel):
    risk_level: RiskLevel = "moderate"
    investment_style: InvestmentStyle = "swing"

class OpenPosition(BaseModel):
    symbol: Optional[str] = None
    instrument_type: Literal["stock", "call_option", "put_option"] = "stock"
    direction: Literal["buy", "sell"]
    quantity: float = 0.0          # 股票为股数；期权为折算股数 (合约数 x 100)
    price: float                   # 股票为成交价；期权为每股权利金
    status: Literal["active", "closed", "pending"] = "active"
    strike_price: Optional[float] = None
    expiration_date: Optional[date] = None
    contracts: Optional[int] = None

    @property
    def is_option(self) -> bool:
        return self.instrument_type in ("call_option", "put_option")

# --- 技术指标快照 ---

class BollingerBands(BaseModel):
    upper: float
    middle: float
    lower: float

class MACDValue(BaseModel):
    macd: float
    signal: float
    histogram: float

class IndicatorSet(BaseModel):
    sma20: Optional[float] = None
    sma50: Optional[float] = None
    sma200: Optional[float] = None
    rsi14: Optional[float] = None
    bollinger: Optional[BollingerBands] = None
    macd: Optional[MACDValue] = None

# --- 分析请求 (构建后不可变) ---

class AnalysisRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    symbol: str
    history: tuple[PriceBar, ...]
    quote: Quote
    profile: UserProfile
    positions: tuple[OpenPosition, ...] = ()

# --- 分析结果 ---

class TechnicalSummary(BaseModel):
    trend: Trend = "neutral"
    support_levels: List[float] = Field(default_factory=list)
    resistance_levels: List[float] = Field(default_factory=list)
    key_indicators: str = ""
    # 以下指标由本地计算结果回写，不采信 LLM 的回显
    bb_upper: Optional[float] = None
    bb_middle: Optional[float] = None
    bb_lower: Optional[float] = None
    sma_20: Optional[float] = None
    sma_50: Optional[float] = None
    sma_200: Optional[float] = None
    rsi: Optional[float] = None
    macd: Optional[float] = None

class AnalysisResult(BaseModel):
    """
    净化后的分析结果 (Sanitized Analysis Result)
    持久层依赖此契约：所有字段必定存在，枚举字段必定落在合法取值内。
    """
    symbol: str
    signal_level: SignalLevel
    action: SuggestionAction
    suggested_buy_price: Optional[float] = None
    suggested_sell_price: Optional[float] = None
    stop_loss_price: Optional[float] = None
    risk_estimation: RiskEstimation
    reasoning: str = Field(min_length=1)
    technical_summary: TechnicalSummary
    confidence: float = Field(ge=0.0, le=1.0)
    time_horizon: str = Field(min_length=1)

class RawAnalysis(BaseModel):
    """
    LLM 原始 JSON 的宽松中间结构 (Loosely-typed intermediate)
    字段可能缺失、类型错误或越界，只能交给 sanitizer 处理，不可直接当作结果使用。
    """
    model_config = ConfigDict(extra="allow")

    symbol: Any = None
    signal_level: Any = None
    action: Any = None
    suggested_buy_price: Any = None
    suggested_sell_price: Any = None
    stop_loss_price: Any = None
    risk_estimation: Any = None
    reasoning: Any = None
    technical_summary: Any = None
    confidence: Any = None
    time_horizon: Any = None

# --- API 请求体 ---

class AnalyzeRequestBody(BaseModel):
    profile: UserProfile = Field(default_factory=UserProfile)
    positions: List[OpenPosition] = Field(default_factory=list)

# --- 模型诊断 ---

class ModelInfo(BaseModel):
    id: str
    display_name: str = ""
    supported_methods: List[str] = Field(default_factory=list)
    usable: bool = False

class ModelListResponse(BaseModel):
    provider: str = "gemini"
    models: List[ModelInfo] = Field(default_factory=list)
    ranked: List[str] = Field(default_factory=list)
