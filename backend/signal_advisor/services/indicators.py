# 技术指标量化引擎 (Technical Indicators Quantitative Engine)
# 职责：对升序排列的日 K 线计算 SMA / RSI / 布林带 / 简化 MACD，供 Prompt 与结果回写使用
# 所有函数均为纯函数；调用方需先通过 normalize_history 排序去重
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from signal_advisor.schemas.analysis import BollingerBands, IndicatorSet, MACDValue
from signal_advisor.schemas.market_data import PriceBar

# MACD 信号线阻尼系数：signal = macd * 0.85 (固定近似，并非真正的 9 日 EMA)
MACD_SIGNAL_DAMPING = 0.85


class TechnicalIndicators:
    @staticmethod
    def normalize_history(bars: Iterable[PriceBar]) -> List[PriceBar]:
        """
        清洗 K 线序列 (Normalize price history)
        - 丢弃收盘价 <= 0 的无效 K 线
        - 按日期升序排列，同一日期只保留最后出现的一根
        """
        by_date = {}
        for bar in bars:
            if bar.close <= 0:
                continue
            by_date[bar.date] = bar
        return [by_date[d] for d in sorted(by_date)]

    @staticmethod
    def _closes(history: Sequence[PriceBar]) -> pd.Series:
        return pd.Series([bar.close for bar in history], dtype="float64")

    @staticmethod
    def sma(history: Sequence[PriceBar], period: int) -> Optional[float]:
        """简单移动平均：最近 period 根收盘价的算术平均"""
        if len(history) < period:
            return None
        closes = TechnicalIndicators._closes(history)
        return float(closes.tail(period).mean())

    @staticmethod
    def rsi(history: Sequence[PriceBar], period: int = 14) -> Optional[float]:
        """
        RSI (相对强弱指数)
        算法：取最后 period 个涨跌差值，分别求平均涨幅与平均跌幅
        - 平均跌幅恰为 0 时返回 100
        """
        if len(history) < period + 1:
            return None
        delta = TechnicalIndicators._closes(history).diff().tail(period)
        avg_gain = float(delta.clip(lower=0).sum()) / period
        avg_loss = float((-delta).clip(lower=0).sum()) / period

        if avg_loss == 0:
            return 100.0
        rs = avg_gain / avg_loss
        return 100 - 100 / (1 + rs)

    @staticmethod
    def bollinger(history: Sequence[PriceBar], period: int = 20, k: float = 2) -> Optional[BollingerBands]:
        """布林带：中轨 = SMA(period)，上下轨 = 中轨 ± k * 总体标准差"""
        if len(history) < period:
            return None
        window = TechnicalIndicators._closes(history).tail(period)
        middle = float(window.mean())
        sd = float(np.sqrt(((window - middle) ** 2).sum() / period))
        return BollingerBands(upper=middle + k * sd, middle=middle, lower=middle - k * sd)

    @staticmethod
    def ema(values: pd.Series, period: int) -> Optional[float]:
        """
        递推 EMA：以前 period 个值的简单平均作为种子，乘数 2 / (period + 1)
        等价于对 [种子, 后续值...] 做 adjust=False 的指数平滑
        """
        if len(values) < period:
            return None
        seed = values.iloc[:period].mean()
        seeded = pd.concat([pd.Series([seed]), values.iloc[period:]], ignore_index=True)
        return float(seeded.ewm(alpha=2 / (period + 1), adjust=False).mean().iloc[-1])

    @staticmethod
    def macd(history: Sequence[PriceBar]) -> Optional[MACDValue]:
        """MACD = EMA12 - EMA26；信号线使用固定阻尼近似，柱状图 = MACD - 信号线"""
        if len(history) < 26:
            return None
        closes = TechnicalIndicators._closes(history)
        ema12 = TechnicalIndicators.ema(closes, 12)
        ema26 = TechnicalIndicators.ema(closes, 26)
        if ema12 is None or ema26 is None:
            return None

        macd_line = ema12 - ema26
        signal = macd_line * MACD_SIGNAL_DAMPING
        return MACDValue(macd=macd_line, signal=signal, histogram=macd_line - signal)

    @staticmethod
    def calculate_all(history: Sequence[PriceBar]) -> IndicatorSet:
        """
        计算全量指标快照 (Calculate indicator snapshot)
        - 历史长度不足的指标返回 None，而不是抛错
        """
        return IndicatorSet(
            sma20=TechnicalIndicators.sma(history, 20),
            sma50=TechnicalIndicators.sma(history, 50),
            sma200=TechnicalIndicators.sma(history, 200),
            rsi14=TechnicalIndicators.rsi(history, 14),
            bollinger=TechnicalIndicators.bollinger(history, 20, 2),
            macd=TechnicalIndicators.macd(history),
        )
