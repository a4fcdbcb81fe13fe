from pydantic import BaseModel, Field
from typing import Optional
import datetime as dt
from enum import Enum

class DataKind(str, Enum):
    QUOTE = "quote"
    DAILY = "daily"

class PriceBar(BaseModel):
    date: dt.date
    open: float
    high: float
    low: float
    close: float = Field(ge=0)
    volume: float = Field(default=0.0, ge=0)

class Quote(BaseModel):
    symbol: str
    open: float
    high: float
    low: float
    price: float
    volume: float = 0.0
    previous_close: float
    change: float = 0.0
    change_percent: float = 0.0
    latest_trading_day: Optional[dt.date] = None

    @classmethod
    def from_prices(
        cls,
        symbol: str,
        price: float,
        previous_close: float,
        open: Optional[float] = None,
        high: Optional[float] = None,
        low: Optional[float] = None,
        volume: float = 0.0,
        latest_trading_day: Optional[dt.date] = None,
    ) -> "Quote":
        """由最新价与昨收推导涨跌额 / 涨跌幅 (昨收 <= 0 时涨跌幅记为 0)"""
        change = price - previous_close
        change_percent = (change / previous_close * 100) if previous_close > 0 else 0.0
        return cls(
            symbol=symbol,
            open=open if open is not None else price,
            high=high if high is not None else price,
            low=low if low is not None else price,
            price=price,
            volume=volume or 0.0,
            previous_close=previous_close,
            change=change,
            change_percent=change_percent,
            latest_trading_day=latest_trading_day,
        )
