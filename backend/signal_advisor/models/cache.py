from sqlalchemy import Column, String, DateTime, JSON, UniqueConstraint
from datetime import datetime
import uuid
from signal_advisor.core.database import Base

# 行情数据缓存表：按 (代码, 数据类型) 存储最近一次抓取的原始载荷
# data_type: "quote" 为实时报价, "daily" 为日 K 线序列
class StockDataCache(Base):
    __tablename__ = "stock_data_cache"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    symbol = Column(String, nullable=False, index=True)   # 股票代码，如 AAPL
    data_type = Column(String, nullable=False)            # quote / daily
    data = Column(JSON, nullable=False)                   # 序列化后的报价或 K 线列表
    fetched_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)  # 抓取时间 (UTC)

    # 同一代码的同一数据类型只保留一条，写入走 upsert
    __table_args__ = (
        UniqueConstraint("symbol", "data_type", name="unique_symbol_data_type"),
    )

    def __repr__(self):
        return f"<StockDataCache(symbol='{self.symbol}', data_type='{self.data_type}', fetched_at='{self.fetched_at}')>"
