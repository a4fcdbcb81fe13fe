from fastapi import APIRouter
from signal_advisor.api.v1.endpoints import analysis

# 创建 v1 版本的总路由对象
api_router = APIRouter()

# AI 分析模块：技术指标 + 用户画像驱动的信号分析
api_router.include_router(analysis.router, prefix="/analysis", tags=["analysis"])
