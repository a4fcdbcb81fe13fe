import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException

from signal_advisor.api.deps import get_model_directory, get_pipeline
from signal_advisor.schemas.analysis import (
    AnalysisResult, AnalyzeRequestBody, ModelInfo, ModelListResponse,
)
from signal_advisor.services.ai_providers.gemini import GeminiModelDirectory
from signal_advisor.services.ai_service import SignalPipeline

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/models", response_model=ModelListResponse)
async def list_models(directory: GeminiModelDirectory = Depends(get_model_directory)):
    """
    模型诊断接口：列出当前 Gemini Key 可见的模型及回退顺序
    """
    available = await directory.list_models()
    ranked = directory.rank(available)
    usable = set(ranked)
    return ModelListResponse(
        models=[
            ModelInfo(
                id=d.id,
                display_name=d.display_name,
                supported_methods=d.supported_methods,
                usable=d.id in usable,
            )
            for d in available
        ],
        ranked=ranked,
    )


@router.post("/{symbol}", response_model=AnalysisResult)
async def analyze_symbol(
    symbol: str,
    body: Optional[AnalyzeRequestBody] = None,
    pipeline: SignalPipeline = Depends(get_pipeline),
):
    """
    股票信号分析接口 (核心业务逻辑)
    1. 按缓存策略获取报价与日 K 线
    2. 计算技术指标并构建 Prompt
    3. 调用 AI 供应商，修复解析并净化输出
    管线错误由 main.py 中的异常处理器统一映射为 HTTP 状态码
    """
    symbol = symbol.strip().upper()
    if not symbol:
        raise HTTPException(status_code=400, detail="Symbol is required")

    body = body or AnalyzeRequestBody()
    logger.info(
        f"Analysis requested for {symbol} "
        f"(risk={body.profile.risk_level}, style={body.profile.investment_style}, positions={len(body.positions)})"
    )
    return await pipeline.run(symbol, body.profile, body.positions)
