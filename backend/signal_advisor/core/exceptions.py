# 分析管线错误分类 (Error Taxonomy)
# API 层根据异常类型映射 HTTP 状态码，服务层只负责抛出，不吞掉异常


class AnalysisError(Exception):
    """所有分析管线错误的基类"""
    kind = "analysis_error"


class ConfigurationError(AnalysisError):
    """API Key 缺失或仍是占位符，属于致命错误，不重试"""
    kind = "configuration_error"


class UpstreamUnavailable(AnalysisError):
    """行情源或 AI 后端网络异常 / 非 2xx / 所有候选模型均失败"""
    kind = "upstream_unavailable"


class SymbolNotFound(UpstreamUnavailable):
    """行情源无法识别该代码"""
    kind = "symbol_not_found"


class RateLimited(AnalysisError):
    """HTTP 429：额度或频率限制，交由调用方决定退避或切换供应商"""
    kind = "rate_limited"


class NoUsableModel(AnalysisError):
    """模型发现成功，但没有任何可用于文本生成的模型"""
    kind = "no_usable_model"

    def __init__(self, message: str, available: list = None):
        super().__init__(message)
        self.available = available or []


class MalformedResponse(AnalysisError):
    """LLM 返回的文本经修复后仍无法解析为 JSON 对象"""
    kind = "malformed_response"

    def __init__(self, message: str, excerpt: str = ""):
        super().__init__(message)
        self.excerpt = excerpt
