# 主程序入口 (Main Entry Point)
# 职责：初始化 FastAPI 应用、配置全局日志、添加中间件、挂载路由、映射管线错误
import time
import logging
import traceback
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from signal_advisor import __version__
from signal_advisor.core.config import settings
from signal_advisor.core.database import init_models
from signal_advisor.core.exceptions import (
    AnalysisError, ConfigurationError, MalformedResponse, NoUsableModel,
    RateLimited, SymbolNotFound, UpstreamUnavailable,
)

# 1. 全局日志配置 (Global Logging Configuration)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler("app.log"),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger("api_logger")

# 降低 SQLAlchemy / httpx 日志级别，减少噪音
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # 启动时确保缓存表存在 (幂等)
    await init_models()
    yield


app = FastAPI(
    title=settings.PROJECT_NAME,
    description="AI 信号分析后端 API：技术指标 + 用户画像驱动的 LLM 交易信号",
    version=__version__,
    lifespan=lifespan,
)

# 2. 管线错误映射 (Pipeline Error -> HTTP Status)
# 子类必须排在父类之前：SymbolNotFound 继承自 UpstreamUnavailable
ERROR_STATUS = (
    (ConfigurationError, 500),
    (SymbolNotFound, 404),
    (RateLimited, 429),
    (NoUsableModel, 503),
    (UpstreamUnavailable, 502),
    (MalformedResponse, 502),
)


def status_for(exc: AnalysisError) -> int:
    for exc_type, status_code in ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return 500


@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    status_code = status_for(exc)
    logger.warning(f"{request.method} {request.url.path} failed ({status_code}) {exc.kind}: {exc}")
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.kind}
    )

# 3. 全局异常处理器 (Global Exception Handler)
# 捕获所有未处理的异常，返回结构化错误信息而不是让 worker 崩溃
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        f"Unhandled exception on {request.method} {request.url.path}: "
        f"{type(exc).__name__}: {exc}\n{traceback.format_exc()}"
    )
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {type(exc).__name__}",
            "message": str(exc)[:200]  # 截断避免泄露过多内部信息
        }
    )

# 4. HTTP 请求拦截中间件 (Request Timing Middleware)
# 职责：记录请求耗时、请求路径与访问方法
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    formatted_process_time = f"{process_time:.2f}ms"

    logger.info(
        f"rid={request.scope.get('root_path') or ''}{request.url.path} "
        f"method={request.method} "
        f"status_code={response.status_code} "
        f"time={formatted_process_time}"
    )

    response.headers["X-Process-Time"] = formatted_process_time
    return response

# 5. 跨域资源共享配置 (CORS Configuration)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 6. 路由挂载 (Router Inclusion)
from signal_advisor.api.v1.api import api_router  # noqa: E402

app.include_router(api_router, prefix="/api")


@app.get("/health", tags=["System"])
async def health_check():
    """健康检查接口：确保后端服务在线"""
    return {"status": "ok", "message": "Service is healthy"}
