import enum
import logging
import re
from typing import Callable, Dict, List, Optional

import httpx
from google import genai
from google.genai import errors, types

from signal_advisor.core.config import is_configured_key
from signal_advisor.core.exceptions import (
    ConfigurationError, NoUsableModel, RateLimited, UpstreamUnavailable,
)
from signal_advisor.services.ai_providers.base import AIInvoker, ModelDescriptor

logger = logging.getLogger(__name__)

# API 版本按顺序尝试：先 v1beta (模型最全)，再 v1
API_REVISIONS = ("v1beta", "v1")
GENERATE_METHOD = "generateContent"

# 非文本模态 (语音 / 图像 / 视频 / 向量 等) 不参与排序
EXCLUDE_PATTERNS = ("tts", "imagen", "veo", "embedding", "aqa", "bisheng")
_VERSION_PATTERN = re.compile(r"gemini-(\d+(?:\.\d+)?)")

ClientFactory = Callable[[str], "genai.Client"]


def _model_id(name: str) -> str:
    return name[len("models/"):] if name.startswith("models/") else name


def score_model(model_id: str) -> float:
    """
    模型打分 (分数越高越先尝试)
      1. "latest" 别名: +10000 (自动跟随最新版本)
      2. 版本号 x 1000: 2.5 -> 2500, 3 -> 3000
      3. flash (快且便宜，足以胜任本分析): +100
      4. 稳定版 +50 > preview +20 > experimental +0
    """
    m = model_id.lower()
    score = 0.0
    if "latest" in m:
        score += 10000

    match = _VERSION_PATTERN.search(m)
    score += (float(match.group(1)) if match else 0.0) * 1000

    if "flash" in m:
        score += 100

    if "preview" not in m and "exp" not in m:
        score += 50
    elif "preview" in m:
        score += 20
    return score


def rank_models(descriptors: List[ModelDescriptor]) -> List[str]:
    """过滤非文本模型后按分数降序排列；同分保持发现顺序 (稳定排序)"""
    text_models = [
        d.id for d in descriptors
        if GENERATE_METHOD in (d.supported_methods or [])
        and not any(p in d.id.lower() for p in EXCLUDE_PATTERNS)
    ]
    return sorted(text_models, key=score_model, reverse=True)


def default_client_factory(api_key: str, timeout: float = 120.0) -> ClientFactory:
    def factory(api_version: str) -> "genai.Client":
        return genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(api_version=api_version, timeout=int(timeout * 1000)),
        )
    return factory


class _ClientPool:
    """按 API 版本缓存 SDK 客户端，单次分析内复用"""

    def __init__(self, factory: ClientFactory):
        self._factory = factory
        self._clients: Dict[str, "genai.Client"] = {}

    def get(self, api_version: str):
        if api_version not in self._clients:
            self._clients[api_version] = self._factory(api_version)
        return self._clients[api_version]


# Gemini 模型目录 (Model Directory)
# 职责：用当前 API Key 发现可用模型并排序
class GeminiModelDirectory:
    def __init__(self, clients: _ClientPool):
        self._clients = clients

    async def list_models(self) -> List[ModelDescriptor]:
        """
        依次查询 v1beta / v1，第一个成功的版本即为结果
        - 400 / 403：Key 格式错误或被拒绝，立即抛 ConfigurationError，不再尝试其他版本
        """
        failures = []
        for version in API_REVISIONS:
            try:
                pager = await self._clients.get(version).aio.models.list()
                models = [m async for m in pager]
            except errors.APIError as e:
                if e.code in (400, 403):
                    raise ConfigurationError(
                        f"Gemini API key rejected (HTTP {e.code}). "
                        "Make sure: 1) the key is correct, 2) \"Generative Language API\" is enabled "
                        f"at https://console.cloud.google.com/apis/library. Details: {e}"
                    ) from e
                logger.warning(f"Gemini list models failed on {version}: HTTP {e.code}")
                failures.append(f"{version}: HTTP {e.code}")
                continue
            except (httpx.HTTPError, ValueError) as e:
                # ValueError 包括 SDK 无法解码响应时的 UnknownApiResponseError
                logger.warning(f"Gemini list models failed on {version}: {type(e).__name__}: {e}")
                failures.append(f"{version}: {type(e).__name__}")
                continue

            return [
                ModelDescriptor(
                    id=_model_id(m.name or ""),
                    display_name=m.display_name or "",
                    supported_methods=list(m.supported_actions or []),
                )
                for m in models
            ]

        raise UpstreamUnavailable(
            "Could not reach Gemini API to list models. Check your network connection. "
            f"Attempts: {'; '.join(failures)}"
        )

    @staticmethod
    def rank(descriptors: List[ModelDescriptor]) -> List[str]:
        return rank_models(descriptors)

    async def ranked_candidates(self) -> List[str]:
        available = await self.list_models()
        candidates = self.rank(available)
        if not candidates:
            all_names = ", ".join(d.id for d in available) or "none"
            raise NoUsableModel(
                "No Gemini model supports text generateContent for your API key. "
                f"Available models: [{all_names}]. "
                "Make sure billing is enabled and the Generative Language API is active, "
                "or switch the provider to groq.",
                available=[d.id for d in available],
            )
        return candidates


class _FallbackState(enum.Enum):
    TRY_MODEL = "try_model"
    TRY_REVISION = "try_revision"
    ABORT = "abort"
    SUCCESS = "success"


# Gemini 多模型回退调用 (Multi-model invoker with fallback)
# 严格串行：429 额度错误是账号级的，必须立即终止整条链路
class GeminiInvoker(AIInvoker):
    name = "gemini"

    def __init__(
        self,
        api_key: Optional[str],
        temperature: float = 0.3,
        max_tokens: int = 2048,
        timeout: float = 120.0,
        client_factory: Optional[ClientFactory] = None,
    ):
        if not is_configured_key(api_key):
            raise ConfigurationError(
                "Gemini API key not configured. Get one at https://aistudio.google.com/apikey"
            )
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._clients = _ClientPool(client_factory or default_client_factory(api_key, timeout))
        self.directory = GeminiModelDirectory(self._clients)

    async def generate(self, prompt: str) -> str:
        candidates = await self.directory.ranked_candidates()
        logger.info(f"Gemini candidates: {candidates}")
        return await self.generate_with_fallback(prompt, candidates)

    @staticmethod
    def _rate_limit_error(e: errors.APIError) -> RateLimited:
        if "limit: 0" in str(e):
            return RateLimited(
                "Gemini quota is 0 for your project. Enable billing at https://console.cloud.google.com/billing"
            )
        return RateLimited("Gemini rate limit hit. Wait a moment and try again.")

    async def generate_with_fallback(self, prompt: str, candidates: List[str]) -> str:
        """
        回退状态机 (Fallback state machine)
          TRY_MODEL    -> 取下一个候选模型；无候选则汇总所有失败并抛错
          TRY_REVISION -> 对当前模型调用当前 API 版本
                          成功且有文本 -> SUCCESS
                          空文本       -> 记录软错误，TRY_MODEL (不换版本)
                          429          -> ABORT
                          404          -> 同一模型的下一个 API 版本
                          其他失败     -> 记录错误，TRY_MODEL
        """
        config = types.GenerateContentConfig(
            temperature=self.temperature,
            max_output_tokens=self.max_tokens,
        )
        attempts: List[str] = []
        state = _FallbackState.TRY_MODEL
        model_index = -1
        revision_index = 0
        text = None
        abort_error: Optional[RateLimited] = None

        while True:
            if state is _FallbackState.TRY_MODEL:
                model_index += 1
                if model_index >= len(candidates):
                    break
                revision_index = 0
                state = _FallbackState.TRY_REVISION

            elif state is _FallbackState.TRY_REVISION:
                model = candidates[model_index]
                revision = API_REVISIONS[revision_index]
                try:
                    response = await self._clients.get(revision).aio.models.generate_content(
                        model=model, contents=prompt, config=config,
                    )
                except errors.APIError as e:
                    if e.code == 429:
                        logger.warning(f"Gemini {model}/{revision} rate limited, aborting fallback chain")
                        abort_error = self._rate_limit_error(e)
                        state = _FallbackState.ABORT
                        continue
                    attempts.append(f"{model}/{revision}: HTTP {e.code}")
                    if e.code == 404 and revision_index + 1 < len(API_REVISIONS):
                        revision_index += 1
                    else:
                        state = _FallbackState.TRY_MODEL
                    continue
                except Exception as e:
                    # 网络异常、无法解码的响应等：记录后换下一个模型
                    logger.warning(f"Gemini {model}/{revision} failed: {type(e).__name__}: {e}")
                    attempts.append(f"{model}/{revision}: {type(e).__name__}")
                    state = _FallbackState.TRY_MODEL
                    continue

                text = response.text
                if not text:
                    attempts.append(f"{model}/{revision}: empty response")
                    state = _FallbackState.TRY_MODEL
                    continue

                logger.info(f"[Gemini] Success with model: {model} via {revision}")
                state = _FallbackState.SUCCESS

            elif state is _FallbackState.ABORT:
                raise abort_error

            elif state is _FallbackState.SUCCESS:
                return text

        raise UpstreamUnavailable(
            f"All Gemini models failed. Tried: {', '.join(candidates)}. "
            f"Errors: {'; '.join(attempts)}. "
            "Switch the provider to groq as a free alternative."
        )
