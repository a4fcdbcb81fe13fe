# LLM 响应修复解析器 (Response Repair Parser)
# 针对 token 上限导致的截断输出做有限度的修复，不是通用 JSON 修复器
import json
import logging
import re
from typing import Any, Dict

from signal_advisor.core.exceptions import MalformedResponse

logger = logging.getLogger(__name__)

EXCERPT_LENGTH = 500

_FENCE_OPEN = re.compile(r"```json\s*", re.IGNORECASE)
_FENCE = re.compile(r"```\s*")
_TRAILING_COMMA = re.compile(r",\s*$")
_TRAILING_KEY_FRAGMENT = re.compile(r',\s*"[^"]*$')
_DANGLING_COLON = re.compile(r":\s*$")
_UNESCAPED_QUOTE = re.compile(r'(?<!\\)"')


def strip_code_fences(text: str) -> str:
    return _FENCE.sub("", _FENCE_OPEN.sub("", text)).strip()


def extract_object_span(text: str) -> str:
    """截取第一个 { 到最后一个 } 之间的内容，丢弃前后的说明文字"""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        return text[start:end + 1]
    return text


def repair_truncated_json(cleaned: str) -> str:
    """
    截断修复启发式 (Truncation repair heuristic)
    1. 去掉末尾逗号
    2. 去掉末尾不完整的 "key 片段
    3. 冒号后直接结束则补 null
    4. 未转义双引号为奇数则补一个引号
    5. 按 { 与 } 的差额补齐右括号
    """
    missing_braces = cleaned.count("{") - cleaned.count("}")

    repaired = _TRAILING_COMMA.sub("", cleaned)
    repaired = _TRAILING_KEY_FRAGMENT.sub("", repaired)
    repaired = _DANGLING_COLON.sub(": null", repaired)

    if len(_UNESCAPED_QUOTE.findall(repaired)) % 2 != 0:
        repaired += '"'

    repaired += "}" * max(missing_braces, 0)
    return repaired


def parse_json_response(text: str) -> Dict[str, Any]:
    """
    将 LLM 文本解析为 JSON 对象

    Raises:
        MalformedResponse: 修复后仍无法解析，或顶层不是对象；附带原文前 500 字符
    """
    raw = text or ""
    cleaned = extract_object_span(strip_code_fences(raw))

    try:
        parsed = json.loads(cleaned)
    except ValueError:  # JSONDecodeError 或超长整数转换失败
        repaired = repair_truncated_json(cleaned)
        try:
            parsed = json.loads(repaired)
            logger.warning(f"AI response JSON was truncated; repaired {len(cleaned)} -> {len(repaired)} chars")
        except ValueError:
            excerpt = raw[:EXCERPT_LENGTH]
            raise MalformedResponse(
                "Failed to parse AI response as JSON. "
                f"Raw response (first {EXCERPT_LENGTH} chars): {excerpt}",
                excerpt=excerpt,
            )

    if not isinstance(parsed, dict):
        excerpt = raw[:EXCERPT_LENGTH]
        raise MalformedResponse(
            f"AI response is not a JSON object. Raw response (first {EXCERPT_LENGTH} chars): {excerpt}",
            excerpt=excerpt,
        )
    return parsed
