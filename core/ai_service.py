import json
import os
import re
from datetime import date
from typing import Any, Dict

import requests

from core.config import cfg
from core.errors import AIServiceError
from core.log import get_logger
from core.prompt_templates import (
    build_emotional_pattern_prompt,
    build_feedback_prompt,
    build_growth_pattern_prompt,
    build_period_summary_prompt,
    build_recommendations_prompt,
    build_summary_prompt,
)

logger = get_logger(__name__)

DEFAULT_BASE_URL = "https://api.openai.com/v1"
DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_SECONDS = 60

MOCK_API_KEYS = ["mock", "mock-key", "test-mock"]


def _mask_key(api_key: str) -> str:
    if not api_key:
        return ""
    if len(api_key) <= 8:
        return "*" * len(api_key)
    return f"{api_key[:4]}{'*' * (len(api_key) - 8)}{api_key[-4:]}"


def _provider_config(include_secret: bool = False) -> Dict[str, Any]:
    base_url = str(
        cfg.get("ai.provider.base_url", "")
        or os.getenv("AI_PROVIDER_BASE_URL", "")
        or DEFAULT_BASE_URL
    ).strip() or DEFAULT_BASE_URL
    model_name = str(
        cfg.get("ai.provider.model_name", "")
        or os.getenv("AI_PROVIDER_MODEL_NAME", "")
        or DEFAULT_MODEL
    ).strip() or DEFAULT_MODEL
    api_key = str(
        cfg.get("ai.provider.api_key", "")
        or os.getenv("AI_PROVIDER_API_KEY", "")
        or ""
    ).strip()
    raw_temperature = cfg.get("ai.provider.temperature", None)
    if raw_temperature is None:
        raw_temperature = os.getenv("AI_PROVIDER_TEMPERATURE", "") or 70
    try:
        temperature = int(raw_temperature)
    except Exception:
        temperature = 70
    try:
        timeout = float(
            cfg.get("ai.provider.timeout_seconds", None)
            or os.getenv("AI_PROVIDER_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)
            or DEFAULT_TIMEOUT_SECONDS
        )
    except Exception:
        timeout = DEFAULT_TIMEOUT_SECONDS
    return {
        "provider_name": "openai-compatible",
        "base_url": base_url,
        "model_name": model_name,
        "api_key": api_key if include_secret else _mask_key(api_key),
        "temperature": max(0, min(100, temperature)),
        "timeout_seconds": max(1.0, timeout),
    }


def get_provider_profile(mask_secret: bool = True) -> Dict[str, Any]:
    return _provider_config(include_secret=not mask_secret)


def is_mock_provider(runtime: Dict[str, Any]) -> bool:
    base_url = str(runtime.get("base_url") or "").strip().lower()
    api_key = str(runtime.get("api_key") or "").strip().lower()
    return base_url.startswith("mock://") or api_key in MOCK_API_KEYS


def _mock_completion(user_prompt: str) -> str:
    lines = [x.strip() for x in (user_prompt or "").splitlines() if x.strip()]
    source = lines[-1] if lines else ""
    source = re.sub(r"\s+", " ", source)[:60]
    return (
        "这是一份模拟生成内容，用于联调与自动化测试。\n\n"
        f"参考内容：{source}"
    )


def call_openai_compatible(system_prompt: str, user_prompt: str) -> str:
    runtime = _provider_config(include_secret=True)
    if is_mock_provider(runtime):
        return _mock_completion(user_prompt)

    base_url = str(runtime.get("base_url") or "").strip()
    api_key = str(runtime.get("api_key") or "").strip()
    if not api_key:
        raise AIServiceError("AI 服务未配置，请联系管理员")

    endpoint = f"{base_url.rstrip('/')}/chat/completions"
    headers = {
        "Authorization": f"Bearer {api_key}",
        "Content-Type": "application/json; charset=utf-8",
    }
    payload = {
        "model": runtime["model_name"],
        "temperature": float(runtime["temperature"]) / 100.0,
        "messages": [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ],
    }
    try:
        # 显式序列化 JSON，确保非 ASCII 字符不被转义
        payload_json = json.dumps(payload, ensure_ascii=False)
        resp = requests.post(
            endpoint,
            data=payload_json.encode("utf-8"),
            headers=headers,
            timeout=runtime["timeout_seconds"],
        )
    except requests.Timeout as e:
        raise AIServiceError(f"模型调用超时（{runtime['timeout_seconds']:.0f}s）") from e
    except requests.RequestException as e:
        raise AIServiceError(f"模型调用异常: {e}") from e

    if resp.status_code >= 400:
        raise AIServiceError(f"模型调用失败: HTTP {resp.status_code} {resp.text[:300]}")
    try:
        data = resp.json()
    except ValueError as e:
        raise AIServiceError("模型返回不是合法 JSON") from e
    if not isinstance(data, dict):
        raise AIServiceError("模型返回格式异常")
    choices = data.get("choices") or []
    if not isinstance(choices, list):
        raise AIServiceError("模型返回格式异常")
    if not choices:
        raise AIServiceError("模型返回为空")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict):
        raise AIServiceError("模型返回格式异常")
    content = str(message.get("content") or "").strip()
    if not content:
        raise AIServiceError("模型返回内容为空")
    return content


def generate_summary(diary_content: str) -> str:
    system_prompt, user_prompt = build_summary_prompt(diary_content)
    return call_openai_compatible(system_prompt, user_prompt)


def generate_feedback(diary_content: str, style: str) -> str:
    system_prompt, user_prompt = build_feedback_prompt(diary_content, style)
    return call_openai_compatible(system_prompt, user_prompt)


def generate_period_summary(combined_summaries: str, start_date: date, end_date: date) -> str:
    system_prompt, user_prompt = build_period_summary_prompt(combined_summaries, start_date, end_date)
    return call_openai_compatible(system_prompt, user_prompt)


def analyze_emotional_pattern(combined_summaries: str) -> str:
    system_prompt, user_prompt = build_emotional_pattern_prompt(combined_summaries)
    return call_openai_compatible(system_prompt, user_prompt)


def analyze_growth_pattern(combined_summaries: str) -> str:
    system_prompt, user_prompt = build_growth_pattern_prompt(combined_summaries)
    return call_openai_compatible(system_prompt, user_prompt)


def generate_recommendations(combined_summaries: str) -> str:
    system_prompt, user_prompt = build_recommendations_prompt(combined_summaries)
    return call_openai_compatible(system_prompt, user_prompt)
