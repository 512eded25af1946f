from __future__ import annotations

import json
import logging
import os
import time
import uuid
from typing import Any, Optional, Sequence

from openai import AsyncOpenAI

from cv_assistant.ai.types import ChatMessage
from cv_assistant.core.log import clip

logger = logging.getLogger(__name__)


class ProviderResponseError(RuntimeError):
    pass


class OpenAIProvider:
    def __init__(
        self,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_s: float = 60.0,
        max_retries: int = 2,
    ):
        self._model = model
        key = (api_key or os.getenv("OPENAI_API_KEY") or "").strip()
        if not key:
            raise RuntimeError("OPENAI_API_KEY is missing")

        self._client = AsyncOpenAI(
            api_key=key,
            base_url=(base_url or os.getenv("OPENAI_BASE_URL") or None),
            timeout=float(os.getenv("OPENAI_TIMEOUT_S", str(timeout_s))),
            max_retries=int(os.getenv("OPENAI_MAX_RETRIES", str(max_retries))),
        )

    async def complete_json(
        self,
        messages: Sequence[ChatMessage],
        *,
        prompt_name: str,
        temperature: float = 0.2,
        max_output_tokens: int = 1800,
    ) -> dict[str, Any]:
        run_id = uuid.uuid4().hex[:12]
        started = time.perf_counter()
        payload = [{"role": m.role, "content": m.content} for m in messages]

        response = await self._client.chat.completions.create(
            model=self._model,
            messages=payload,
            temperature=temperature,
            response_format={"type": "json_object"},
            max_tokens=max_output_tokens,
        )
        content = response.choices[0].message.content if response.choices else ""
        latency_ms = int((time.perf_counter() - started) * 1000)
        if not content:
            logger.warning(
                "llm_empty_response run_id=%s prompt=%s model=%s latency_ms=%s",
                run_id,
                prompt_name,
                self._model,
                latency_ms,
            )
            raise ProviderResponseError("The AI response was empty.")

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError as exc:
            logger.warning(
                "llm_invalid_json run_id=%s prompt=%s content=%s",
                run_id,
                prompt_name,
                clip(content, 200),
            )
            raise ProviderResponseError("The AI response was not valid JSON.") from exc

        if not isinstance(parsed, dict):
            raise ProviderResponseError("The AI response was not a JSON object.")

        logger.info(
            "llm_completed run_id=%s prompt=%s model=%s latency_ms=%s",
            run_id,
            prompt_name,
            self._model,
            latency_ms,
        )
        return parsed
