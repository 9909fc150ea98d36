from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import openai
from dotenv import load_dotenv
from openai import OpenAI

from ro_analytics.rag.errors import ModelUnavailableError

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OpenAIConfig:
    api_key: str
    model: str
    timeout_s: float = 30.0
    analysis_temperature: Optional[float] = None
    narration_temperature: Optional[float] = None


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    return float(raw) if raw else None


def get_openai_config() -> OpenAIConfig:
    api_key = os.getenv("OPENAI_API_KEY", "")
    if not api_key:
        raise RuntimeError("OPENAI_API_KEY is not set. Put it in .env (do not commit).")
    model = os.getenv("OPENAI_MODEL", "gpt-5-mini")
    return OpenAIConfig(
        api_key=api_key,
        model=model,
        timeout_s=float(os.getenv("OPENAI_TIMEOUT_S", "30")),
        # Reasoning models reject temperature, so it is only sent when configured.
        analysis_temperature=_optional_float("OPENAI_ANALYSIS_TEMPERATURE"),
        narration_temperature=_optional_float("OPENAI_NARRATION_TEMPERATURE"),
    )


class OpenAIClient:
    def __init__(self, cfg: Optional[OpenAIConfig] = None):
        cfg = cfg or get_openai_config()
        self.cfg = cfg
        self.model = cfg.model
        self.client = OpenAI(api_key=cfg.api_key, timeout=cfg.timeout_s, max_retries=1)

    def chat(
        self,
        system: str,
        messages: List[Dict[str, str]],
        *,
        json_mode: bool = False,
        temperature: Optional[float] = None,
    ) -> str:
        """
        Run one Responses API call over a system prompt plus role/content messages.
        Transport failures surface as ModelUnavailableError.
        """
        kwargs: Dict[str, Any] = {
            "model": self.model,
            "input": [{"role": "system", "content": system}, *messages],
        }
        if json_mode:
            kwargs["text"] = {"format": {"type": "json_object"}}
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            resp = self.client.responses.create(**kwargs)
        except openai.APITimeoutError as e:
            logger.error("OpenAI call timed out after %ss", self.cfg.timeout_s)
            raise ModelUnavailableError(
                "O modelo de linguagem demorou demais para responder.", label="Tempo esgotado"
            ) from e
        except openai.OpenAIError as e:
            logger.error("OpenAI call failed: %s", e)
            raise ModelUnavailableError("O modelo de linguagem não está disponível no momento.") from e
        return resp.output_text or ""
