from __future__ import annotations

import json
import logging
import re
from typing import Annotated, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from ro_analytics.db.schema_catalog import DEFAULT_CATALOG, SchemaCatalog
from ro_analytics.llm.openai_client import OpenAIClient
from ro_analytics.rag.conversation import ChatMessage
from ro_analytics.rag.errors import ModelOutputError
from ro_analytics.utils.prompt_loader import load_prompt

logger = logging.getLogger(__name__)


# -----------------------------
# Action decision
# -----------------------------
class RespondAction(BaseModel):
    """Terminal answer; no database access."""

    model_config = ConfigDict(frozen=True, strict=True)

    action: Literal["respond"]
    message: str


class QueryAction(BaseModel):
    """Proposed read query; ``sql`` is untrusted until validated and gated."""

    model_config = ConfigDict(frozen=True, strict=True)

    action: Literal["query"]
    sql: str
    reason: Optional[str] = None


ActionDecision = Annotated[Union[RespondAction, QueryAction], Field(discriminator="action")]

_ACTION_ADAPTER: TypeAdapter = TypeAdapter(ActionDecision)


# -----------------------------
# Parsing
# -----------------------------
_LEADING_FENCE = re.compile(r"^```(?:json)?", re.IGNORECASE)
_TRAILING_FENCE = re.compile(r"```$")


def extract_json(text: str) -> str:
    """Strip a surrounding ``` / ```json code fence, if any."""
    cleaned = _LEADING_FENCE.sub("", text.strip())
    return _TRAILING_FENCE.sub("", cleaned).strip()


def parse_action(raw: str) -> Union[RespondAction, QueryAction]:
    """
    Strictly parse the analysis call's output. Only the two known shapes are
    accepted; anything else raises ModelOutputError with the parse failure text.
    """
    prefix = "Não consegui interpretar a resposta do modelo"
    try:
        obj = json.loads(extract_json(raw or ""))
    except json.JSONDecodeError as e:
        raise ModelOutputError(f"{prefix}: {e}") from e

    if not isinstance(obj, dict):
        raise ModelOutputError(f"{prefix}: a resposta não é um objeto JSON")

    try:
        return _ACTION_ADAPTER.validate_python(obj)
    except ValidationError as e:
        problems = "; ".join(f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors())
        raise ModelOutputError(f"{prefix}: formato de ação inválido ({problems})") from e


def to_model_messages(messages: List[ChatMessage]) -> List[Dict[str, str]]:
    # Client-supplied system turns are replayed as user turns; only our prompt is system.
    return [
        {"role": "assistant" if m.role == "assistant" else "user", "content": m.text}
        for m in messages
    ]


def build_system_prompt(catalog: SchemaCatalog = DEFAULT_CATALOG) -> str:
    return load_prompt("ro_system.txt").replace("{{SCHEMA}}", catalog.describe())


# -----------------------------
# Resolver
# -----------------------------
class ActionResolver:
    """Asks the model whether to answer directly or query, and parses its decision."""

    def __init__(self, llm: OpenAIClient, system_prompt: Optional[str] = None, temperature: Optional[float] = None):
        self.llm = llm
        self.system_prompt = system_prompt or build_system_prompt()
        self.temperature = temperature

    def resolve(self, messages: List[ChatMessage]) -> Tuple[Union[RespondAction, QueryAction], str]:
        """Return the parsed decision together with the raw model text."""
        logger.debug("Resolving action for %s messages", len(messages))
        raw = self.llm.chat(
            self.system_prompt,
            to_model_messages(messages),
            json_mode=True,
            temperature=self.temperature,
        )
        try:
            decision = parse_action(raw)
        except ModelOutputError:
            logger.warning("Unparseable analysis output: %.500s", raw)
            raise
        logger.info("Action decision: %s", decision.action)
        return decision, raw
