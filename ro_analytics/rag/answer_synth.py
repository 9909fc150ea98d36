from __future__ import annotations

import logging
import re
from typing import List, Optional

from ro_analytics.llm.openai_client import OpenAIClient
from ro_analytics.rag.conversation import ChatMessage
from ro_analytics.rag.errors import ModelOutputError
from ro_analytics.rag.router import build_system_prompt, to_model_messages
from ro_analytics.utils.prompt_loader import load_prompt

logger = logging.getLogger(__name__)

GUIDE = load_prompt("final_response_guide.txt")


_NUM_RE = re.compile(r"(?<![A-Za-z])(\d+([.,]\d+)?)")


def _numbers_in_text(s: str) -> set[str]:
    """Return all numeric substrings found in the given text."""
    return set(m.group(1) for m in _NUM_RE.finditer(s))


class AnswerSynth:
    def __init__(self, llm: OpenAIClient, system_prompt: Optional[str] = None, temperature: Optional[float] = None):
        """Create the narration step using the provided LLM client."""
        self.llm = llm
        self.system_prompt = system_prompt or build_system_prompt()
        self.temperature = temperature

    def narrate(
        self,
        conversation: List[ChatMessage],
        analysis_text: str,
        rendered: str,
        preview: str,
        row_count: int,
    ) -> str:
        """
        Turn the formatted result into the final prose answer. The model sees its own
        analysis output, the rendered summary and a row preview; never the executed
        SQL or driver error text.
        """
        logger.info("Narrating answer; rows=%s", row_count)
        followup = (
            f"Consulta executada com sucesso. Linhas retornadas: {row_count}.\n\n"
            f"Resumo formatado:\n{rendered}\n\n"
            f"Prévia dos dados em JSON:\n{preview}\n\n"
            f"{GUIDE}"
        )
        messages = [
            *to_model_messages(conversation),
            {"role": "assistant", "content": analysis_text},
            {"role": "user", "content": followup},
        ]
        answer = self.llm.chat(self.system_prompt, messages, temperature=self.temperature)
        if not answer.strip():
            raise ModelOutputError("O modelo não gerou a resposta final.")

        # Numbers the model introduced that appear nowhere in what it was shown.
        context = " ".join([rendered, preview, str(row_count), *(m.text for m in conversation)])
        extra = _numbers_in_text(answer) - _numbers_in_text(context)
        if extra:
            logger.warning("Narration introduced unsupported numbers: %s", sorted(extra))

        logger.info("Answer narrated successfully")
        return answer
