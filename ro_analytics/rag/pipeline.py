from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Sequence

from dotenv import load_dotenv

from ro_analytics.rag.answer_synth import AnswerSynth
from ro_analytics.rag.conversation import normalize_conversation, require_user_turn
from ro_analytics.rag.dialect import CORRECTION_RULES
from ro_analytics.rag.errors import RequestTimeoutError, SQLValidationError
from ro_analytics.rag.normalize import MAX_ROWS, normalize_rows
from ro_analytics.rag.result_formatter import FormattedResult, create_clean_response
from ro_analytics.rag.retry import ExecutionTrace, RetryingExecutor
from ro_analytics.rag.router import ActionResolver, RespondAction
from ro_analytics.rag.sql_validator import build_feedback_prompt, validate_postgres_sql
from ro_analytics.utils.deadline import Deadline

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineConfig:
    max_rows: int = MAX_ROWS
    request_timeout_s: Optional[float] = 90.0


def get_pipeline_config() -> PipelineConfig:
    timeout = os.getenv("RO_REQUEST_TIMEOUT_S", "90").strip()
    return PipelineConfig(
        max_rows=int(os.getenv("RO_MAX_ROWS", str(MAX_ROWS))),
        request_timeout_s=float(timeout) if timeout else None,
    )


@dataclass(frozen=True)
class PipelineAnswer:
    message: str
    used_sql: bool
    elapsed_ms: int
    trace: Optional[ExecutionTrace] = None
    formatted: Optional[FormattedResult] = None


class AnalyticsPipeline:
    """
    One analytical question, end to end: normalize the conversation, ask the model for
    an action, validate and correct its SQL, execute with bounded retries, format the
    rows and narrate. Stateless; one instance serves concurrent requests.
    """

    def __init__(
        self,
        resolver: ActionResolver,
        executor: RetryingExecutor,
        synth: AnswerSynth,
        cfg: Optional[PipelineConfig] = None,
        table_names: Optional[Sequence[str]] = None,
    ):
        self.resolver = resolver
        self.executor = executor
        self.synth = synth
        self.cfg = cfg or PipelineConfig()
        self.table_names = table_names

    def answer(self, raw_messages: Iterable[Any]) -> PipelineAnswer:
        deadline = Deadline(self.cfg.request_timeout_s)

        messages = normalize_conversation(raw_messages)
        require_user_turn(messages)
        logger.info("Chat request received; messages=%s", len(messages))

        decision, analysis_text = self.resolver.resolve(messages)
        if isinstance(decision, RespondAction):
            return PipelineAnswer(message=decision.message, used_sql=False, elapsed_ms=deadline.elapsed_ms())
        self._check_deadline(deadline, "analysis")

        logger.info("[SQL][Original] %s", decision.sql)
        preferred = self.validated_sql(decision.sql)

        trace = self.executor.execute(decision.sql, preferred, deadline)
        self._check_deadline(deadline, "execution")

        rows = normalize_rows(trace.rows, self.cfg.max_rows)
        formatted = create_clean_response(rows, trace.executed_sql, decision.reason)
        logger.info(
            "[SQL] %s | rows=%s shape=%s attempts=%s reason=%s",
            trace.executed_sql,
            len(rows),
            formatted.shape.value,
            len(trace.attempts),
            decision.reason,
        )

        message = self.synth.narrate(messages, analysis_text, formatted.rendered, formatted.preview, len(rows))
        return PipelineAnswer(
            message=message,
            used_sql=True,
            elapsed_ms=deadline.elapsed_ms(),
            trace=trace,
            formatted=formatted,
        )

    def validated_sql(self, sql: str) -> str:
        """
        Run the dialect validator and return the text to execute. A query broken only
        by rules with deterministic fixes is corrected once and re-checked; if the
        correction is still invalid the request fails with the rule explanations.
        """
        report = validate_postgres_sql(sql, self.table_names)
        if report.is_valid:
            return report.corrected_sql or sql.strip()

        recheck = validate_postgres_sql(report.corrected_sql or sql, self.table_names)
        if not recheck.is_valid:
            hints = [r.hint for r in CORRECTION_RULES if r.name in recheck.fired_rules]
            raise SQLValidationError(
                "; ".join(recheck.errors),
                hint=" ".join(hints) or None,
                feedback=build_feedback_prompt(sql, report.errors, report.corrected_sql),
            )

        logger.info("[SQL][Auto-corrected] %s", report.corrected_sql)
        return report.corrected_sql

    @staticmethod
    def _check_deadline(deadline: Deadline, stage: str) -> None:
        if deadline.expired():
            logger.error("Request budget of %ss exceeded after %s", deadline.budget_s, stage)
            raise RequestTimeoutError("A requisição excedeu o tempo limite.")
