from __future__ import annotations

from typing import Optional


class AssistantError(Exception):
    """Base error for the analytics assistant; carries a user-safe payload."""

    status_code: int = 500
    label: str = "Falha ao processar a requisição da RO"

    def __init__(
        self,
        details: str,
        *,
        label: Optional[str] = None,
        hint: Optional[str] = None,
        feedback: Optional[str] = None,
    ):
        super().__init__(details)
        self.details = details
        if label is not None:
            self.label = label
        self.hint = hint
        self.feedback = feedback

    def to_payload(self) -> dict:
        payload = {"error": self.label, "details": self.details}
        if self.hint:
            payload["hint"] = self.hint
        if self.feedback:
            payload["feedback"] = self.feedback
        return payload


# -----------------------------
# Input shape
# -----------------------------
class InputError(AssistantError):
    status_code = 400
    label = "Payload inválido"


# -----------------------------
# Model collaborator
# -----------------------------
class ModelOutputError(AssistantError):
    """The analysis call returned text that is not one of the accepted actions."""

    label = "Resposta do modelo ilegível"


class ModelUnavailableError(AssistantError):
    label = "Modelo indisponível"


# -----------------------------
# SQL validation / statement gate
# -----------------------------
class SQLValidationError(AssistantError):
    status_code = 400
    label = "SQL inválida para PostgreSQL"


class SQLSafetyError(AssistantError):
    status_code = 400
    label = "Receita proibida"


# -----------------------------
# Execution
# -----------------------------
class ExecutionError(AssistantError):
    pass


class ClassifiedExecutionError(ExecutionError):
    status_code = 400


class RetryExhaustedError(ClassifiedExecutionError):
    """A classified failure whose single permitted retry also failed."""


class UnclassifiedExecutionError(ExecutionError):
    pass


class QueryTimeoutError(ExecutionError):
    label = "Tempo esgotado"


class RequestTimeoutError(AssistantError):
    label = "Tempo esgotado"
