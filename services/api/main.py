from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ro_analytics.db.engine import get_engine, ping
from ro_analytics.db.schema_catalog import DEFAULT_CATALOG
from ro_analytics.llm.openai_client import OpenAIClient
from ro_analytics.rag.answer_synth import AnswerSynth
from ro_analytics.rag.errors import AssistantError, InputError
from ro_analytics.rag.pipeline import AnalyticsPipeline, get_pipeline_config
from ro_analytics.rag.retry import RetryingExecutor
from ro_analytics.rag.router import ActionResolver, build_system_prompt
from ro_analytics.rag.sql_agent import SQLAgent
from ro_analytics.rag.sql_safety import SQLSafetyConfig

from .schemas import ChatMeta, ChatRequest, ChatResponse, ErrorResponse
from ro_analytics.utils.logging import setup_logging
setup_logging()
logger = logging.getLogger(__name__)


def build_pipeline(engine: Engine) -> AnalyticsPipeline:
    cfg = get_pipeline_config()
    llm = OpenAIClient()
    system_prompt = build_system_prompt(DEFAULT_CATALOG)

    agent = SQLAgent(engine, SQLSafetyConfig(max_rows=cfg.max_rows))
    return AnalyticsPipeline(
        resolver=ActionResolver(llm, system_prompt, temperature=llm.cfg.analysis_temperature),
        executor=RetryingExecutor(agent),
        synth=AnswerSynth(llm, system_prompt, temperature=llm.cfg.narration_temperature),
        cfg=cfg,
        table_names=DEFAULT_CATALOG.table_names(),
    )


def create_app(pipeline: Optional[AnalyticsPipeline] = None, engine: Optional[Engine] = None) -> FastAPI:
    app = FastAPI(title="RO Analytics API", version="1.0.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Built on first use so importing the app needs neither credentials nor a database.
    app.state.engine = engine
    app.state.pipeline = pipeline

    def _engine() -> Engine:
        if app.state.engine is None:
            app.state.engine = get_engine()
        return app.state.engine

    def _pipeline() -> AnalyticsPipeline:
        if app.state.pipeline is None:
            app.state.pipeline = build_pipeline(_engine())
        return app.state.pipeline

    @app.exception_handler(AssistantError)
    async def assistant_error_handler(request: Request, exc: AssistantError) -> JSONResponse:
        log = logger.warning if exc.status_code < 500 else logger.error
        log("Request failed: %s (%s): %s", exc.label, type(exc).__name__, exc.details)
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Malformed chat payload: %s", exc.errors())
        err = InputError("Envie um objeto com a lista 'messages'")
        return JSONResponse(status_code=err.status_code, content=err.to_payload())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Unexpected failure while handling %s", request.url.path, exc_info=exc)
        err = AssistantError("Ocorreu um erro inesperado. Tente novamente.")
        return JSONResponse(status_code=err.status_code, content=err.to_payload())

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.get("/health/db")
    def health_db() -> JSONResponse:
        try:
            ping(_engine())
        except SQLAlchemyError as e:
            logger.error("Database ping failed: %s", e)
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return JSONResponse(content={"status": "ok"})

    @app.post(
        "/chat",
        response_model=ChatResponse,
        response_model_by_alias=True,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    def chat(req: ChatRequest) -> ChatResponse:
        answer = _pipeline().answer(req.messages)
        logger.info("Chat answered in %sms (usedSql=%s)", answer.elapsed_ms, answer.used_sql)
        return ChatResponse(
            message=answer.message,
            meta=ChatMeta(elapsed_ms=answer.elapsed_ms, used_sql=answer.used_sql),
        )

    return app


app = create_app()
