from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .errors import (
    ContentNotFoundError,
    ToolchainUnavailableError,
    UnknownLanguageError,
    UnsupportedLanguageError,
    UnsupportedModeError,
)
from .isolation.isolation import probe_capabilities
from .logging import setup_logging
from .services.engine import Engine
from .settings import load_settings


# --------- Schemas ---------
class ExecuteReq(BaseModel):
    language: str
    source: str
    stdin: str = ""
    timeout_ms: Optional[int] = Field(default=None, gt=0, le=60000)


class SubmitReq(BaseModel):
    language: str
    source: str


class LessonReq(BaseModel):
    source: str


def create_app(engine: Optional[Engine] = None) -> FastAPI:
    app = FastAPI(title="Judgebox API")
    # DEV: open CORS; whitelist the editor origin in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.engine = engine

    def get_engine() -> Engine:
        if app.state.engine is None:
            settings = load_settings()
            setup_logging(settings.log_level, settings.log_json)
            app.state.engine = Engine.from_settings(settings)
        return app.state.engine

    # --------- Error mapping ---------
    @app.exception_handler(ContentNotFoundError)
    async def _not_found(request: Request, exc: ContentNotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(UnknownLanguageError)
    @app.exception_handler(UnsupportedLanguageError)
    @app.exception_handler(UnsupportedModeError)
    async def _bad_request(request: Request, exc: Exception):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(ToolchainUnavailableError)
    async def _unavailable(request: Request, exc: ToolchainUnavailableError):
        return JSONResponse(status_code=503, content={"detail": f"runtime_unavailable: {exc}"})

    # --------- Endpoints ---------
    @app.get("/")
    async def root():
        return {"message": "Welcome to the Judgebox API"}

    @app.get("/health")
    async def health():
        s = get_engine().settings
        return {"ok": True, "isolation": probe_capabilities(s.iso_strategy, s.allow_network)}

    @app.get("/languages")
    async def languages():
        return {"languages": list(get_engine().adapters.language_ids())}

    @app.post("/execute")
    async def execute(req: ExecuteReq):
        eng = get_engine()
        result = await eng.execute(req.source, req.language, req.stdin, req.timeout_ms)
        return eng.reporter.execution_payload(result)

    @app.post("/problems/{problem_id}/run")
    async def run_sample(problem_id: str, req: SubmitReq):
        eng = get_engine()
        result = await eng.run_sample(problem_id, req.language, req.source)
        return eng.reporter.execution_payload(result)

    @app.post("/problems/{problem_id}/judge")
    async def judge(problem_id: str, req: SubmitReq):
        eng = get_engine()
        report = await eng.judge_problem(problem_id, req.language, req.source)
        return eng.reporter.judge_payload(report)

    @app.post("/lessons/{lesson_id}/run")
    async def run_lesson(lesson_id: str, req: LessonReq):
        eng = get_engine()
        outcome = await eng.run_lesson(lesson_id, req.source)
        return eng.reporter.lesson_payload(outcome)

    return app


app = create_app()
