"""
JSON HTTP API for the trainer.

``create_app`` wires a ``QuestionStore`` and a ``FeedbackGateway`` into a
FastAPI application. Both are created (and the store seeded) when not given,
so ``ihk-trainer-api`` serves a ready-to-use in-memory trainer.
"""
import logging
import time
from datetime import datetime

import uvicorn
from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ihk_trainer.config import Config, setup_logging
from ihk_trainer.errors import NotFoundError, PayloadValidationError, TrainerError
from ihk_trainer.gateway import FeedbackGateway, fallback_hints
from ihk_trainer.llm_client import get_default_llm_client
from ihk_trainer.loader import import_questions, load_from_upload, load_from_url
from ihk_trainer.schemas import (
    BatchQuestionsIn, ChatIn, FeedbackIn, ImportUrlIn, LevelIn, LevelProgressIn,
    LevelProgressPatchIn, LevelSessionIn, ProgressIn, QuestionHintIn, StatsPatchIn,
    StudyTimeIn, StudyTipIn,
)
from ihk_trainer.seed import load_example_exam, seed_all
from ihk_trainer.store import QuestionStore
from ihk_trainer.study_plan import build_study_plan
from ihk_trainer.transformer import convert_exam_json

logger = logging.getLogger(__name__)


def _import_response(result: dict) -> JSONResponse:
    body = {
        "message": result["message"],
        "imported": result["imported"],
        "skipped": result["skipped"],
    }
    if not result["imported"]:
        return JSONResponse(status_code=200, content=body)
    body["questions"] = [q.to_dict() for q in result["questions"]]
    return JSONResponse(status_code=201, content=body)


def _dicts(items) -> list[dict]:
    return [item.to_dict() for item in items]


def create_app(store: QuestionStore | None = None, gateway: FeedbackGateway | None = None) -> FastAPI:
    if store is None:
        store = QuestionStore()
        seed_all(store)
    if gateway is None:
        gateway = FeedbackGateway(get_default_llm_client())

    app = FastAPI(title="IHK Trainer API", version="1.0.0")
    app.state.store = store
    app.state.gateway = gateway

    @app.exception_handler(TrainerError)
    async def trainer_error_handler(request: Request, exc: TrainerError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"message": "Invalid request data", "error": jsonable_encoder(exc.errors())},
        )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        if request.url.path.startswith("/api"):
            duration_ms = round((time.perf_counter() - start) * 1000)
            logger.info("%s %s %d in %dms", request.method, request.url.path, response.status_code, duration_ms)
        return response

    # ---- questions ----

    @app.get("/api/questions")
    def list_questions():
        return _dicts(store.get_questions())

    @app.get("/api/questions/category/{category}")
    def questions_by_category(category: str):
        return _dicts(store.get_questions_by_category(category))

    @app.get("/api/questions/difficulty/{difficulty}")
    def questions_by_difficulty(difficulty: int):
        return _dicts(store.get_questions_by_difficulty(difficulty))

    @app.get("/api/questions/difficulty-range/{min_difficulty}/{max_difficulty}")
    def questions_by_difficulty_range(min_difficulty: int, max_difficulty: int):
        if min_difficulty > max_difficulty:
            raise PayloadValidationError("Invalid difficulty range")
        return _dicts(store.get_questions_by_difficulty_range(min_difficulty, max_difficulty))

    @app.get("/api/questions/{question_id}")
    def get_question(question_id: int):
        question = store.get_question(question_id)
        if question is None:
            raise NotFoundError("Question not found")
        return question.to_dict()

    @app.post("/api/questions/batch")
    def import_batch(body: BatchQuestionsIn):
        return _import_response(import_questions(store, [q.to_question() for q in body.questions]))

    @app.get("/api/categories")
    def list_categories():
        return store.get_categories()

    # ---- exam documents ----

    @app.post("/api/exams/upload")
    async def upload_exam(file: UploadFile = File(...)):
        content = await file.read()
        questions = load_from_upload(file.filename or "upload.json", content)
        return _import_response(import_questions(store, questions))

    @app.post("/api/exams/import-url")
    def import_exam_from_url(body: ImportUrlIn):
        return _import_response(import_questions(store, load_from_url(body.url)))

    @app.get("/api/example-exam")
    def example_exam():
        exam = load_example_exam()
        exam_data = {
            **exam,
            "timeLimit": Config.EXAMPLE_EXAM_TIME_LIMIT,
            "startTime": datetime.now().isoformat(),
        }
        return {"examData": exam_data, "questions": _dicts(convert_exam_json(exam))}

    # ---- progress & stats ----

    @app.post("/api/progress", status_code=201)
    def record_progress(body: ProgressIn):
        return store.record_user_progress(
            body.user_id, body.question_id, body.correct, body.attempts,
        ).to_dict()

    @app.get("/api/progress/{user_id}")
    def get_progress(user_id: int):
        return _dicts(store.get_user_progress(user_id))

    @app.get("/api/stats/{user_id}")
    def get_stats(user_id: int):
        stats = store.get_user_stats(user_id)
        if stats is None:
            raise NotFoundError("User stats not found")
        return stats.to_dict()

    @app.patch("/api/stats/{user_id}")
    def update_stats(user_id: int, body: StatsPatchIn):
        return store.update_user_stats(user_id, **body.model_dump(exclude_none=True)).to_dict()

    @app.post("/api/stats/{user_id}/study-time")
    def add_study_time(user_id: int, body: StudyTimeIn):
        return store.add_study_time(user_id, body.minutes).to_dict()

    @app.post("/api/stats/{user_id}/reset")
    def reset_stats(user_id: int):
        return store.reset_user_stats(user_id).to_dict()

    @app.get("/api/study-plan/{user_id}")
    def get_study_plan(
        user_id: int,
        days_per_week: int = Query(default=5, alias="daysPerWeek"),
        minutes_per_day: int = Query(default=60, alias="minutesPerDay"),
    ):
        return build_study_plan(store, user_id, days_per_week, minutes_per_day).to_dict()

    # ---- levels ----

    @app.get("/api/levels")
    def list_levels():
        return _dicts(store.get_levels())

    @app.post("/api/levels", status_code=201)
    def create_level(body: LevelIn):
        if body.min_difficulty > body.max_difficulty:
            raise PayloadValidationError("Invalid level data: minDifficulty exceeds maxDifficulty")
        return store.create_level(**body.model_dump()).to_dict()

    @app.get("/api/levels/{level_id}")
    def get_level(level_id: int):
        level = store.get_level(level_id)
        if level is None:
            raise NotFoundError("Level not found")
        return level.to_dict()

    @app.get("/api/levels/{level_id}/questions")
    def get_level_questions(level_id: int):
        return _dicts(store.get_level_questions(level_id))

    @app.get("/api/level-progress/{user_id}")
    def list_level_progress(user_id: int):
        return _dicts(store.get_user_level_progress(user_id))

    @app.get("/api/level-progress/{user_id}/{level_id}")
    def get_level_progress(user_id: int, level_id: int):
        progress = store.get_level_progress(user_id, level_id)
        if progress is None:
            raise NotFoundError("Level progress not found")
        return progress.to_dict()

    @app.patch("/api/level-progress/{user_id}/{level_id}")
    def update_level_progress(user_id: int, level_id: int, body: LevelProgressPatchIn):
        return store.update_level_progress(user_id, level_id, **body.model_dump(exclude_none=True)).to_dict()

    @app.post("/api/level-progress", status_code=201)
    def create_level_progress(body: LevelProgressIn):
        return store.create_level_progress(**body.model_dump()).to_dict()

    @app.post("/api/level-progress/{user_id}/{level_id}/session")
    def record_level_session(user_id: int, level_id: int, body: LevelSessionIn):
        if body.correct > body.answered:
            raise PayloadValidationError("correct cannot exceed answered")
        return store.record_level_session(user_id, level_id, body.answered, body.correct).to_dict()

    # ---- AI ----

    @app.post("/api/ai/feedback")
    def ai_feedback(body: FeedbackIn):
        return gateway.grade_answer(body.to_request()).to_dict()

    @app.post("/api/ai/chat")
    def ai_chat(body: ChatIn):
        return {"response": gateway.chat(body.message)}

    @app.post("/api/ai/study-tip")
    def ai_study_tip(body: StudyTipIn):
        return {"tip": gateway.study_tip(body.prompt)}

    @app.post("/api/ai/question-hint")
    def ai_question_hint(body: QuestionHintIn):
        try:
            return gateway.question_hint(body.prompt, body.question_id)
        except TrainerError as e:
            category = body.category
            if category is None and body.question_id is not None:
                question = store.get_question(body.question_id)
                category = question.category if question else None
            logger.warning("Question hint failed, serving canned hints: %s", e.message)
            return {
                "hint": None,
                "questionId": body.question_id,
                "hints": fallback_hints(category),
                "fallback": True,
            }

    return app


def run() -> None:
    """Console entry point: serve the API with uvicorn."""
    setup_logging()
    uvicorn.run(
        "ihk_trainer.api:create_app",
        factory=True,
        host=Config.API_HOST,
        port=Config.API_PORT,
        log_level=Config.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
