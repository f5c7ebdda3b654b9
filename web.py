import json
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apis.auth import router as auth_router
from apis.feedback import router as feedback_router
from apis.user import router as user_router
from core.config import API_BASE, VERSION, cfg
from core.db import DB
from core.events import E, log_event
from core.log import get_logger, set_trace_id

logger = get_logger(__name__)


class UnicodeJSONResponse(JSONResponse):
    """自定义 JSON 响应类，确保非 ASCII 字符不被转义"""
    def render(self, content: Any) -> bytes:
        return json.dumps(
            content,
            ensure_ascii=False,
            allow_nan=False,
            indent=None,
            separators=(",", ":"),
        ).encode("utf-8")


app = FastAPI(
    title="MoodMate API",
    description="情绪日记 AI 反馈服务 API 文档",
    version=VERSION,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    swagger_ui_parameters={
        "persistAuthorization": True,
    },
    default_response_class=UnicodeJSONResponse,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_trace_and_headers(request: Request, call_next):
    tid = set_trace_id(request.headers.get("X-Request-Id", ""))
    response = await call_next(request)
    response.headers["X-Request-Id"] = tid
    response.headers["X-Version"] = VERSION
    response.headers["Server"] = cfg.get("app_name", "MoodMate")
    return response


api_router = APIRouter(prefix=f"{API_BASE}")
api_router.include_router(auth_router)
api_router.include_router(user_router)
api_router.include_router(feedback_router)
app.include_router(api_router)


@app.on_event("startup")
async def ensure_tables():
    DB.create_tables()
    log_event(logger, E.SYSTEM_STARTUP, version=VERSION, api_base=API_BASE)
