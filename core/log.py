"""
MoodMate 日志配置。

一次反馈请求会经过 路由 → 反馈服务 → 配额 → AI 调用 多个模块，区间分析还会
把四个 AI 调用分发到线程池。所有这些日志行都带上同一个 trace_id，
由 web.py 中间件按 X-Request-Id 设置，工作线程通过 trace_ctx() 沿用。

配置项：log.level（默认 INFO），log.file（留空只输出控制台，
填写后按 5MB 轮转，保留 7 份）。

行格式：时间 [级别] [trace_id] 模块.函数:行号 - 消息
"""

import logging
import logging.handlers
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Generator, Optional

import colorlog

from core.config import cfg

# ── 请求 trace_id ──
_trace_id_var: ContextVar[str] = ContextVar("trace_id", default="-")


def _new_trace_id() -> str:
    """请求未带 X-Request-Id 时使用的 8 位短 id。"""
    return uuid.uuid4().hex[:8]


def set_trace_id(tid: Optional[str] = None) -> str:
    """设置当前上下文的 trace_id，返回实际值。"""
    tid = str(tid or "").strip()[:16] or _new_trace_id()
    _trace_id_var.set(tid)
    return tid


def get_trace_id() -> str:
    """获取当前上下文的 trace_id（未设置时返回 '-'）。"""
    return _trace_id_var.get()


@contextmanager
def trace_ctx(trace_id: Optional[str] = None) -> Generator[str, None, None]:
    """区间分析的线程池任务用它沿用发起请求的 trace_id，退出时还原。"""
    token = _trace_id_var.set(str(trace_id or "").strip()[:16] or _new_trace_id())
    try:
        yield _trace_id_var.get()
    finally:
        _trace_id_var.reset(token)


# ── 级别与输出文件（log.*）──
def _resolve_level(name: str) -> int:
    level = logging.getLevelName(str(name or "").strip().upper())
    return level if isinstance(level, int) else logging.INFO


_level = _resolve_level(cfg.get("log.level", "INFO"))
_LOG_FILE = str(cfg.get("log.file", "") or "")

# ── 日志格式 ──
_FMT = "%(asctime)s [%(levelname)-5s] [%(trace_id)s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
_LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class _TraceIdFilter(logging.Filter):
    """把当前请求的 trace_id 写入 record，供 %(trace_id)s 使用。"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.trace_id = _trace_id_var.get()
        return True


_trace_filter = _TraceIdFilter()

# ── Handler 注册（重复导入时只注册一次）──
_APP_HANDLER_MARKER = "_is_moodmate_handler"


def _attach(root: logging.Logger, handler: logging.Handler, formatter: logging.Formatter) -> None:
    handler.setLevel(_level)
    handler.setFormatter(formatter)
    handler.addFilter(_trace_filter)
    setattr(handler, _APP_HANDLER_MARKER, True)
    root.addHandler(handler)


def _setup_app_logging() -> None:
    root = logging.getLogger()
    if any(getattr(h, _APP_HANDLER_MARKER, False) for h in root.handlers):
        return
    root.setLevel(_level)

    _attach(
        root,
        colorlog.StreamHandler(stream=sys.stdout),
        colorlog.ColoredFormatter("%(log_color)s" + _FMT, datefmt=_DATE_FMT, log_colors=_LOG_COLORS),
    )
    if _LOG_FILE:
        _attach(
            root,
            logging.handlers.RotatingFileHandler(
                f"{_LOG_FILE}.log",
                maxBytes=5 * 1024 * 1024,
                backupCount=7,
                encoding="utf-8",
            ),
            logging.Formatter(_FMT, datefmt=_DATE_FMT),
        )


_setup_app_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
