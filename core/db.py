import os

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from core.config import cfg
from core.events import E, log_event
from core.log import get_logger

logger = get_logger(__name__)


class Db:
    """SQLAlchemy 引擎与会话工厂的薄封装。"""

    def __init__(self, tag: str = "默认", url: str = None):
        self.tag = tag
        self.url = url or str(cfg.get("db", "sqlite:///data/moodmate.db"))
        self.engine = self._create_engine(self.url)
        self.session_factory = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    def _create_engine(self, url: str):
        connect_args = {}
        parsed = make_url(url)
        if parsed.get_backend_name() == "sqlite":
            # 多线程共享同一数据库文件，写锁冲突时等待而不是立即失败
            connect_args = {"check_same_thread": False, "timeout": 30}
            db_path = parsed.database or ""
            if db_path and db_path != ":memory:":
                folder = os.path.dirname(os.path.abspath(db_path))
                os.makedirs(folder, exist_ok=True)
        return create_engine(url, connect_args=connect_args, pool_pre_ping=True)

    def get_session(self) -> Session:
        return self.session_factory()

    def create_tables(self) -> None:
        from core.models.base import Base
        import core.models  # noqa: F401  注册全部模型

        Base.metadata.create_all(self.engine)
        log_event(logger, E.SYSTEM_DB_INIT, level="debug", tag=self.tag, backend=self.engine.url.get_backend_name())


DB = Db(tag="MoodMate")