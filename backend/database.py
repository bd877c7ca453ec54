from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from sqlmodel import Session, SQLModel, create_engine, select

from models import AppConfig, BookmarkNode
from settings import S


os.makedirs("data", exist_ok=True)


logger = logging.getLogger(__name__)


ROOT_NODE_ID = 0

# Containers the bookmark tree always provides; they are created on startup and
# can never be removed.
SYSTEM_ROOTS: Dict[int, str] = {
    ROOT_NODE_ID: "",
    1: "Bookmarks bar",
    2: "Other bookmarks",
    3: "Mobile bookmarks",
}


def _make_engine():
    connect_args = {"check_same_thread": False} if S.DATABASE_URL.startswith("sqlite") else {}
    return create_engine(S.DATABASE_URL, echo=False, connect_args=connect_args)


engine = _make_engine()


_schema_lock = threading.Lock()
_schema_ready = False


def _seed_system_roots() -> None:
    with Session(engine) as ses:
        created = False
        for position, (node_id, title) in enumerate(SYSTEM_ROOTS.items()):
            if ses.get(BookmarkNode, node_id) is not None:
                continue
            parent_id = None if node_id == ROOT_NODE_ID else ROOT_NODE_ID
            ses.add(
                BookmarkNode(
                    id=node_id,
                    parent_id=parent_id,
                    title=title,
                    position=max(0, position - 1),
                )
            )
            created = True
        if created:
            ses.commit()


def _ensure_schema() -> None:
    global _schema_ready
    if _schema_ready:
        return
    with _schema_lock:
        if _schema_ready:
            return
        SQLModel.metadata.create_all(engine)
        _seed_system_roots()
        _schema_ready = True


def _reset_sqlite_file() -> None:
    if not S.DATABASE_URL.startswith("sqlite:///"):
        return
    path = S.DATABASE_URL.replace("sqlite:///", "", 1)
    if not path:
        return
    try:
        engine.dispose()
    except Exception:
        logger.debug("Failed to dispose engine before reset", exc_info=True)
    if os.path.exists(path):
        try:
            os.remove(path)
        except FileNotFoundError:
            return
        except OSError as exc:
            logger.warning("Could not delete SQLite file %s: %s", path, exc)


def init_db() -> None:
    global _schema_ready
    with _schema_lock:
        if S.INIT_RUN:
            logger.info("INIT_RUN active, resetting database")
            SQLModel.metadata.drop_all(engine)
            _schema_ready = False
            if S.DATABASE_URL.startswith("sqlite:///"):
                _reset_sqlite_file()
        SQLModel.metadata.create_all(engine)
        _seed_system_roots()
        _schema_ready = True


@contextmanager
def get_session() -> Iterator[Session]:
    _ensure_schema()
    with Session(engine) as session:
        yield session


def _set_config_value(key: str, value: str) -> None:
    with get_session() as ses:
        entry = ses.exec(select(AppConfig).where(AppConfig.key == key)).first()
        if not entry:
            entry = AppConfig(key=key, value=value)
        else:
            entry.value = value
        ses.add(entry)
        ses.commit()


def _get_config_value(key: str) -> Optional[str]:
    with get_session() as ses:
        entry = ses.exec(select(AppConfig).where(AppConfig.key == key)).first()
        return entry.value if entry else None


def _delete_config_value(key: str) -> None:
    with get_session() as ses:
        entry = ses.exec(select(AppConfig).where(AppConfig.key == key)).first()
        if entry:
            ses.delete(entry)
            ses.commit()


def _stripped(value: Optional[str]) -> Optional[str]:
    if not isinstance(value, str):
        return None
    normalized = value.strip()
    return normalized or None


def set_provider_preference(provider: str | None) -> None:
    normalized = str(provider or "").strip().lower()
    if not normalized or normalized == "auto":
        _delete_config_value("AI_PROVIDER")
        return
    _set_config_value("AI_PROVIDER", normalized)


def get_provider_preference() -> Optional[str]:
    return _stripped(_get_config_value("AI_PROVIDER"))


def set_selected_openrouter_model(model: str) -> None:
    normalized = str(model or "").strip()
    if not normalized:
        raise ValueError("selected model must not be empty")
    _set_config_value("OPENROUTER_MODEL", normalized)


def get_selected_openrouter_model() -> Optional[str]:
    return _stripped(_get_config_value("OPENROUTER_MODEL"))


def clear_selected_openrouter_model() -> None:
    _delete_config_value("OPENROUTER_MODEL")


def set_api_key(api_key: str) -> None:
    normalized = str(api_key or "").strip()
    if not normalized:
        raise ValueError("API key must not be empty")
    _set_config_value("API_KEY", normalized)


def get_api_key() -> Optional[str]:
    return _stripped(_get_config_value("API_KEY"))


def clear_api_key() -> None:
    _delete_config_value("API_KEY")
