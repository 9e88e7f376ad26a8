"""
Gateway di persistenza: contratto a righe (select / insert) su due tabelle
logiche, `patients` e `sessions`, con filtri, ordinamento e join
sessions -> patients.

Due implementazioni:
- RestGateway : backend hosted stile PostgREST (Supabase), via requests
- SqlGateway  : DB relazionale locale via SQLAlchemy (sviluppo, demo, test)
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time
from functools import lru_cache
from typing import Any, Mapping, Protocol

import requests
from sqlalchemy import Date, DateTime, String, Text, Time, func, select
from sqlalchemy.exc import SQLAlchemyError

from .config import get_settings
from .db import Base, db_session, make_engine, make_session_factory
from .errors import PersistenceError
from .models import PatientRow, SessionRow

logger = logging.getLogger(__name__)

OPERATORS = ("eq", "neq", "gt", "gte", "lt", "lte")


# =========================
# Query
# =========================
@dataclass(frozen=True)
class Filter:
    column: str
    op: str
    value: Any


@dataclass(frozen=True)
class Embed:
    alias: str
    table: str
    foreign_key: str


@dataclass(frozen=True)
class Select:
    table: str
    filters: tuple[Filter, ...] = ()
    order: tuple[tuple[str, bool], ...] = ()
    embeds: tuple[Embed, ...] = ()

    def where(self, column: str, op: str, value: Any) -> "Select":
        if op not in OPERATORS:
            raise ValueError(f"Unsupported filter operator: {op}")
        return replace(self, filters=self.filters + (Filter(column, op, value),))

    def order_by(self, column: str, ascending: bool = True) -> "Select":
        return replace(self, order=self.order + ((column, ascending),))

    def embed(self, alias: str, table: str, foreign_key: str) -> "Select":
        return replace(self, embeds=self.embeds + (Embed(alias, table, foreign_key),))


class Gateway(Protocol):
    def fetch(self, query: Select) -> list[dict[str, Any]]: ...

    def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]: ...


def _wire(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (date, time, datetime)):
        return value.isoformat()
    return value


# =========================
# Backend hosted (PostgREST)
# =========================
class RestGateway:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = session or requests.Session()
        self._http.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            }
        )

    def _url(self, table: str) -> str:
        return f"{self.base_url}/rest/v1/{table}"

    def fetch(self, query: Select) -> list[dict[str, Any]]:
        columns = ["*"] + [f"{e.alias}:{e.table}(*)" for e in query.embeds]
        params: list[tuple[str, str]] = [("select", ",".join(columns))]
        for f in query.filters:
            params.append((f.column, f"{f.op}.{_wire(f.value)}"))
        if query.order:
            params.append(
                ("order", ",".join(f"{col}.{'asc' if asc else 'desc'}" for col, asc in query.order))
            )

        r = self._request("GET", self._url(query.table), params=params)
        return list(r.json() or [])

    def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        payload = {k: _wire(v) for k, v in row.items()}
        r = self._request(
            "POST",
            self._url(table),
            json=payload,
            headers={"Content-Type": "application/json", "Prefer": "return=representation"},
        )
        data = r.json()
        if isinstance(data, list):
            if not data:
                raise PersistenceError(f"Insert into {table} returned no row.")
            return data[0]
        return data

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            r = self._http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise PersistenceError(str(e)) from e

        if r.status_code >= 400:
            detail = _error_detail(r)
            logger.error("%s %s -> %s: %s", method, url, r.status_code, detail)
            raise PersistenceError(detail)
        return r


def _error_detail(r: requests.Response) -> str:
    try:
        body = r.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error") or body.get("hint")
        if message:
            return str(message)
    return f"HTTP {r.status_code}"


# =========================
# DB locale (SQLAlchemy)
# =========================
TABLES: dict[str, type[Base]] = {
    PatientRow.__tablename__: PatientRow,
    SessionRow.__tablename__: SessionRow,
}


class SqlGateway:
    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = make_engine(database_url, echo=echo)
        self._sessions = make_session_factory(self.engine)
        Base.metadata.create_all(bind=self.engine)

    def fetch(self, query: Select) -> list[dict[str, Any]]:
        model = self._model(query.table)
        q = select(model)
        for f in query.filters:
            column = self._column(model, f.column)
            q = q.where(_compare(column, f.op, _coerce(column, _wire(f.value))))
        for col, asc in query.order:
            column = self._column(model, col)
            # collation binaria di SQLite: maiuscole prima delle minuscole
            if isinstance(column.type, (String, Text)):
                column = func.lower(column)
            q = q.order_by(column.asc() if asc else column.desc())

        try:
            with db_session(self._sessions) as s:
                rows = [_row_to_dict(obj) for obj in s.scalars(q)]
                for embed in query.embeds:
                    self._attach(s, rows, embed)
                return rows
        except SQLAlchemyError as e:
            logger.error("select on %s failed: %s", query.table, e)
            raise PersistenceError(str(e)) from e

    def insert(self, table: str, row: Mapping[str, Any]) -> dict[str, Any]:
        model = self._model(table)
        values = {key: _coerce(self._column(model, key), _wire(value)) for key, value in row.items()}

        try:
            with db_session(self._sessions) as s:
                obj = model(**values)
                s.add(obj)
                s.flush()
                s.refresh(obj)
                return _row_to_dict(obj)
        except SQLAlchemyError as e:
            logger.error("insert into %s failed: %s", table, e)
            raise PersistenceError(str(e)) from e

    def _attach(self, s, rows: list[dict[str, Any]], embed: Embed) -> None:
        """Join 'a mano': carica le righe collegate e le annida sotto embed.alias."""
        related = self._model(embed.table)
        keys = {r[embed.foreign_key] for r in rows if r.get(embed.foreign_key) is not None}
        by_id: dict[Any, dict[str, Any]] = {}
        if keys:
            by_id = {obj.id: _row_to_dict(obj) for obj in s.scalars(select(related).where(related.id.in_(keys)))}
        for r in rows:
            r[embed.alias] = by_id.get(r.get(embed.foreign_key))

    @staticmethod
    def _model(table: str) -> type[Base]:
        try:
            return TABLES[table]
        except KeyError:
            raise PersistenceError(f"Unknown table: {table}") from None

    @staticmethod
    def _column(model: type[Base], name: str):
        column = model.__table__.columns.get(name)
        if column is None:
            raise PersistenceError(f"Unknown column: {model.__tablename__}.{name}")
        return getattr(model, name)


def _compare(column, op: str, value: Any):
    if op == "eq":
        return column == value
    if op == "neq":
        return column != value
    if op == "gt":
        return column > value
    if op == "gte":
        return column >= value
    if op == "lt":
        return column < value
    if op == "lte":
        return column <= value
    raise ValueError(f"Unsupported filter operator: {op}")


def _coerce(column, value: Any) -> Any:
    """Le righe viaggiano come JSON: converte le stringhe ISO nei tipi della colonna."""
    if not isinstance(value, str):
        return value
    col_type = column.type
    if isinstance(col_type, DateTime):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(col_type, Date):
        return date.fromisoformat(value)
    if isinstance(col_type, Time):
        return time.fromisoformat(value)
    return value


def _row_to_dict(obj: Base) -> dict[str, Any]:
    return {c.name: _wire(getattr(obj, c.key)) for c in obj.__table__.columns}


# =========================
# Handle di processo
# =========================
@lru_cache(maxsize=1)
def get_gateway() -> Gateway:
    """
    Gateway unico per processo, costruito alla prima richiesta.
    Va passato ai repository, non importato come globale.
    """
    settings = get_settings()
    if settings.uses_hosted_backend:
        logger.info("Using hosted backend at %s", settings.supabase_url)
        return RestGateway(settings.supabase_url, settings.supabase_key, timeout=settings.http_timeout)

    logger.info("Using local database %s", settings.database_url)
    return SqlGateway(settings.database_url)


def reset_gateway() -> None:
    get_gateway.cache_clear()
