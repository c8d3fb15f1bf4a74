"""Flask extension singletons shared by the session layer."""

from __future__ import annotations

import logging

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

log = logging.getLogger(__name__)

# Constraint names stay stable across databases and migrations
metadata = MetaData(
    naming_convention={
        "ix": "ix_%(table_name)s_%(column_0_name)s",
        "uq": "uq_%(table_name)s_%(column_0_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
# Verification only: the token codec is the sole issuer
jwt = JWTManager()
redis_client: redis.Redis | None = None


def _connect_redis(url: str, timeout: float) -> redis.Redis:
    client = redis.Redis.from_url(url, socket_timeout=timeout, socket_connect_timeout=timeout)
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {url!r}") from exc
    return client


def init_app(app: Flask) -> None:
    """Bind SQLAlchemy, migrations, JWT verification and (optionally) Redis to ``app``.

    Importing :mod:`sessionauth.models` here registers the ``users`` table on
    the metadata before Alembic inspects it. Redis is only contacted when
    ``REDIS_URL`` is set; a failed ping aborts start-up.
    """
    db.init_app(app)

    from sessionauth import models as _models  # noqa: F401

    migrate.init_app(app, db)
    jwt.init_app(app)

    global redis_client
    url = app.config.get("REDIS_URL")
    if not url:
        redis_client = None
        app.extensions.pop("redis_client", None)
        return

    redis_client = _connect_redis(url, float(app.config.get("REDIS_SOCKET_TIMEOUT_SECONDS", 2.0)))
    app.extensions["redis_client"] = redis_client
    log.info("redis.connected")


@jwt.user_lookup_loader
def _load_current_user(_jwt_header: dict, jwt_data: dict):
    """Resolve ``flask_jwt_extended.current_user`` through the user directory."""
    service = current_app.extensions["session_service"]
    return service.users.get_user_by_id(jwt_data["sub"])
