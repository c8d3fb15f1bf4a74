"""Application factory wiring Flask extensions and the session service."""

from __future__ import annotations

import logging

from flask import Flask

from sessionauth.core.config import BaseConfig, get_config
from sessionauth.core.logger import configure_logging, init_app as init_logging

log = logging.getLogger(__name__)


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application.

    The composed :class:`~sessionauth.services.session.SessionService` is
    published as ``app.extensions["session_service"]`` for host blueprints.
    """

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    from sessionauth.core import extensions

    extensions.init_app(app)

    init_logging(app)

    from sessionauth.core import errors

    errors.init_app(app)

    app.extensions["session_service"] = build_session_service(app)

    return app


def build_session_service(app: Flask):
    """Compose the session service from ``app.config`` and initialized extensions."""

    from sessionauth.core import extensions
    from sessionauth.infra.jwt.jwt_token_codec import JWTTokenCodec
    from sessionauth.infra.redis.redis_token_store import RedisTokenStore
    from sessionauth.infra.sqlalchemy.user_directory import SQLAlchemyUserDirectory
    from sessionauth.infra.twilio.twilio_verify_gateway import (
        TwilioVerifyGateway,
        TwilioVerifySettings,
    )
    from sessionauth.services._shared.ports import InMemoryTokenStore, TokenSettings, TokenStore
    from sessionauth.services.session import SessionService

    settings = TokenSettings.from_mapping(app.config)

    store: TokenStore
    if extensions.redis_client is not None:
        store = RedisTokenStore(extensions.redis_client)
    else:
        if not app.testing:
            log.warning("REDIS_URL not set; tokens are kept in process memory only.")
        store = InMemoryTokenStore()

    verify_settings = TwilioVerifySettings.from_mapping(app.config)
    if not verify_settings.configured and not app.testing:
        log.warning("Verification provider credentials missing; OTP flows will fail.")

    return SessionService(
        users=SQLAlchemyUserDirectory(),
        codec=JWTTokenCodec(settings),
        store=store,
        gateway=TwilioVerifyGateway(verify_settings),
        settings=settings,
    )
