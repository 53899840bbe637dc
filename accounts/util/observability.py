"""Observability configuration using Logfire.

Services log through Logfire directly::

    import logfire

    logfire.info("Key generated", owner=user_id, kind="signing", kid=kid)

    with logfire.span("key_store.generate_key_pair", owner=user_id):
        ...

Never pass plaintext passwords, private key material or whole tokens as
attributes.
"""

import logfire
from sqlalchemy.ext.asyncio import AsyncEngine

from accounts.config import Settings
from accounts.util.error import ConfigurationError


def configure_logfire(settings: Settings) -> bool:
    """Configure Logfire for the process.

    Events go to the console unless a token is configured; an explicit
    ``send_to_logfire`` setting wins over token presence.

    Args:
        settings: Application settings

    Returns:
        Whether events are sent to Logfire cloud

    Raises:
        ConfigurationError: If sending is requested without a token
    """
    observability = settings.observability
    if observability.send_to_logfire is not None:
        send_to_logfire = observability.send_to_logfire
    else:
        send_to_logfire = bool(observability.logfire_token)

    if send_to_logfire and not observability.logfire_token:
        raise ConfigurationError(
            "OBSERVABILITY__SEND_TO_LOGFIRE is set but OBSERVABILITY__LOGFIRE_TOKEN is missing"
        )

    config_kwargs = {
        "service_name": "accounts",
        "service_version": "0.1.0",
        "environment": settings.environment,
        "send_to_logfire": send_to_logfire,
        "console": logfire.ConsoleOptions(
            colors="auto",
            span_style="show-parents",
            include_timestamps=True,
            verbose=settings.debug,
        ),
    }
    if observability.logfire_token:
        config_kwargs["token"] = observability.logfire_token

    logfire.configure(**config_kwargs)

    logfire.info(
        "Observability configured",
        environment=settings.environment,
        debug=settings.debug,
        send_to_logfire=send_to_logfire,
    )
    return send_to_logfire


def instrument_sqlalchemy(engine: AsyncEngine) -> None:
    """Trace SQL queries issued by the user store.

    Args:
        engine: SQLAlchemy async engine
    """
    logfire.instrument_sqlalchemy(
        engine=engine.sync_engine,
        enable_commenter=True,
    )
    logfire.info("SQLAlchemy instrumented")
