"""
Logging and Sentry setup shared by the API and the judging worker.

Submitted source code and test data are never sent to Sentry: request
bodies and task arguments that carry them are replaced before an event
leaves the process.
"""

import logging
from typing import Any, Optional

import sentry_sdk

from common.config import Settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Per-request or per-test-case chatter
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")

# Payload keys holding user code or hidden test data
SCRUBBED_KEYS = frozenset({"code", "stdin", "input", "expected_output"})

SCRUBBED = "[scrubbed]"


def scrub_event(event: dict, hint: Optional[dict] = None) -> dict:
    """Sentry ``before_send`` hook removing code and test data."""
    request = event.get("request")
    if isinstance(request, dict) and isinstance(request.get("data"), dict):
        request["data"] = _scrub(request["data"])

    for frame_vars in _frame_vars(event):
        for key in list(frame_vars):
            if key in SCRUBBED_KEYS:
                frame_vars[key] = SCRUBBED

    return event


def _scrub(data: dict) -> dict:
    return {
        key: SCRUBBED if key in SCRUBBED_KEYS else value
        for key, value in data.items()
    }


def _frame_vars(event: dict):
    for exception in (event.get("exception") or {}).get("values") or []:
        for frame in (exception.get("stacktrace") or {}).get("frames") or []:
            if isinstance(frame.get("vars"), dict):
                yield frame["vars"]


def _init_sentry(
    settings: Settings,
    service_name: str,
    integrations: list[Any]
) -> None:
    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        profiles_sample_rate=settings.sentry_profiles_sample_rate,
        integrations=integrations,
        server_name=service_name,
        attach_stacktrace=True,
        send_default_pii=False,
        before_send=scrub_event,
    )
    logging.getLogger(__name__).info(
        f"Sentry enabled for {service_name} "
        f"({settings.sentry_environment})"
    )


def setup_logging(settings: Settings, service_name: str = "arena") -> None:
    """
    Configure root logging for a service.

    Args:
        settings: Application settings, ``debug`` selects DEBUG level
        service_name: Service name used in the startup log line
    """
    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if not settings.sentry_dsn:
        logging.getLogger(__name__).info(
            f"Sentry disabled for {service_name} (no DSN provided)"
        )


def setup_api_logging(settings: Settings) -> None:
    """Logging for the FastAPI service."""
    setup_logging(settings, service_name="arena-api")

    if settings.sentry_dsn:
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.starlette import StarletteIntegration

        _init_sentry(settings, "arena-api", [
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ])


def setup_worker_logging(settings: Settings) -> None:
    """Logging for the Celery judging worker."""
    setup_logging(settings, service_name="arena-worker")

    if settings.sentry_dsn:
        from sentry_sdk.integrations.celery import CeleryIntegration

        _init_sentry(settings, "arena-worker", [
            CeleryIntegration(propagate_traces=True),
        ])
