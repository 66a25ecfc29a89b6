"""Process-scoped service handles shared by every request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from flask import current_app, g

from .auth.identity import RequestIdentity
from .ceremony.event_types import EventTypeCache
from .sync.service import ReactiveQueryService
from .sync.subscription import SubscriptionTracker

if TYPE_CHECKING:
    from flask import Flask

    from .functions.client import CloudFunctionsClient
    from .sync.backend import LiveBackend

EXTENSION_KEY = "awardpicks"


@dataclass
class Services:
    """Handles constructed once at startup."""

    backend: LiveBackend
    tracker: SubscriptionTracker
    event_types: EventTypeCache
    functions_base_url: str
    default_event: Optional[str] = None


def init_services(app: Flask, backend: LiveBackend) -> Services:
    """Build the service handles and attach them to ``app``."""
    tracker = SubscriptionTracker()
    services = Services(
        backend=backend,
        tracker=tracker,
        event_types=EventTypeCache(backend, tracker),
        functions_base_url=app.config["FUNCTIONS_BASE_URL"],
        default_event=app.config.get("AWARDPICKS_DEFAULT_EVENT"),
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_services() -> Services:
    """Return the handles of the current app."""
    return current_app.extensions[EXTENSION_KEY]


def query_service() -> ReactiveQueryService:
    """Return a query service scoped to the request's user."""
    services = get_services()
    return ReactiveQueryService(
        services.backend,
        RequestIdentity(),
        tracker=services.tracker,
        default_event=services.default_event,
    )


def functions_client() -> CloudFunctionsClient:
    """Return a Cloud Functions client authenticated as the request's user."""
    from .functions.client import CloudFunctionsClient

    if "functions_client" not in g:
        g.functions_client = CloudFunctionsClient(
            get_services().functions_base_url,
            id_token=lambda: g.get("id_token"),
            timeout=current_app.config["FUNCTIONS_TIMEOUT"],
        )
    return g.functions_client
