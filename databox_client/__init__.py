"""
Databox Python client library for pushing KPIs to the Databox push service.
"""

from .client import API_URL, CLIENT_VERSION, AsyncClient, Client, new_client
from .errors import (
    APIError,
    DataboxError,
    DecodeError,
    EmptyResultError,
    RequestBuildError,
    TransportError,
)
from .types import (
    DATE_FORMAT,
    DATETIME_FORMAT,
    DATETIME_TZ_FORMAT,
    KPI,
    Envelope,
    LastPush,
    PushRequest,
    PushResponse,
    ResponseStatus,
    format_date,
    format_datetime,
    format_datetime_tz,
    serialize_kpis,
)

__version__ = CLIENT_VERSION
__all__ = [
    "API_URL", "AsyncClient", "Client", "new_client",
    "APIError", "DataboxError", "DecodeError", "EmptyResultError",
    "RequestBuildError", "TransportError",
    "DATE_FORMAT", "DATETIME_FORMAT", "DATETIME_TZ_FORMAT",
    "KPI", "Envelope", "LastPush", "PushRequest", "PushResponse",
    "ResponseStatus", "format_date", "format_datetime", "format_datetime_tz",
    "serialize_kpis",
]
