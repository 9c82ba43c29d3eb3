"""Type definitions for the Databox client."""

import datetime
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

JSONValue = Union[None, bool, int, float, str, List[Any], Dict[str, Any]]

# Stored by the service as "2006-01-02 00:00:00+00:00".
DATE_FORMAT = "%Y-%m-%d"
# Interpreted as UTC.
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
# Stored as sent.
DATETIME_TZ_FORMAT = "%Y-%m-%d %H:%M:%S%z"

METRIC_PREFIX = "$"


def format_date(value: datetime.date) -> str:
    """Render a date as YYYY-MM-DD."""
    return value.strftime(DATE_FORMAT)


def format_datetime(value: datetime.datetime) -> str:
    """Render a datetime without zone information, which the service reads as UTC."""
    if value.tzinfo is not None:
        value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return value.strftime(DATETIME_FORMAT)


def format_datetime_tz(value: datetime.datetime) -> str:
    """Render an aware datetime with a +HH:MM offset."""
    if value.tzinfo is None:
        raise ValueError("format_datetime_tz needs a timezone-aware datetime")
    rendered = value.strftime(DATETIME_TZ_FORMAT)
    # strftime gives +0200, the service expects +02:00
    return rendered[:-2] + ":" + rendered[-2:]


@dataclass
class KPI:
    """A data point pushed to Databox.

    ``key``/``value`` is the shortcut for a single metric, ``metrics`` carries
    any number of extra metrics that share the same date, unit and attributes.
    Attributes are written first so metric values win on key collisions.
    """
    key: str = ""
    value: float = 0.0
    metrics: Dict[str, float] = field(default_factory=dict)
    date: str = ""
    unit: str = ""
    attributes: Dict[str, JSONValue] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'KPI':
        """Create a KPI from a dictionary using the field names."""
        return cls(
            key=str(data.get('key') or ''),
            value=float(data.get('value') or 0.0),
            metrics={str(k): float(v) for k, v in (data.get('metrics') or {}).items()},
            date=str(data.get('date') or ''),
            unit=str(data.get('unit') or ''),
            attributes=dict(data.get('attributes') or {}),
        )

    def to_json_data(self) -> Dict[str, JSONValue]:
        """Serialize to the object the push endpoint expects."""
        payload: Dict[str, JSONValue] = {}

        for name, attr in self.attributes.items():
            payload[name] = attr

        for name, metric in self.metrics.items():
            payload[METRIC_PREFIX + name] = metric

        if self.key:
            payload[METRIC_PREFIX + self.key] = self.value

        if self.date:
            payload['date'] = self.date

        if self.unit:
            payload['unit'] = self.unit

        return payload

    @classmethod
    def from_json_data(cls, data: Dict[str, Any]) -> 'KPI':
        """Rebuild a KPI from its wire form.

        Every ``$``-prefixed entry comes back in ``metrics``; the ``key``/``value``
        shortcut is not recoverable.
        """
        kpi = cls()
        for name, item in data.items():
            if name.startswith(METRIC_PREFIX):
                kpi.metrics[name[len(METRIC_PREFIX):]] = item
            elif name == 'date':
                kpi.date = item
            elif name == 'unit':
                kpi.unit = item
            else:
                kpi.attributes[name] = item
        return kpi


@dataclass
class Envelope:
    """Top-level push body: serialized KPIs under ``data`` plus optional ``meta``."""
    data: List[Dict[str, JSONValue]] = field(default_factory=list)
    meta: Dict[str, JSONValue] = field(default_factory=dict)

    def to_json_data(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {'data': list(self.data)}
        if self.meta:
            body['meta'] = dict(self.meta)
        return body

    @classmethod
    def from_json_data(cls, data: Optional[Dict[str, Any]]) -> 'Envelope':
        data = data or {}
        return cls(
            data=list(data.get('data') or []),
            meta=dict(data.get('meta') or {}),
        )

    @property
    def kpis(self) -> List[KPI]:
        return [KPI.from_json_data(item) for item in self.data]


def serialize_kpis(kpis: List[KPI], force_push: bool = False) -> Envelope:
    """Wrap KPIs into an envelope.

    ``force_push`` sets ``meta.ensure_unique``. The flag is not documented by
    Databox; it is understood to stop the service from treating the batch as
    a duplicate of an earlier push.
    """
    envelope = Envelope(data=[kpi.to_json_data() for kpi in kpis])
    if force_push:
        envelope.meta['ensure_unique'] = True
    return envelope


@dataclass
class ResponseStatus:
    """Body of a push response."""
    id: str = ""
    type: str = ""
    message: str = ""

    @classmethod
    def from_json_data(cls, data: Optional[Dict[str, Any]]) -> 'ResponseStatus':
        data = data or {}
        return cls(
            id=str(data.get('id') or ''),
            type=str(data.get('type') or ''),
            message=str(data.get('message') or ''),
        )


@dataclass
class PushRequest:
    date: str = ""
    body: Envelope = field(default_factory=Envelope)
    errors: List[str] = field(default_factory=list)

    @classmethod
    def from_json_data(cls, data: Optional[Dict[str, Any]]) -> 'PushRequest':
        data = data or {}
        return cls(
            date=str(data.get('date') or ''),
            body=Envelope.from_json_data(data.get('body')),
            errors=[str(e) for e in data.get('errors') or []],
        )


@dataclass
class PushResponse:
    date: str = ""
    body: ResponseStatus = field(default_factory=ResponseStatus)

    @classmethod
    def from_json_data(cls, data: Optional[Dict[str, Any]]) -> 'PushResponse':
        data = data or {}
        return cls(
            date=str(data.get('date') or ''),
            body=ResponseStatus.from_json_data(data.get('body')),
        )


@dataclass
class LastPush:
    """One entry of the push history: what was sent and what came back."""
    request: PushRequest = field(default_factory=PushRequest)
    response: PushResponse = field(default_factory=PushResponse)
    metrics: List[str] = field(default_factory=list)

    @classmethod
    def from_json_data(cls, data: Dict[str, Any]) -> 'LastPush':
        return cls(
            request=PushRequest.from_json_data(data.get('request')),
            response=PushResponse.from_json_data(data.get('response')),
            metrics=[str(m) for m in data.get('metrics') or []],
        )

    @property
    def kpis(self) -> List[KPI]:
        return self.request.body.kpis

    def to_row(self) -> Dict[str, Any]:
        """Flatten for tabular display."""
        return {
            'request_date': self.request.date,
            'response_date': self.response.date,
            'status_id': self.response.body.id,
            'status_type': self.response.body.type,
            'status_message': self.response.body.message,
            'metrics': list(self.metrics),
            'errors': list(self.request.errors),
        }
