"""Client implementation for the Databox push service."""

import json
import logging
from typing import Any, Dict, List, Optional, Union

import httpx
import pandas as pd

from .errors import (
    APIError,
    DecodeError,
    EmptyResultError,
    RequestBuildError,
    TransportError,
)
from .types import KPI, Envelope, LastPush, ResponseStatus, serialize_kpis

logger = logging.getLogger(__name__)

API_URL = "https://push.databox.com"
CLIENT_VERSION = "2.1.0"
DEFAULT_TIMEOUT = 30.0
MAX_CONNECTIONS = 100

Timeout = Optional[float]


def _as_kpi(kpi: Union[KPI, Dict[str, Any]]) -> KPI:
    return kpi if isinstance(kpi, KPI) else KPI.from_dict(kpi)


def pushes_to_frame(pushes: List[LastPush]) -> pd.DataFrame:
    """One row per push, newest first as returned by the service."""
    if not pushes:
        return pd.DataFrame()
    return pd.DataFrame([push.to_row() for push in pushes])


class _BaseClient:
    """Header, encoding and decoding logic shared by the sync and async clients."""

    user_agent = f"databox-python/{CLIENT_VERSION}"
    accept = f"application/vnd.databox.v{CLIENT_VERSION.split('.')[0]}+json"

    def __init__(self, push_token: str, push_host: str = API_URL):
        self.push_token = push_token
        self.push_host = push_host.rstrip('/')
        self._owns_http_client = False

    @staticmethod
    def _pool_limits() -> httpx.Limits:
        # Every request goes to the same host, so let it keep the whole pool idle.
        return httpx.Limits(
            max_connections=MAX_CONNECTIONS,
            max_keepalive_connections=MAX_CONNECTIONS,
        )

    @staticmethod
    def _default_timeout(timeout: Timeout) -> httpx.Timeout:
        return httpx.Timeout(DEFAULT_TIMEOUT if timeout is None else timeout)

    def _headers(self) -> Dict[str, str]:
        return {
            'User-Agent': self.user_agent,
            'Accept': self.accept,
            'Content-Type': 'application/json',
        }

    @property
    def _auth(self) -> httpx.BasicAuth:
        return httpx.BasicAuth(self.push_token, "")

    def _url(self, path: str) -> str:
        return self.push_host + path

    @staticmethod
    def _timeout(timeout: Timeout):
        return httpx.USE_CLIENT_DEFAULT if timeout is None else timeout

    @staticmethod
    def _encode(envelope: Envelope) -> bytes:
        try:
            return json.dumps(envelope.to_json_data(), allow_nan=False).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise RequestBuildError(f"preparing request: {e}") from e

    @staticmethod
    def _transport_error(method: str, path: str, exc: httpx.HTTPError) -> TransportError:
        if isinstance(exc, httpx.TimeoutException):
            logger.warning("%s %s cancelled: %s", method, path, exc)
            return TransportError(f"{method} {path}: request cancelled: {exc}", cancelled=True)
        logger.warning("%s %s failed: %s", method, path, exc)
        return TransportError(f"{method} {path}: executing HTTP request: {exc}")

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(
                f"can't unmarshal response[{response.text}]: {e}",
                body=response.text,
                status_code=response.status_code,
            ) from e

    def _check_status(self, response: httpx.Response) -> None:
        """Raise APIError for non-2xx responses carrying {type, message}."""
        if response.is_success:
            return
        data = self._json(response)
        if not isinstance(data, dict):
            raise DecodeError(
                f"unexpected error body[{response.text}]",
                body=response.text,
                status_code=response.status_code,
            )
        error = APIError(
            str(data.get('type') or ''),
            str(data.get('message') or ''),
            status_code=response.status_code,
        )
        logger.warning("Databox API error (HTTP %s): %s", response.status_code, error)
        raise error

    def _decode_status(self, response: httpx.Response) -> ResponseStatus:
        self._check_status(response)
        data = self._json(response)
        if not isinstance(data, dict):
            raise DecodeError(
                f"expected an object, got [{response.text}]",
                body=response.text,
                status_code=response.status_code,
            )
        return ResponseStatus.from_json_data(data)

    def _decode_last_pushes(self, response: httpx.Response) -> List[LastPush]:
        self._check_status(response)
        data = self._json(response)
        if data is None:
            return []
        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise DecodeError(
                f"expected a list of pushes, got [{response.text}]",
                body=response.text,
                status_code=response.status_code,
            )
        try:
            return [LastPush.from_json_data(item) for item in data]
        except (AttributeError, TypeError, ValueError) as e:
            raise DecodeError(
                f"unexpected push entry in [{response.text}]: {e}",
                body=response.text,
                status_code=response.status_code,
            ) from e


class Client(_BaseClient):
    """Client for the Databox push API.

    Safe to share between threads; the only shared state is the httpx
    connection pool.
    """

    def __init__(self,
                 push_token: str,
                 push_host: str = API_URL,
                 http_client: Optional[httpx.Client] = None,
                 timeout: Timeout = None):
        """
        Args:
            push_token: Databox push token, sent as the basic auth user name.
            push_host: Origin to talk to, overridable for testing.
            http_client: Preconfigured httpx client. It is not closed by close().
            timeout: Default request timeout in seconds for the built-in client.
        """
        super().__init__(push_token, push_host)
        if http_client is None:
            http_client = httpx.Client(
                limits=self._pool_limits(),
                timeout=self._default_timeout(timeout),
            )
            self._owns_http_client = True
        self.http_client = http_client

    def close(self):
        """Release the connection pool if this client created it."""
        if self._owns_http_client:
            self.http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _request(self, method: str, path: str, timeout: Timeout,
                 payload: Optional[bytes] = None,
                 params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        logger.debug("%s %s%s", method, self.push_host, path)
        try:
            response = self.http_client.request(
                method,
                self._url(path),
                content=payload,
                params=params,
                headers=self._headers(),
                auth=self._auth,
                timeout=self._timeout(timeout),
            )
        except httpx.InvalidURL as e:
            raise RequestBuildError(f"creating request object: {e}") from e
        except httpx.HTTPError as e:
            raise self._transport_error(method, path, e) from e
        logger.debug("%s %s -> HTTP %s", method, path, response.status_code)
        return response

    def push(self, kpi: Union[KPI, Dict[str, Any]], timeout: Timeout = None) -> ResponseStatus:
        """Push a single KPI."""
        return self.insert_all([kpi], force_push=False, timeout=timeout)

    def insert_all(self,
                   kpis: List[Union[KPI, Dict[str, Any]]],
                   force_push: bool = False,
                   timeout: Timeout = None) -> ResponseStatus:
        """Push any number of KPIs in one request.

        An empty list is still sent, as ``{"data": []}``.
        """
        records = [_as_kpi(k) for k in kpis]
        payload = self._encode(serialize_kpis(records, force_push))
        logger.debug("Pushing %d KPIs (force_push=%s)", len(records), force_push)
        response = self._request('POST', '/', timeout, payload=payload)
        return self._decode_status(response)

    def last_pushes(self, n: int = 1, timeout: Timeout = None) -> List[LastPush]:
        """Return up to ``n`` most recent pushes, newest first."""
        response = self._request('GET', '/lastpushes', timeout, params={'limit': n})
        return self._decode_last_pushes(response)

    def last_push(self, timeout: Timeout = None) -> LastPush:
        """Return the latest push."""
        pushes = self.last_pushes(1, timeout=timeout)
        if not pushes:
            raise EmptyResultError("no last push")
        return pushes[0]

    def last_pushes_frame(self, n: int = 1, timeout: Timeout = None) -> pd.DataFrame:
        """Recent pushes as a DataFrame."""
        return pushes_to_frame(self.last_pushes(n, timeout=timeout))


class AsyncClient(_BaseClient):
    """asyncio flavour of :class:`Client`.

    Cancelling the awaiting task aborts the in-flight request.
    """

    def __init__(self,
                 push_token: str,
                 push_host: str = API_URL,
                 http_client: Optional[httpx.AsyncClient] = None,
                 timeout: Timeout = None):
        super().__init__(push_token, push_host)
        if http_client is None:
            http_client = httpx.AsyncClient(
                limits=self._pool_limits(),
                timeout=self._default_timeout(timeout),
            )
            self._owns_http_client = True
        self.http_client = http_client

    async def aclose(self):
        if self._owns_http_client:
            await self.http_client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def _request(self, method: str, path: str, timeout: Timeout,
                       payload: Optional[bytes] = None,
                       params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        logger.debug("%s %s%s", method, self.push_host, path)
        try:
            response = await self.http_client.request(
                method,
                self._url(path),
                content=payload,
                params=params,
                headers=self._headers(),
                auth=self._auth,
                timeout=self._timeout(timeout),
            )
        except httpx.InvalidURL as e:
            raise RequestBuildError(f"creating request object: {e}") from e
        except httpx.HTTPError as e:
            raise self._transport_error(method, path, e) from e
        logger.debug("%s %s -> HTTP %s", method, path, response.status_code)
        return response

    async def push(self, kpi: Union[KPI, Dict[str, Any]], timeout: Timeout = None) -> ResponseStatus:
        return await self.insert_all([kpi], force_push=False, timeout=timeout)

    async def insert_all(self,
                         kpis: List[Union[KPI, Dict[str, Any]]],
                         force_push: bool = False,
                         timeout: Timeout = None) -> ResponseStatus:
        records = [_as_kpi(k) for k in kpis]
        payload = self._encode(serialize_kpis(records, force_push))
        logger.debug("Pushing %d KPIs (force_push=%s)", len(records), force_push)
        response = await self._request('POST', '/', timeout, payload=payload)
        return self._decode_status(response)

    async def last_pushes(self, n: int = 1, timeout: Timeout = None) -> List[LastPush]:
        response = await self._request('GET', '/lastpushes', timeout, params={'limit': n})
        return self._decode_last_pushes(response)

    async def last_push(self, timeout: Timeout = None) -> LastPush:
        pushes = await self.last_pushes(1, timeout=timeout)
        if not pushes:
            raise EmptyResultError("no last push")
        return pushes[0]

    async def last_pushes_frame(self, n: int = 1, timeout: Timeout = None) -> pd.DataFrame:
        return pushes_to_frame(await self.last_pushes(n, timeout=timeout))


def new_client(push_token: str, **kwargs) -> Client:
    """Return a Client for the Databox push service."""
    return Client(push_token, **kwargs)
