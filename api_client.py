"""
Thin typed client for the booking REST API.

``ApiClient`` is the shared request layer: it attaches the bearer token,
decodes JSON and turns every non-2xx response into an
``ApiError`` carrying the HTTP status and the response body.  There is no
retry or backoff; a failed request surfaces immediately to the calling view.

The resource classes below (``AgreementsApi``, ``BusesApi`` ...) map one
method to one endpoint and return the records defined in ``schemas``.
"""

import json
from datetime import date
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import ValidationError

from dates import format_iso
from schemas import (AccountsSummaryItem, Agreement, AgreementAccounts,
                     AuthSession, Bus, BusAssignmentConflict, PublicBus,
                     Schedule, SystemSetting)


class ApiError(Exception):
    """A request to the booking API failed."""

    def __init__(self, status: int, message: str, body: Any = None, text: str = ''):
        super().__init__(message)
        self.status = status
        self.message = message
        self.body = body
        self.text = text

    def __str__(self) -> str:
        return f"API Error: {self.status} - {self.message}"

    @property
    def is_unauthorized(self) -> bool:
        return self.status == 401


class BusAssignmentConflictError(ApiError):
    """The bus is already assigned to an overlapping agreement (HTTP 409)."""

    def __init__(self, status: int, message: str, body: Any = None, text: str = ''):
        super().__init__(status, message, body, text)
        try:
            self.conflict = BusAssignmentConflict.model_validate(body if isinstance(body, dict) else {})
        except ValidationError:
            self.conflict = BusAssignmentConflict(message=message)


def read_error_response(response: httpx.Response) -> ApiError:
    """
    Build an ``ApiError`` from a failed response.

    The API answers with a bare string, a JSON object with a ``message``
    field, or arbitrary text.  The most specific human readable message is
    used; the decoded body (if any) and the raw text are kept on the error.
    """
    text = response.text or ''
    status = response.status_code
    if not text:
        return ApiError(status, f"Request failed ({status})")
    try:
        body = json.loads(text)
    except ValueError:
        return ApiError(status, text, text=text)
    if isinstance(body, str):
        return ApiError(status, body, body, text)
    if isinstance(body, dict) and isinstance(body.get('message'), str):
        return ApiError(status, body['message'], body, text)
    return ApiError(status, text, body, text)


def _path(*segments: str) -> str:
    return '/'.join(quote(str(s), safe='') for s in segments)


class ApiClient:
    """Shared request layer bound to one base URL and (optionally) one user."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 30.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip('/')
        self.token = token
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def close(self) -> None:
        self._client.close()

    def _headers(self) -> Dict[str, str]:
        headers = {'Content-Type': 'application/json', 'Accept': 'application/json'}
        if self.token:
            headers['Authorization'] = f"Bearer {self.token}"
        return headers

    def request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None,
                json_body: Any = None) -> Any:
        """Send one request and return the decoded JSON body (None when empty)."""
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        logger.debug("{} {}{} (authenticated={})", method, self.base_url, path, bool(self.token))
        try:
            response = self._client.request(
                method, path, params=params or None, headers=self._headers(),
                content=json.dumps(json_body) if json_body is not None else None,
            )
        except httpx.HTTPError as exc:
            logger.warning("{} {} failed: {}", method, path, exc)
            raise ApiError(0, f"Could not reach the booking service ({exc.__class__.__name__})") from exc

        if not response.is_success:
            error = read_error_response(response)
            logger.warning("{} {} -> {} {}", method, path, error.status, error.message)
            raise error
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("{} {} -> {} with a body that is not JSON", method, path, response.status_code)
            raise ApiError(response.status_code, "Unexpected response from the booking service",
                           text=response.text) from exc

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self.request('GET', path, params=params)

    def post(self, path: str, json_body: Any = None) -> Any:
        return self.request('POST', path, json_body=json_body)

    def put(self, path: str, json_body: Any = None) -> Any:
        return self.request('PUT', path, json_body=json_body)

    def delete(self, path: str) -> Any:
        return self.request('DELETE', path)


# ---------------------------------------------------------------------------
# Resource APIs

class _Resource:
    def __init__(self, client: ApiClient):
        self.client = client

    def _parse(self, model, data):
        """Validate a decoded body; a payload of the wrong shape is reported as an ApiError."""
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.warning("{} payload rejected: {}", model.__name__, exc)
            raise ApiError(502, f"Unexpected {model.__name__} payload from the booking service") from exc

    def _parse_list(self, model, data) -> list:
        if not isinstance(data, list):
            raise ApiError(502, f"Expected a list of {model.__name__} records from the booking service")
        return [self._parse(model, item) for item in data]


class AuthApi(_Resource):
    def login(self, username: str, password: str) -> AuthSession:
        data = self.client.post('/api/auth/login', {'username': username, 'password': password})
        return self._parse(AuthSession, data)

    def register(self, username: str, password: str, company_name: str,
                 company_address: str = '', company_phone: str = '',
                 email: Optional[str] = None) -> AuthSession:
        payload = {
            'username': username,
            'password': password,
            'companyName': company_name,
            'companyAddress': company_address,
            'companyPhone': company_phone,
        }
        if email:
            payload['email'] = email
        return self._parse(AuthSession, self.client.post('/api/auth/register', payload))

    def update_profile(self, company_name: str, company_address: str,
                       company_phone: str, email: Optional[str] = None) -> AuthSession:
        payload = {
            'companyName': company_name,
            'companyAddress': company_address,
            'companyPhone': company_phone,
        }
        if email:
            payload['email'] = email
        return self._parse(AuthSession, self.client.put('/api/auth/profile', payload))


class AgreementsApi(_Resource):
    def list(self, include_cancelled: bool = False) -> List[Agreement]:
        params = {'includeCancelled': 'true'} if include_cancelled else None
        data = self.client.get('/api/agreements', params=params) or []
        return self._parse_list(Agreement, data)

    def get(self, agreement_id: str) -> Agreement:
        return self._parse(Agreement, self.client.get('/api/agreements/' + _path(agreement_id)))

    def create(self, payload: Dict[str, Any]) -> Agreement:
        return self._parse(Agreement, self.client.post('/api/agreements', payload))

    def update(self, agreement_id: str, payload: Dict[str, Any]) -> Agreement:
        data = self.client.put('/api/agreements/' + _path(agreement_id), payload)
        return self._parse(Agreement, data)

    def cancel(self, agreement_id: str) -> None:
        # The API soft-cancels; the agreement stays listed with includeCancelled
        self.client.delete('/api/agreements/' + _path(agreement_id))

    def add_advance(self, agreement_id: str, amount: str, note: str = '') -> Agreement:
        data = self.client.post('/api/agreements/' + _path(agreement_id, 'advance'),
                                {'amount': amount, 'note': note})
        return self._parse(Agreement, data)

    def assign_bus(self, agreement_id: str, bus_id: str) -> Agreement:
        try:
            data = self.client.post('/api/agreements/' + _path(agreement_id, 'assign-bus'),
                                    {'busId': bus_id})
        except ApiError as exc:
            if exc.status == 409:
                raise BusAssignmentConflictError(exc.status, exc.message, exc.body, exc.text) from exc
            raise
        return self._parse(Agreement, data)

    def unassign_bus(self, agreement_id: str, bus_id: str) -> Agreement:
        data = self.client.post('/api/agreements/' + _path(agreement_id, 'unassign-bus'),
                                {'busId': bus_id})
        return self._parse(Agreement, data)


class BusesApi(_Resource):
    def list(self, include_inactive: bool = False) -> List[Bus]:
        params = {'includeInactive': 'true'} if include_inactive else None
        return self._parse_list(Bus, self.client.get('/api/buses', params=params) or [])

    def create(self, vehicle_number: str, name: Optional[str] = None, **details) -> Bus:
        payload = {'vehicleNumber': vehicle_number}
        if name:
            payload['name'] = name
        payload.update(_bus_details(details))
        return self._parse(Bus, self.client.post('/api/buses', payload))

    def update(self, bus_id: str, **details) -> Bus:
        data = self.client.put('/api/buses/' + _path(bus_id), _bus_details(details))
        return self._parse(Bus, data)

    def delete(self, bus_id: str) -> Optional[Bus]:
        data = self.client.delete('/api/buses/' + _path(bus_id))
        return self._parse(Bus, data) if data else None


_BUS_FIELDS = {
    'vehicle_number': 'vehicleNumber',
    'name': 'name',
    'bus_type': 'busType',
    'capacity': 'capacity',
    'base_rate': 'baseRate',
    'home_city': 'homeCity',
}


def _bus_details(details: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(details) - set(_BUS_FIELDS)
    if unknown:
        raise TypeError(f"Unknown bus fields: {', '.join(sorted(unknown))}")
    return {_BUS_FIELDS[k]: v for k, v in details.items() if v is not None}


class ScheduleApi(_Resource):
    def get(self, from_date: date, to_date: date) -> Schedule:
        """Fetch buses and overlapping agreements for [from_date, to_date]."""
        data = self.client.get('/api/schedule', params={'from': format_iso(from_date),
                                                        'to': format_iso(to_date)})
        return self._parse(Schedule, data or {})


class AccountsApi(_Resource):
    def summary(self, from_date: Optional[date] = None, to_date: Optional[date] = None,
                include_cancelled: bool = False) -> List[AccountsSummaryItem]:
        params = {
            'from': format_iso(from_date) or None,
            'to': format_iso(to_date) or None,
            'includeCancelled': 'true' if include_cancelled else None,
        }
        data = self.client.get('/api/accounts', params=params) or []
        return self._parse_list(AccountsSummaryItem, data)

    def get(self, agreement_id: str) -> AgreementAccounts:
        data = self.client.get('/api/agreements/' + _path(agreement_id, 'accounts'))
        return self._parse(AgreementAccounts, data)

    def upsert(self, agreement_id: str, payload: Dict[str, Any]) -> AgreementAccounts:
        data = self.client.put('/api/agreements/' + _path(agreement_id, 'accounts'), payload)
        return self._parse(AgreementAccounts, data)


class SettingsApi(_Resource):
    def list(self) -> List[SystemSetting]:
        return self._parse_list(SystemSetting, self.client.get('/api/settings') or [])

    def update(self, key: str, value: str, group: str = 'General') -> None:
        self.client.post('/api/settings', {'key': key, 'value': value, 'group': group})


class PublicApi(_Resource):
    """Endpoints open to customers without an operator account."""

    def search(self, from_date: date, to_date: date, city: Optional[str] = None,
               bus_type: Optional[str] = None) -> List[PublicBus]:
        params = {
            'fromDate': format_iso(from_date),
            'toDate': format_iso(to_date),
            'city': city or None,
            'type': bus_type or None,
        }
        data = self.client.get('/api/public/search', params=params) or []
        return self._parse_list(PublicBus, data)

    def bus(self, bus_id: str) -> PublicBus:
        return self._parse(PublicBus, self.client.get('/api/public/bus/' + _path(bus_id)))

    def agreement(self, agreement_id: str) -> Agreement:
        return self._parse(Agreement, self.client.get('/api/public/agreement/' + _path(agreement_id)))

    def book(self, payload: Dict[str, Any]) -> Any:
        return self.client.post('/api/public/book', payload)
