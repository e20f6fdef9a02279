"""
HTTP client for the parts-issue API, used by the poller and by scripts.

Transport failures raise :class:`NetworkError` (:class:`TransientError` for
timeouts and 5xx answers). 4xx answers are turned back into the workflow
exceptions from :mod:`backend.parts_issues.exceptions` using the ``code`` in
the response body. Mutations are never retried here.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from .exceptions import ERRORS_BY_CODE, PartsIssueError, PartsIssueValidationError, PermissionDeniedError

logger = logging.getLogger(__name__)


class NetworkError(Exception):
    """The API could not be reached"""
    pass


class TransientError(NetworkError):
    """Timeout or server-side failure; the same call may succeed later"""
    pass


class ApiError(PartsIssueError):
    """A 4xx answer that does not map to a workflow error"""
    code = 'api_error'

    def __init__(self, message=None, status_code=400, **details):
        super().__init__(message, **details)
        self.status_code = status_code


class PartsIssueClient:
    """Thin wrapper over ``/api/v1/parts-issues/`` with JWT authentication"""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})
        if token:
            self.set_token(token)

    def set_token(self, token: str) -> None:
        self.session.headers.update({'Authorization': f'Bearer {token}'})

    def authenticate(self, username: str, password: str) -> Dict[str, Any]:
        """Log in and keep the access token on the session"""
        data = self._request('POST', '/auth/login/', json={'username': username, 'password': password})
        self.set_token(data['access'])
        logger.info(f"Authenticated against {self.base_url} as {username}")
        return data

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise TransientError(f"{method} {path} timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"{method} {path} failed: {e}") from e

        if response.status_code >= 500:
            raise TransientError(f"{method} {path} returned {response.status_code}")
        if response.status_code >= 400:
            raise self._error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_from_response(response):
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {'error': str(body)}

        message = body.get('error') or body.get('detail') or f"HTTP {response.status_code}"
        error_class = ERRORS_BY_CODE.get(body.get('code'))
        if error_class:
            return error_class(message, **(body.get('details') or {}))
        if response.status_code == 403:
            return PermissionDeniedError(message)
        if response.status_code == 400:
            # Serializer errors: {field: [messages]}
            return PartsIssueValidationError(message if 'error' in body else str(body), fields=body)
        return ApiError(message, status_code=response.status_code)

    @staticmethod
    def _with_version(payload: Dict[str, Any], version: Optional[int]) -> Dict[str, Any]:
        if version is not None:
            payload['version'] = version
        return payload

    def list(self, **filters) -> Dict[str, Any]:
        return self._request('GET', '/parts-issues/', params=filters)

    def list_all(self, **filters) -> List[Dict[str, Any]]:
        """Every page of the list, following ``next``"""
        results = []
        page = 1
        while page:
            data = self.list(page=page, **filters)
            results.extend(data['results'])
            page = data.get('next')
        return results

    def get(self, issue_id: int) -> Dict[str, Any]:
        return self._request('GET', f'/parts-issues/{issue_id}/')

    def history(self, issue_id: int) -> List[Dict[str, Any]]:
        return self._request('GET', f'/parts-issues/{issue_id}/history/')

    def summary(self, **filters) -> Dict[str, int]:
        return self._request('GET', '/parts-issues/summary/', params=filters)

    def create(self, job_card: int, items: List[Dict[str, Any]], notes: str = '',
               purchase_order: Optional[int] = None) -> Dict[str, Any]:
        payload = {'job_card': job_card, 'items': items, 'notes': notes}
        if purchase_order is not None:
            payload['purchase_order'] = purchase_order
        return self._request('POST', '/parts-issues/', json=payload)

    def _action(self, issue_id: int, action: str, payload: Dict[str, Any], version: Optional[int]):
        return self._request('PATCH', f'/parts-issues/{issue_id}/{action}/', json=self._with_version(payload, version))

    def sc_approve(self, issue_id: int, version: Optional[int] = None) -> Dict[str, Any]:
        return self._action(issue_id, 'sc-approve', {}, version)

    def sc_reject(self, issue_id: int, reason: str, version: Optional[int] = None) -> Dict[str, Any]:
        return self._action(issue_id, 'sc-reject', {'reason': reason}, version)

    def admin_approve(self, issue_id: int, approved_quantities: Optional[Dict[int, int]] = None,
                      version: Optional[int] = None) -> Dict[str, Any]:
        quantities = {str(k): v for k, v in (approved_quantities or {}).items()}
        return self._action(issue_id, 'admin-approve', {'approved_quantities': quantities}, version)

    def admin_reject(self, issue_id: int, reason: str, version: Optional[int] = None) -> Dict[str, Any]:
        return self._action(issue_id, 'admin-reject', {'reason': reason}, version)

    def resend(self, issue_id: int, version: Optional[int] = None) -> Dict[str, Any]:
        return self._action(issue_id, 'resend', {}, version)

    def dispatch(self, issue_id: int, lines: List[Dict[str, int]], idempotency_key: Optional[str] = None,
                 transport_details: Optional[Dict[str, Any]] = None, version: Optional[int] = None) -> Dict[str, Any]:
        payload = {'items': lines, 'transport_details': transport_details or {}}
        if idempotency_key:
            payload['idempotency_key'] = idempotency_key
        return self._action(issue_id, 'dispatch', payload, version)

    def receive(self, issue_id: int, received_quantities: Optional[Dict[int, int]] = None,
                version: Optional[int] = None) -> Dict[str, Any]:
        quantities = {str(k): v for k, v in (received_quantities or {}).items()}
        return self._action(issue_id, 'receive', {'received_quantities': quantities}, version)
