"""
HTTP transport for REST payment providers.
"""
import logging

import requests

from errors import ConfigurationError, NotFoundError, ProviderRejectedError, ProviderTransportError

logger = logging.getLogger(__name__)


class ProviderClient:
    """Thin requests.Session wrapper with a hard timeout and provider error mapping."""

    def __init__(self, gateway, base_url, headers=None, timeout=15, session=None):
        self.gateway = gateway
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json',
        })
        if headers:
            self.session.headers.update(headers)

    def get(self, path, **kwargs):
        return self.request('GET', path, **kwargs)

    def post(self, path, **kwargs):
        return self.request('POST', path, **kwargs)

    def put(self, path, **kwargs):
        return self.request('PUT', path, **kwargs)

    def delete(self, path, **kwargs):
        return self.request('DELETE', path, **kwargs)

    def request(self, method, path, **kwargs):
        url = f"{self.base_url}/{path.lstrip('/')}"
        kwargs.setdefault('timeout', self.timeout)
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.Timeout as e:
            raise ProviderTransportError(
                f"{self.gateway} did not answer within {self.timeout}s", gateway=self.gateway
            ) from e
        except requests.RequestException as e:
            raise ProviderTransportError(
                f"Connection error talking to {self.gateway}: {e}", gateway=self.gateway
            ) from e

        if response.status_code >= 400:
            raise self._error_for(response)

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            raise ProviderTransportError(
                f"{self.gateway} returned a non-JSON body", gateway=self.gateway,
                status_code=response.status_code,
            )

    def _error_for(self, response):
        status = response.status_code
        try:
            details = response.json()
        except ValueError:
            details = response.text[:500]
        logger.warning("%s %s -> %s: %s", self.gateway, response.request.path_url if response.request else '', status, details)

        if status in (401, 403):
            return ConfigurationError(
                f"{self.gateway} rejected the credentials (HTTP {status})", gateway=self.gateway
            )
        if status == 404:
            return NotFoundError(f"{self.gateway} resource not found", gateway=self.gateway)
        if status < 500:
            return ProviderRejectedError(
                f"{self.gateway} rejected the request (HTTP {status})", gateway=self.gateway,
                status_code=status, details=details,
            )
        return ProviderTransportError(
            f"{self.gateway} server error (HTTP {status})", gateway=self.gateway,
            status_code=status, details=details,
        )
