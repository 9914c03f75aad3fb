"""
Base API Connector Class for the LMS REST API
Provides the HTTP plumbing shared by every connector
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
from dataclasses import dataclass
import logging

import requests

from lms_core.errors import MalformedResponseError, NetworkUnavailableError, ServerError

logger = logging.getLogger(__name__)


@dataclass
class APIConfig:
    """Configuration for API connection"""
    api_name: str
    base_url: str
    headers: Optional[Dict[str, str]] = None
    timeout: float = 5.0


class BaseAPIConnector(ABC):
    """Abstract base class for all API connectors"""

    def __init__(
        self,
        config: APIConfig,
        session: Optional[requests.Session] = None,
        connection=None,
    ):
        self.config = config
        self.session = session or requests.Session()
        # Optional ConnectionManager fed with request outcomes
        self.connection = connection

        # Set default headers
        if config.headers:
            self.session.headers.update(config.headers)

    @abstractmethod
    def _auth_headers(self) -> Dict[str, str]:
        """Authentication headers for the next request"""
        pass

    def _make_request(
        self,
        endpoint: str,
        method: str = "GET",
        params: Optional[Dict] = None,
        data: Optional[Dict] = None
    ) -> Any:
        """
        Make HTTP request with error handling

        Args:
            endpoint: API endpoint (appended to base_url)
            method: HTTP method (GET, POST, etc.)
            params: Query parameters
            data: Request body data

        Returns:
            Decoded JSON body, or None for an empty body

        Raises:
            NetworkUnavailableError: no response reached the server
            ServerError: non-2xx status
            MalformedResponseError: 2xx body that is not JSON
        """
        url = f"{self.config.base_url.rstrip('/')}/{endpoint.lstrip('/')}"

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=data,
                headers=self._auth_headers(),
                timeout=self.config.timeout
            )
        except requests.exceptions.RequestException as e:
            if self.connection is not None:
                self.connection.record_failure(str(e))
            raise NetworkUnavailableError(url=url, cause=str(e))

        # Any answer means the server is reachable
        if self.connection is not None:
            self.connection.record_success()

        if not 200 <= response.status_code < 300:
            raise ServerError(
                self._error_message(response),
                status_code=response.status_code,
                url=url,
            )

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(
                f"{self.config.api_name} returned a non-JSON body",
                resource=endpoint,
                expected="JSON",
                actual=str(e),
            )

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Human-readable message from an error body"""
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return f"Server returned HTTP {response.status_code}"

    def close(self) -> None:
        self.session.close()
