"""
HTTP(S) Web API client for vendor REST/CGI endpoints
"""
import logging
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from .base import APIClient, APIError, ConnectionFailed, ResponseError, UnsupportedCommand
from ..commands import MinerCommand, WebCommand
import config

logger = logging.getLogger(__name__)


class WebAPI(APIClient):
    """
    JSON-over-HTTP client

    Args:
        ip: Miner IP address
        port: HTTP port
        path_template: Format string turning a command into a URL path,
            e.g. "/cgi-bin/{command}.cgi"
        auth: requests auth object (HTTPBasicAuth, HTTPDigestAuth) or tuple
        login: Callable returning a bearer token; called once after a 401
        https: Use https instead of http
    """

    def __init__(self, ip: str, port: int = None, path_template: str = "/{command}",
                 auth: Any = None, login: Optional[Callable[['WebAPI'], Optional[str]]] = None,
                 timeout: float = None, retries: int = None, https: bool = False):
        self.ip = ip
        self.port = port or config.WEB_PORT
        self.path_template = path_template
        self.auth = auth
        self.login = login
        self.token = None
        self.timeout = timeout or config.WEB_TIMEOUT
        self.retries = config.WEB_RETRIES if retries is None else retries
        self.scheme = "https" if https else "http"
        self.session = requests.Session()

    def url_for(self, command: str) -> str:
        path = self.path_template.format(command=command.lstrip('/'))
        return f"{self.scheme}://{self.ip}:{self.port}{path}"

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {'Authorization': f"Bearer {self.token}"}
        return {}

    def _request(self, method: str, url: str, parameters: Any) -> requests.Response:
        kwargs = {
            'timeout': self.timeout,
            'headers': self._headers(),
        }
        if self.auth is not None:
            kwargs['auth'] = self.auth
        if parameters is not None:
            if method == 'GET':
                kwargs['params'] = parameters
            else:
                kwargs['json'] = parameters

        last_error = None
        for attempt in range(self.retries + 1):
            try:
                return self.session.request(method, url, **kwargs)
            except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
                last_error = e
                logger.debug(f"Attempt {attempt + 1} for {url} failed: {e}")
            except requests.exceptions.RequestException as e:
                raise APIError(f"Request to {url} failed: {e}") from e
        raise ConnectionFailed(f"Could not reach {url}: {last_error}")

    def send_command(self, command: str, method: str = "GET", parameters: Any = None) -> Any:
        """
        Call one endpoint and return its JSON body

        A 401 triggers a single re-authentication through the login callback.
        """
        url = self.url_for(command)
        logger.debug(f"{self.ip} - (Web Command) - {method} {url}")

        response = self._request(method, url, parameters)
        if response.status_code == 401 and self.login is not None:
            token = self.login(self)
            if token:
                self.token = token
                response = self._request(method, url, parameters)

        if not response.ok:
            raise ResponseError(f"HTTP request failed with status code {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise ResponseError(f"Non-JSON response from {url}") from e

    def send(self, command: MinerCommand) -> Any:
        if not isinstance(command, WebCommand):
            raise UnsupportedCommand("Cannot send non web command to web API")
        return self.send_command(command.command, command.method, command.params)


def send_web_probe(ip: str, path: str = "/", port: int = None,
                   timeout: float = None) -> Optional[Tuple[str, Dict[str, str], int]]:
    """
    Fetch a page for identification without following redirects

    Returns:
        (body text, response headers, status code), or None on failure
    """
    url = f"http://{ip}:{port or config.WEB_PORT}{path}"
    try:
        response = requests.get(url, timeout=timeout or config.WEB_TIMEOUT, allow_redirects=False)
        return response.text, response.headers, response.status_code
    except requests.exceptions.RequestException as e:
        logger.debug(f"Web probe {url} failed: {e}")
        return None
