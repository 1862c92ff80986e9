"""
HTTP client for the controller's administrative web console
Logs in like a browser and issues the console's AJAX requests
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Union

import requests

from .ajax import create_request, list_request, parse_list_response, update_request
from .config import ControllerConfig
from .errors import LoginError, OutputError, TransportError
from .logger import get_logger
from .schema import DpskRecord

logger = get_logger(__name__)

LOGIN_PATH = "/admin/login.jsp"
CMDSTAT_PATH = "/admin/_cmdstat.jsp"
CONF_PATH = "/admin/_conf.jsp"
BACKUP_PATH = "/admin/webPage/system/admin/_savebackup.jsp"

CSRF_RESPONSE_HEADER = "HTTP_X_CSRF_TOKEN"
CSRF_REQUEST_HEADER = "X-CSRF-Token"

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class ControllerSession:
    """Result of a successful login, passed to every later request."""
    server: str
    csrf_token: str
    cookies: Dict[str, str] = field(default_factory=dict)

    def headers(self, content_type: Optional[str] = None) -> Dict[str, str]:
        headers = {CSRF_REQUEST_HEADER: self.csrf_token}
        if content_type:
            headers["Content-Type"] = content_type
        return headers


class ControllerClient:
    """
    Thin wrapper over a requests.Session.

    The underlying session never keeps cookies between calls, all state
    lives in the ControllerSession returned by login().
    """

    def __init__(self, config: ControllerConfig, http: Optional[requests.Session] = None):
        self.config = config
        self.http = http or requests.Session()
        self.http.verify = config.tls_verify

    def close(self):
        self.http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _url(self, path: str) -> str:
        return self.config.server + path

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        kwargs.setdefault("timeout", self.config.timeout)
        kwargs.setdefault("allow_redirects", False)
        try:
            response = self.http.request(method, url, **kwargs)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"error sending request to {url}: {e}") from e
        finally:
            self.http.cookies.clear()
        return response

    def login(self, username: Optional[str] = None, password: Optional[str] = None) -> ControllerSession:
        """
        Log in to the console.

        The controller answers a good login with a CSRF token header and
        session cookies. Redirects are not followed.

        Raises:
            LoginError: no CSRF token in the reply
            TransportError: the request itself failed
        """
        username = username or self.config.username
        password = password or self.config.password
        url = self._url(LOGIN_PATH)

        logger.debug(f"Logging in to {url} as {username}")
        response = self._request("POST", url, data={
            "username": username,
            "password": password,
            "ok": "Log In",
        })

        token = response.headers.get(CSRF_RESPONSE_HEADER)
        if not token:
            logger.debug(f"Login reply body: {response.text}")
            raise LoginError(f"check user and password, status code: {response.status_code}")

        session = ControllerSession(
            server=self.config.server,
            csrf_token=token,
            cookies=response.cookies.get_dict(),
        )
        logger.info(f"Logged in to {self.config.server} as {username}")
        return session

    def post_xml(self, session: ControllerSession, path: str, body: str) -> requests.Response:
        """POST an AJAX body, raising TransportError on a non-200 reply."""
        logger.debug(f"POST {path}:\n{body}")
        response = self._request(
            "POST",
            session.server + path,
            data=body.encode("utf-8"),
            headers=session.headers("text/xml"),
            cookies=dict(session.cookies),
        )
        if response.status_code != 200:
            raise TransportError(f"request to {path} failed with status code: {response.status_code}")
        return response

    def download_backup(self, session: ControllerSession, output: Union[str, Path]) -> int:
        """
        Stream the controller's configuration backup to a local file.

        Data goes to a partial file next to the output, which replaces the
        output only once the download completes. An existing output is
        left untouched on failure.

        Returns:
            Number of bytes written

        Raises:
            TransportError: request failed or returned a non-200 status
            OutputError: the output could not be written
        """
        output = Path(output)
        partial = output.with_name(f".{output.name}.part")
        url = session.server + BACKUP_PATH
        logger.debug(f"GET {url} -> {output}")

        response = self._request(
            "GET",
            url,
            headers={"Accept": "application/octet-stream", **session.headers()},
            cookies=dict(session.cookies),
            stream=True,
        )
        with response:
            if response.status_code != 200:
                raise TransportError(f"save backup failed with status code: {response.status_code}")

            written = 0
            try:
                with open(partial, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            written += len(chunk)
                partial.replace(output)
            # RequestException is an OSError, so it goes first
            except requests.exceptions.RequestException as e:
                raise TransportError(f"error downloading backup: {e}") from e
            except OSError as e:
                raise OutputError(f"error writing backup to {output}: {e}") from e
            finally:
                if partial.exists():
                    partial.unlink()

        logger.info(f"Saved backup to {output} ({written} bytes)")
        return written

    def dpsk(self, session: ControllerSession) -> "DpskService":
        return DpskService(self, session)


class DpskService:
    """DPSK operations bound to one logged-in session."""

    def __init__(self, client: ControllerClient, session: ControllerSession):
        self.client = client
        self.session = session

    def fetch_all(self) -> List[DpskRecord]:
        response = self.client.post_xml(self.session, CMDSTAT_PATH, list_request())
        return parse_list_response(response.text)

    def create_record(self, wlansvc_id: int, user: str, length: int) -> None:
        self.client.post_xml(self.session, CMDSTAT_PATH, create_request(wlansvc_id, user, length))

    def update_record(self, record_id: int, fields: Mapping[str, str]) -> None:
        self.client.post_xml(self.session, CONF_PATH, update_request(record_id, fields))
