# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Jenkins HTTP client.

One client per configured instance, with one requests.Session per thread
using it. Every request carries the instance's basic-auth credentials;
triggers also carry a CSRF crumb when the instance issues one.

Failures are split three ways:
- AuthError: credentials rejected (401/403), never retried
- NetworkError: transport failure, 5xx or undecodable body, retryable
- DispatchError: the server refused the request (unknown job, bad params,
  cancelled queue item)

A failed build is not an error here; it is a BuildStatus.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote, urljoin

import requests

from jobrelay.schemas import (
    STILL_QUEUED,
    BuildHandle,
    BuildStatus,
    InstanceConfig,
    QueueHandle,
    QueueResolution,
    TriggerMode,
)

logger = logging.getLogger(__name__)

# (connect, read) seconds
DEFAULT_TIMEOUT: Tuple[float, float] = (5, 30)

# Jenkins `result` values; NOT_BUILT means the build was skipped
RESULT_STATUS = {
    "SUCCESS": BuildStatus.SUCCESS,
    "FAILURE": BuildStatus.FAILURE,
    "UNSTABLE": BuildStatus.UNSTABLE,
    "ABORTED": BuildStatus.ABORTED,
    "NOT_BUILT": BuildStatus.ABORTED,
}


class RemoteError(Exception):
    """Base class for Jenkins client errors."""
    pass


class AuthError(RemoteError):
    """Raised when the instance rejects the configured credentials."""
    pass


class NetworkError(RemoteError):
    """Raised on transient transport or server failures."""
    pass


class DispatchError(RemoteError):
    """Raised when the instance refuses to start or track a build."""
    pass


@dataclass(frozen=True)
class Crumb:
    """CSRF token and the header it must be sent in."""
    field: str
    value: str


def _with_slash(url: str) -> str:
    return url.rstrip("/") + "/"


class JenkinsClient:
    """HTTP client for one Jenkins instance."""

    def __init__(
        self,
        instance: InstanceConfig,
        session: Optional[requests.Session] = None,
        timeout: Tuple[float, float] = DEFAULT_TIMEOUT,
    ):
        """
        Initialize the client.

        Args:
            instance: Instance to talk to (URL and credentials)
            session: Optional session shared by every thread (tests inject a mock)
            timeout: (connect, read) timeout for every request
        """
        self.instance = instance
        self.base_url = _with_slash(instance.url)
        self.timeout = timeout
        self._shared_session = session
        self._local = threading.local()
        if session is not None:
            self._authenticate(session)

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread.

        Pool workers never share a session. The crumb and the trigger it
        guards go out on the same one.
        """
        if self._shared_session is not None:
            return self._shared_session
        session = getattr(self._local, "session", None)
        if session is None:
            session = self._authenticate(requests.Session())
            self._local.session = session
        return session

    def _authenticate(self, session: requests.Session) -> requests.Session:
        if self.instance.user or self.instance.password:
            session.auth = (self.instance.user, self.instance.password)
        return session

    def __repr__(self) -> str:
        return f"JenkinsClient({self.instance.name!r}, {self.base_url!r})"

    def job_url(self, job_name: str) -> str:
        """URL of a job; `folder/job` maps to /job/folder/job/job/."""
        parts = [p for p in job_name.strip("/").split("/") if p]
        path = "/".join(f"job/{quote(p, safe='')}" for p in parts)
        return self.base_url + path + "/"

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """Send a request, mapping transport failures and auth rejections."""
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise NetworkError(f"Failed to reach {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise DispatchError(f"Request to {url} failed: {e}") from e

        if response.status_code in (401, 403):
            raise AuthError(
                f"Jenkins '{self.instance.name}' rejected credentials for user "
                f"'{self.instance.user}' (HTTP {response.status_code}) on {url}"
            )
        return response

    def _decode(self, response: requests.Response, url: str) -> Dict[str, Any]:
        """Decode a JSON response body, mapping error statuses."""
        status = response.status_code
        if status >= 500:
            raise NetworkError(f"HTTP {status} calling {url}")
        if status < 200 or status >= 300:
            raise DispatchError(f"HTTP {status} calling {url}: {response.text[:2000]}")
        try:
            data = response.json()
        except ValueError as e:
            raise NetworkError(f"Non-JSON response calling {url}: {e}") from e
        if not isinstance(data, dict):
            raise NetworkError(f"Unexpected JSON payload calling {url}")
        return data

    def _get_json(self, url: str) -> Dict[str, Any]:
        return self._decode(self._request("GET", url), url)

    def fetch_crumb(self) -> Optional[Crumb]:
        """Get a CSRF crumb; None when the instance has CSRF protection off."""
        url = self.base_url + "crumbIssuer/api/json"
        response = self._request("GET", url)
        if response.status_code == 404:
            logger.debug(f"No crumb issuer on {self.instance.name}, continuing without crumb")
            return None
        data = self._decode(response, url)

        field = str(data.get("crumbRequestField") or "").strip()
        value = str(data.get("crumb") or "").strip()
        if not field or not value:
            return None
        return Crumb(field=field, value=value)

    def trigger(
        self,
        job_name: str,
        mode: TriggerMode,
        parameters: Optional[Dict[str, str]] = None,
    ) -> QueueHandle:
        """
        Trigger a job and return the queue item it was placed in.

        Jenkins answers 201 with a Location header pointing at the queue
        item, not at a build.

        Raises:
            AuthError: Credentials rejected
            NetworkError: Instance unreachable
            DispatchError: Job missing, parameters rejected or no Location header
        """
        crumb = self.fetch_crumb()
        headers: Dict[str, str] = {}
        if crumb:
            headers[crumb.field] = crumb.value

        url = self.job_url(job_name) + mode.endpoint
        data = dict(parameters or {}) if mode is TriggerMode.PARAMETERIZED else None

        logger.info(f"Triggering {self.instance.name}/{job_name} via {mode.endpoint}")
        response = self._request("POST", url, headers=headers, data=data, allow_redirects=False)

        status = response.status_code
        if status < 200 or status >= 400:
            raise DispatchError(
                f"Jenkins trigger failed for '{job_name}' (HTTP {status}): {response.text[:2000]}"
            )

        location = str(response.headers.get("Location") or "").strip()
        if not location:
            raise DispatchError(
                f"Jenkins trigger for '{job_name}' did not return a Location header for the queue item"
            )

        queue_url = _with_slash(urljoin(self.base_url, location))
        logger.debug(f"Queued {self.instance.name}/{job_name}: {queue_url}")
        return QueueHandle(url=queue_url)

    def query_queue(self, handle: QueueHandle) -> QueueResolution:
        """Check whether a queue item has started a build.

        Raises:
            DispatchError: Queue item cancelled or gone
        """
        url = _with_slash(handle.url) + "api/json"
        data = self._get_json(url)

        if data.get("cancelled"):
            raise DispatchError(f"Queue item cancelled: {handle.url}")

        executable = data.get("executable")
        if not isinstance(executable, dict) or executable.get("number") is None:
            return STILL_QUEUED

        number = int(executable["number"])
        build_url = str(executable.get("url") or "").strip()
        if not build_url:
            # Fall back to the task URL + number
            task = data.get("task")
            task_url = task.get("url") if isinstance(task, dict) else None
            if not task_url:
                raise DispatchError(f"Could not determine build URL for build #{number} of {handle.url}")
            build_url = _with_slash(str(task_url)) + str(number)

        return QueueResolution(
            build=BuildHandle(
                instance_name=self.instance.name,
                number=number,
                url=_with_slash(urljoin(self.base_url, build_url)),
            )
        )

    def query_build(self, handle: BuildHandle) -> BuildStatus:
        """Get the current status of a build."""
        url = _with_slash(handle.url) + "api/json"
        data = self._get_json(url)

        result = data.get("result")
        if data.get("building") or not result:
            # Jenkins may briefly report building=false with result=null
            return BuildStatus.IN_PROGRESS

        status = RESULT_STATUS.get(str(result).strip().upper())
        if status is None:
            logger.warning(f"Unrecognized result {result!r} for {handle.url}, treating as FAILURE")
            return BuildStatus.FAILURE
        return status
