# /*
# Copyright 2026 The Grove Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Minimal client for the local Airbyte API (application token, organization email)."""

from __future__ import annotations

import threading
from typing import Any

import requests

from abctl import logger
from abctl.constants import (
    AIRBYTE_API_ORGANIZATIONS_PATH,
    AIRBYTE_API_TIMEOUT_SECONDS,
    AIRBYTE_API_TOKEN_PATH,
    AIRBYTE_DEFAULT_ORGANIZATION_ID,
)
from abctl.errors import AirbyteAPIError


class AirbyteAPI:
    """Talks to the Airbyte server behind the local ingress.

    The application token is requested once with the instance admin's
    client credentials and reused for later calls.

    Args:
        host: Base URL, e.g. ``http://localhost:8000``.
        client_id: Instance admin client id.
        client_secret: Instance admin client secret.
        session: HTTP session; a new ``requests.Session`` if omitted.
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        host: str,
        client_id: str,
        client_secret: str,
        session: requests.Session | None = None,
        timeout: float = AIRBYTE_API_TIMEOUT_SECONDS,
    ) -> None:
        self.host = host.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json", "Accept": "application/json"})
        self.timeout = timeout
        self._token = ""
        self._lock = threading.Lock()

    def _request(self, method: str, path: str, what: str, **kwargs: Any) -> Any:
        try:
            resp = self.session.request(method, f"{self.host}{path}", timeout=self.timeout, **kwargs)
            resp.raise_for_status()
        except requests.RequestException as err:
            raise AirbyteAPIError(f"unable to send {what} request: {err}") from err
        try:
            return resp.json()
        except ValueError as err:
            raise AirbyteAPIError(f"unable to decode {what} response: {err}") from err

    def token(self) -> str:
        """Application access token for the client credentials."""
        with self._lock:
            if not self._token:
                data = self._request("POST", AIRBYTE_API_TOKEN_PATH, "token", json={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                })
                token = (data or {}).get("access_token", "")
                if not token:
                    raise AirbyteAPIError("unable to determine application token")
                logger.debug("fetched airbyte application token")
                self._token = token
            return self._token

    def get_org_email(self) -> str:
        """Email of the default organization; empty if none is set.

        Raises:
            AirbyteAPIError: If the request fails, no organization exists, or
                the first organization is not the default one.
        """
        headers = {"Authorization": f"Bearer {self.token()}"}
        data = self._request("GET", AIRBYTE_API_ORGANIZATIONS_PATH, "email", headers=headers)
        orgs = (data or {}).get("data") or []
        if not orgs:
            raise AirbyteAPIError("unable to find any organizations")
        org_id = orgs[0].get("organizationId", "")
        if org_id != AIRBYTE_DEFAULT_ORGANIZATION_ID:
            raise AirbyteAPIError(f"could not find expected organization, found {org_id}")
        return orgs[0].get("email", "")
