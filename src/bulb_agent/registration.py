"""Startup registration of the bulb with its hub."""

import http.client
import json
import logging
import time
import urllib.error
import urllib.request
from enum import Enum
from typing import Callable, Optional

from .bulb import BulbStore

logger = logging.getLogger(__name__)


class RegistrationState(Enum):
    """Registration progress"""
    CONNECTING = "connecting"
    REGISTERED = "registered"


class RegistrationError(RuntimeError):
    """Raised when the registration POST cannot reach the hub."""


class RegistrationClient:
    """Polls the hub with HEAD until it answers 200, then POSTs the bulb once.

    HEAD failures are retried forever at a fixed *retry_interval*. A network
    failure of the POST raises RegistrationError; the caller decides whether
    that is fatal.
    """

    def __init__(
        self,
        hub_url: str,
        store: BulbStore,
        retry_interval: float = 2.0,
        timeout: float = 10.0,
        opener: Optional[urllib.request.OpenerDirector] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.hub_url = hub_url
        self.retry_interval = retry_interval
        self.timeout = timeout
        self.state = RegistrationState.CONNECTING
        self.attempts = 0
        self._store = store
        self._sleep = sleep
        # Bypass http_proxy env vars, the hub normally lives on the local network.
        self._opener = opener or urllib.request.build_opener(urllib.request.ProxyHandler({}))

    @property
    def register_url(self) -> str:
        return f"{self.hub_url.rstrip('/')}/register"

    def check_hub(self) -> bool:
        """Return True if a HEAD on the hub base URL answers 200."""
        request = urllib.request.Request(self.hub_url, method="HEAD")
        try:
            with self._opener.open(request, timeout=self.timeout) as resp:
                status = resp.status
        except urllib.error.HTTPError as exc:
            status = exc.code
            exc.close()
        except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            logger.warning("Hub %s not reachable: %s", self.hub_url, reason)
            return False

        if status != 200:
            logger.warning("Hub responded code %d instead of %d!", status, 200)
            return False
        return True

    def send_registration(self) -> None:
        """POST the current bulb snapshot to ``<hub>/register``."""
        payload = json.dumps(self._store.snapshot().to_dict()).encode()
        request = urllib.request.Request(
            self.register_url,
            data=payload,
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with self._opener.open(request, timeout=self.timeout) as resp:
                logger.info("Registered with hub %s (HTTP %d)", self.register_url, resp.status)
        except urllib.error.HTTPError as exc:
            # The hub received the request; its verdict does not stop the agent.
            logger.warning("Hub answered registration with HTTP %d", exc.code)
            exc.close()
        except (urllib.error.URLError, http.client.HTTPException, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            raise RegistrationError(
                f"Registration POST to {self.register_url} failed: {reason}"
            ) from exc

    def register(self) -> RegistrationState:
        """Block until registered. Returns immediately once REGISTERED."""
        while self.state is RegistrationState.CONNECTING:
            self.attempts += 1
            logger.info("Trying to connect Bulb to hub (%s) ...", self.hub_url)
            if self.check_hub():
                self.send_registration()
                self.state = RegistrationState.REGISTERED
            else:
                self._sleep(self.retry_interval)
        return self.state
