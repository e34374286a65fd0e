"""
MXToolbox blacklist lookups with API key rotation.

One `MXToolboxManager` is built per application and shared by every caller.
"""
import time
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests

from .key_rotator import KeyRotator, KeyStatistics
from ..config import Settings, settings as default_settings
from ..exceptions import (
    AllEndpointsFailed,
    InsufficientPermission,
    InvalidCredential,
    RateLimited,
)

logger = logging.getLogger(__name__)

# Tried in order; the upstream has been inconsistent about path case and host.
ENDPOINT_TEMPLATES = [
    "https://mxtoolbox.com/api/v1/Lookup/blacklist/{ip}",
    "https://mxtoolbox.com/api/v1/lookup/blacklist/{ip}",
    "https://api.mxtoolbox.com/api/v1/Lookup/blacklist/{ip}",
]

USER_AGENT = "IP-Blacklist-Checker/1.0"


def build_headers(api_key: str) -> Dict[str, str]:
    return {
        "Authorization": api_key,
        "Content-Type": "application/json",
        "User-Agent": USER_AGENT,
    }


@dataclass
class LookupResult:
    """Raw upstream payload plus the preview of the key that fetched it."""

    data: Dict[str, Any]
    used_key_preview: str


class MXToolboxManager:
    """
    Selects a key, performs the lookup, and keeps per-key bookkeeping.

    Usage:
        manager = MXToolboxManager(["key-1", "key-2"])
        result = manager.request("8.8.8.8")
    """

    def __init__(
        self,
        keys: List[str],
        max_requests_per_key: int = 50,
        block_seconds: float = 60.0,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
        endpoints: Optional[List[str]] = None,
    ):
        self._rotator = KeyRotator(
            keys,
            max_requests_per_key=max_requests_per_key,
            block_seconds=block_seconds,
            clock=clock,
            name="MXToolbox",
        )
        self._session = session or requests.Session()
        self._timeout = timeout
        self._endpoints = endpoints or ENDPOINT_TEMPLATES

    def request(self, ip: str) -> LookupResult:
        """
        Look up `ip` with the next usable key.

        Raises:
            NoCredentialsConfigured, AllCredentialsExhausted: no key could be selected
            InvalidCredential, InsufficientPermission: the key itself was refused
            RateLimited: the key was rate limited on every endpoint tried
            AllEndpointsFailed: only generic upstream errors were seen
            requests.RequestException: the last network/timeout error, as raised
        """
        slot = self._rotator.acquire()
        headers = build_headers(slot.secret)
        last_error: Optional[Exception] = None
        counted = False

        for template in self._endpoints:
            url = template.format(ip=ip)
            logger.info(f"Using API key {slot.preview} for {ip} on {url}")
            try:
                response = self._session.get(url, headers=headers, timeout=self._timeout)
            except requests.RequestException as e:
                logger.error(f"Error with endpoint {url} using key {slot.preview}: {e}")
                last_error = e
                continue
            finally:
                if not counted:
                    self._rotator.record_use(slot)
                    counted = True

            if response.status_code == 429:
                self._rotator.block(slot)
                last_error = RateLimited(slot.preview)
                continue

            if response.status_code == 401:
                raise InvalidCredential(slot.preview)

            if response.status_code == 403:
                raise InsufficientPermission(slot.preview)

            if not response.ok:
                logger.error(
                    f"API error for {ip}: {response.status_code} {response.reason} - {response.text}"
                )
                continue

            try:
                data = response.json()
            except ValueError as e:
                logger.error(f"Unreadable response from {url} using key {slot.preview}: {e}")
                last_error = e
                continue

            logger.info(f"Success with API key {slot.preview} for {ip}")
            return LookupResult(data=data, used_key_preview=slot.preview)

        if last_error is not None:
            raise last_error
        raise AllEndpointsFailed()

    def get_statistics(self) -> List[KeyStatistics]:
        return self._rotator.statistics()

    def get_total_keys(self) -> int:
        return self._rotator.key_count

    def get_available_keys(self) -> int:
        return self._rotator.available_count()

    def close(self) -> None:
        self._session.close()


def get_mxtoolbox_manager(settings: Optional[Settings] = None) -> MXToolboxManager:
    """Build a manager from configured keys and limits."""
    settings = settings or default_settings
    keys = settings.mxtoolbox_key_list
    logger.info(f"Loaded {len(keys)} MXToolbox API keys")
    return MXToolboxManager(
        keys,
        max_requests_per_key=settings.mxtoolbox_max_requests_per_key,
        block_seconds=settings.mxtoolbox_block_seconds,
        timeout=settings.mxtoolbox_request_timeout,
    )
