"""
Blacklist checks built on top of the MXToolbox manager.

Turns raw lookup payloads into listed/clean results and keeps a batch going
when individual targets fail.
"""
import time
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from .key_rotator import KeyStatistics, preview_key
from .mxtoolbox_client import ENDPOINT_TEMPLATES, MXToolboxManager, build_headers
from ..exceptions import KeyManagerError

logger = logging.getLogger(__name__)

UNKNOWN_BLACKLIST = "Unknown Blacklist"

# Well-known resolvers, used to exercise the keys without touching real targets
TEST_IPS = ["8.8.8.8", "1.1.1.1", "208.67.222.222", "9.9.9.9"]


@dataclass
class BlacklistResult:
    """Outcome of checking one IP."""

    ip: str
    is_blacklisted: bool
    blacklists: List[str] = field(default_factory=list)
    used_key: Optional[str] = None
    error: Optional[str] = None


def _entry_name(entry: Dict[str, Any]) -> str:
    return entry.get("Name") or entry.get("Hostname") or UNKNOWN_BLACKLIST


def _entries(data: Any, collection: str) -> List[Dict[str, Any]]:
    # The payload is passed through unaltered, so it need not be an object
    if not isinstance(data, dict):
        return []
    entries = data.get(collection)
    if not isinstance(entries, list):
        return []
    return [e for e in entries if isinstance(e, dict)]


def _is_flagged(entry: Dict[str, Any]) -> bool:
    return bool(entry.get("IsError") or entry.get("Status") == "Error" or entry.get("IsBlackListed"))


def listed_blacklists(data: Dict[str, Any]) -> List[str]:
    """Names of the lists reporting the target, in payload order."""
    names = [_entry_name(e) for e in _entries(data, "Information") if _is_flagged(e)]
    names.extend(_entry_name(e) for e in _entries(data, "Failed"))
    return names


def is_listed(data: Dict[str, Any]) -> bool:
    return bool(listed_blacklists(data))


def classify_payload(ip: str, data: Dict[str, Any], used_key: Optional[str] = None) -> BlacklistResult:
    """Build a result from an MXToolbox blacklist payload. Pure."""
    blacklists = listed_blacklists(data)
    return BlacklistResult(
        ip=ip,
        is_blacklisted=bool(blacklists),
        blacklists=blacklists,
        used_key=used_key,
    )


def payload_summary(data: Any) -> Dict[str, Any]:
    """Shape of a lookup payload, for the connectivity diagnostic."""
    counts = {}
    for collection in ("Information", "Passed", "Failed"):
        present = isinstance(data, dict) and isinstance(data.get(collection), list)
        counts[collection] = (present, len(_entries(data, collection)))
    return {
        "commandType": data.get("CommandType") if isinstance(data, dict) else None,
        "hasInformation": counts["Information"][0],
        "informationCount": counts["Information"][1],
        "hasPassed": counts["Passed"][0],
        "passedCount": counts["Passed"][1],
        "hasFailed": counts["Failed"][0],
        "failedCount": counts["Failed"][1],
        "fullResponse": data,
    }


def check_ip(manager: MXToolboxManager, ip: str) -> BlacklistResult:
    """Check one IP; lookup failures become a degraded result instead of raising."""
    try:
        lookup = manager.request(ip)
    except (KeyManagerError, requests.RequestException, ValueError) as e:
        logger.error(f"Error checking IP {ip}: {e}")
        return BlacklistResult(ip=ip, is_blacklisted=False, error=f"Failed to check this IP: {e}")

    passed = _entries(lookup.data, "Passed")
    logger.debug(f"Clean blacklists for {ip}: {len(passed)}")
    return classify_payload(ip, lookup.data, used_key=lookup.used_key_preview)


def check_ips(
    manager: MXToolboxManager,
    ips: List[str],
    delay: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
) -> List[BlacklistResult]:
    """Check each IP in turn, pausing `delay` seconds between lookups."""
    results = []
    for i, ip in enumerate(ips):
        if i and delay > 0:
            sleep(delay)
        results.append(check_ip(manager, ip))
    return results


@dataclass
class KeyTestRun:
    """One lookup made while exercising the keys."""

    ip: str
    success: bool
    used_key: Optional[str] = None
    has_data: bool = False
    error: Optional[str] = None


@dataclass
class KeyTestReport:
    runs: List[KeyTestRun]
    total_keys: int
    available_keys: int
    statistics: List[KeyStatistics]

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.runs if r.success)

    @property
    def keys_used(self) -> int:
        return len({r.used_key for r in self.runs if r.success})

    @property
    def message(self) -> str:
        return f"Successfully tested {self.succeeded}/{len(self.runs)} requests"


def run_key_test(
    manager: MXToolboxManager,
    ips: Optional[List[str]] = None,
    delay: float = 0.1,
    sleep: Callable[[float], None] = time.sleep,
) -> KeyTestReport:
    """
    Push a few lookups through the manager and report which keys served them.

    Caller must check `manager.get_total_keys()` first; with no keys every
    lookup fails.
    """
    ips = ips or TEST_IPS
    runs = []
    for i, ip in enumerate(ips):
        if i and delay > 0:
            sleep(delay)
        try:
            lookup = manager.request(ip)
            runs.append(KeyTestRun(ip=ip, success=True, used_key=lookup.used_key_preview, has_data=bool(lookup.data)))
        except (KeyManagerError, requests.RequestException, ValueError) as e:
            runs.append(KeyTestRun(ip=ip, success=False, error=str(e)))

    return KeyTestReport(
        runs=runs,
        total_keys=manager.get_total_keys(),
        available_keys=manager.get_available_keys(),
        statistics=manager.get_statistics(),
    )


@dataclass
class KeyProbeResult:
    """Whether a single, not necessarily configured, key works."""

    success: bool
    message: str = ""
    error: str = ""
    key_preview: Optional[str] = None
    test_ip: Optional[str] = None
    has_data: bool = False


def probe_key(
    api_key: str,
    session: Optional[requests.Session] = None,
    timeout: float = 10.0,
    test_ip: str = "8.8.8.8",
) -> KeyProbeResult:
    """
    Try `api_key` against the first two endpoint variants.

    Independent of any manager: nothing is counted or blocked.
    """
    http = session or requests
    headers = build_headers(api_key)
    for template in ENDPOINT_TEMPLATES[:2]:
        try:
            response = http.get(template.format(ip=test_ip), headers=headers, timeout=timeout)
        except requests.RequestException as e:
            logger.error(f"Error testing API key {preview_key(api_key)}: {e}")
            continue

        if response.status_code == 401:
            return KeyProbeResult(success=False, error="Invalid API key - please check your MXToolbox API key")
        if response.status_code == 403:
            return KeyProbeResult(success=False, error="API key doesn't have permission for blacklist lookups")
        if response.status_code == 429:
            return KeyProbeResult(success=False, error="Rate limit exceeded - please wait before testing again")
        if response.ok:
            try:
                data = response.json()
            except ValueError:
                continue
            return KeyProbeResult(
                success=True,
                message="API key is valid and working",
                key_preview=preview_key(api_key),
                test_ip=test_ip,
                has_data=bool(data),
            )

    return KeyProbeResult(success=False, error="Unable to verify API key - all endpoints failed")
