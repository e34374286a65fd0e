from .key_rotator import KeyRotator, CredentialSlot, KeyStatistics
from .mxtoolbox_client import MXToolboxManager, LookupResult, get_mxtoolbox_manager
from .blacklist_service import BlacklistResult, classify_payload, is_listed, check_ip, check_ips

__all__ = [
    "KeyRotator",
    "CredentialSlot",
    "KeyStatistics",
    "MXToolboxManager",
    "LookupResult",
    "get_mxtoolbox_manager",
    "BlacklistResult",
    "classify_payload",
    "is_listed",
    "check_ip",
    "check_ips",
]
