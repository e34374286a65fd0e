"""Pydantic models for API request/response.

Field names on the wire are camelCase, matching what the dashboards read.
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class BlacklistResultModel(_CamelModel):
    """Result for a single IP."""

    ip: str
    is_blacklisted: bool = Field(..., alias="isBlacklisted")
    blacklists: List[str] = Field(default_factory=list)
    used_key: Optional[str] = Field(default=None, alias="usedKey")
    error: Optional[str] = None


class CheckBlacklistResponse(BaseModel):
    results: List[BlacklistResultModel]


class KeyDetail(_CamelModel):
    """Per-key snapshot; never carries the full key."""

    key_preview: str = Field(..., alias="keyPreview")
    request_count: int = Field(..., alias="requestCount")
    last_used: Optional[str] = Field(default=None, alias="lastUsed")
    is_blocked: bool = Field(..., alias="isBlocked")
    block_until: Optional[str] = Field(default=None, alias="blockUntil")


class StatsSummary(_CamelModel):
    total_requests: int = Field(..., alias="totalRequests")
    active_keys: int = Field(..., alias="activeKeys")
    rate_limited_keys: int = Field(..., alias="rateLimitedKeys")


class StatsResponse(_CamelModel):
    """Key usage statistics."""

    total_keys: int = Field(..., alias="totalKeys")
    available_keys: int = Field(..., alias="availableKeys")
    blocked_keys: int = Field(..., alias="blockedKeys")
    key_details: List[KeyDetail] = Field(..., alias="keyDetails")
    summary: StatsSummary


class KeyTestRunModel(_CamelModel):
    ip: str
    success: bool
    used_key: Optional[str] = Field(default=None, alias="usedKey")
    has_data: bool = Field(default=False, alias="hasData")
    error: Optional[str] = None


class KeyTestSummary(_CamelModel):
    total_requests: int = Field(..., alias="totalRequests")
    active_keys: int = Field(..., alias="activeKeys")
    keys_with_usage: int = Field(..., alias="keysWithUsage")


class KeyTestResponse(_CamelModel):
    """Result of exercising all configured keys."""

    success: bool
    message: str
    total_keys: int = Field(..., alias="totalKeys")
    available_keys: int = Field(..., alias="availableKeys")
    keys_used_in_test: int = Field(..., alias="keysUsedInTest")
    test_results: List[KeyTestRunModel] = Field(..., alias="testResults")
    key_statistics: List[KeyDetail] = Field(..., alias="keyStatistics")
    summary: KeyTestSummary


class SingleKeyTestRequest(_CamelModel):
    """Probe one key without adding it to the rotation."""

    api_key: str = Field(..., min_length=1, alias="apiKey")


class SingleKeyTestResponse(_CamelModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    key_preview: Optional[str] = Field(default=None, alias="keyPreview")
    test_ip: Optional[str] = Field(default=None, alias="testIp")
    has_data: Optional[bool] = Field(default=None, alias="hasData")


class ApiTestResponse(_CamelModel):
    """One rotated lookup of a known-clean IP, with the payload's shape."""

    success: bool
    message: str
    api_key_configured: bool = Field(..., alias="apiKeyConfigured")
    used_key: str = Field(..., alias="usedKey")
    sample_data: Dict[str, Any] = Field(..., alias="sampleData")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    message: str
