import pytest

from blacklist_checker.services.blacklist_service import (
    TEST_IPS,
    check_ip,
    check_ips,
    classify_payload,
    is_listed,
    listed_blacklists,
    payload_summary,
    probe_key,
    run_key_test,
)
from blacklist_checker.services.mxtoolbox_client import MXToolboxManager

from .conftest import CLEAN_PAYLOAD, LISTED_PAYLOAD, FakeResponse, FakeSession, raise_timeout


def _manager(session, clock, keys=("aaaaaaaa-key-one", "bbbbbbbb-key-two"), **kwargs):
    return MXToolboxManager(list(keys), session=session, clock=clock, **kwargs)


class TestClassification:
    def test_clean_payload(self):
        result = classify_payload("8.8.8.8", CLEAN_PAYLOAD)

        assert result.is_blacklisted is False
        assert result.blacklists == []

    def test_failed_entries_mean_listed(self):
        result = classify_payload("127.0.0.2", LISTED_PAYLOAD, used_key="aaaaaaaa...")

        assert result.is_blacklisted is True
        assert result.blacklists == ["Spamhaus ZEN"]
        assert result.used_key == "aaaaaaaa..."

    def test_flagged_information_entries(self):
        data = {
            "Information": [
                {"Name": "SORBS", "IsBlackListed": True},
                {"Hostname": "bl.spamcop.net", "IsError": True},
                {"Status": "Error"},
                {"Name": "Clean List", "Status": "OK"},
            ]
        }

        assert listed_blacklists(data) == ["SORBS", "bl.spamcop.net", "Unknown Blacklist"]

    def test_missing_or_malformed_collections(self):
        assert is_listed({}) is False
        assert is_listed({"Failed": None, "Information": "n/a"}) is False
        assert is_listed({"Failed": ["not-a-dict"]}) is False

    @pytest.mark.parametrize("payload", [["a", "b"], "text", None, 42])
    def test_non_object_payload_is_not_listed(self, payload):
        assert is_listed(payload) is False
        assert classify_payload("8.8.8.8", payload).blacklists == []

    def test_payload_summary_counts_collections(self):
        summary = payload_summary(LISTED_PAYLOAD)

        assert summary["commandType"] == "blacklist"
        assert (summary["hasFailed"], summary["failedCount"]) == (True, 1)
        assert (summary["hasPassed"], summary["passedCount"]) == (True, 1)
        assert (summary["hasInformation"], summary["informationCount"]) == (True, 0)
        assert summary["fullResponse"] is LISTED_PAYLOAD

    def test_payload_summary_of_non_object(self):
        summary = payload_summary(["x"])

        assert summary["commandType"] is None
        assert summary["hasPassed"] is False
        assert summary["passedCount"] == 0

    def test_classification_is_deterministic(self):
        payload = {"Failed": [{"Name": "UCEPROTECT"}], "Information": [{"Name": "x", "IsError": True}]}

        assert is_listed(payload) == is_listed(payload)
        assert classify_payload("1.2.3.4", payload) == classify_payload("1.2.3.4", payload)
        assert payload == {"Failed": [{"Name": "UCEPROTECT"}], "Information": [{"Name": "x", "IsError": True}]}


class TestBatchChecks:
    def test_check_ip_success(self, clock):
        manager = _manager(FakeSession(lambda url, headers: FakeResponse(200, LISTED_PAYLOAD)), clock)

        result = check_ip(manager, "127.0.0.2")

        assert result.is_blacklisted is True
        assert result.used_key == "aaaaaaaa..."
        assert result.error is None

    def test_check_ip_degrades_on_network_error(self, clock):
        manager = _manager(FakeSession(raise_timeout), clock)

        result = check_ip(manager, "8.8.8.8")

        assert result.is_blacklisted is False
        assert result.blacklists == []
        assert result.error.startswith("Failed to check this IP")

    def test_check_ip_degrades_without_keys(self, session, clock):
        result = check_ip(_manager(session, clock, keys=[]), "8.8.8.8")

        assert "No MXToolbox API keys configured" in result.error

    def test_batch_continues_after_failure(self, clock):
        def responder(url, headers):
            if "10.0.0.1" in url:
                return FakeResponse(500)
            return FakeResponse(200, CLEAN_PAYLOAD)

        manager = _manager(FakeSession(responder), clock)
        pauses = []

        results = check_ips(manager, ["8.8.8.8", "10.0.0.1", "1.1.1.1"], delay=0.5, sleep=pauses.append)

        assert [r.ip for r in results] == ["8.8.8.8", "10.0.0.1", "1.1.1.1"]
        assert [r.error is None for r in results] == [True, False, True]
        assert pauses == [0.5, 0.5]

    def test_batch_survives_non_object_payload(self, clock):
        def responder(url, headers):
            if "10.0.0.1" in url:
                return FakeResponse(200, ["unexpected", "list"])
            return FakeResponse(200, LISTED_PAYLOAD)

        manager = _manager(FakeSession(responder), clock)

        results = check_ips(manager, ["8.8.8.8", "10.0.0.1", "1.1.1.1"], delay=0, sleep=lambda _: None)

        assert [r.ip for r in results] == ["8.8.8.8", "10.0.0.1", "1.1.1.1"]
        assert [r.is_blacklisted for r in results] == [True, False, True]
        assert results[1].blacklists == []
        assert results[1].error is None

    def test_zero_delay_never_sleeps(self, session, clock):
        pauses = []
        check_ips(_manager(session, clock), ["8.8.8.8", "1.1.1.1"], delay=0, sleep=pauses.append)

        assert pauses == []


class TestKeyTest:
    def test_reports_keys_used(self, session, clock):
        manager = _manager(session, clock, max_requests_per_key=2)

        report = run_key_test(manager, sleep=lambda _: None)

        assert [r.ip for r in report.runs] == TEST_IPS
        assert report.succeeded == 4
        assert report.keys_used == 2
        assert report.message == "Successfully tested 4/4 requests"
        assert report.total_keys == 2
        assert sum(s.request_count for s in report.statistics) == 4

    def test_failures_are_recorded(self, clock):
        manager = _manager(FakeSession(lambda url, headers: FakeResponse(401)), clock)

        report = run_key_test(manager, ips=["8.8.8.8"], sleep=lambda _: None)

        assert report.succeeded == 0
        assert report.keys_used == 0
        assert "Invalid API key" in report.runs[0].error


class TestProbeKey:
    def test_valid_key(self, session):
        result = probe_key("abcdefghijk", session=session)

        assert result.success is True
        assert result.key_preview == "abcdefgh..."
        assert result.test_ip == "8.8.8.8"
        assert result.has_data is True
        assert session.calls[0][1]["Authorization"] == "abcdefghijk"

    def test_invalid_key(self):
        result = probe_key("abcdefghijk", session=FakeSession(lambda url, headers: FakeResponse(401)))

        assert result.success is False
        assert "Invalid API key" in result.error

    def test_permission_and_rate_limit(self):
        denied = probe_key("k", session=FakeSession(lambda url, headers: FakeResponse(403)))
        limited = probe_key("k", session=FakeSession(lambda url, headers: FakeResponse(429)))

        assert "permission" in denied.error
        assert "Rate limit" in limited.error

    def test_all_endpoints_failed(self):
        session = FakeSession(raise_timeout)
        result = probe_key("abcdefghijk", session=session)

        assert result.success is False
        assert result.error == "Unable to verify API key - all endpoints failed"
        assert len(session.calls) == 2

    def test_generic_error_tries_second_endpoint(self):
        responses = iter([FakeResponse(500), FakeResponse(200, CLEAN_PAYLOAD)])
        session = FakeSession(lambda url, headers: next(responses))

        assert probe_key("abcdefghijk", session=session).success is True
        assert "/lookup/" in session.calls[1][0]
