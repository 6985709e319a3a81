"""Detection tests: request signals mapped to flags."""

from delivery_guard.risk.detection import RequestSignals, detect_suspicious_patterns
from delivery_guard.risk.models import FlagType

NOW = 1_700_000_000.0
BROWSER = "Mozilla/5.0 (X11; Linux x86_64)"


def _types(signals):
    return [flag_type for flag_type, _ in detect_suspicious_patterns(signals, NOW)]


def test_clean_request_has_no_flags():
    signals = RequestSignals(
        method="POST",
        path="/deliveries/D1/transitions",
        user_agent=BROWSER,
        body={"target_state": "CANCELLED"},
        client_timestamp=str(int(NOW)),
    )
    assert _types(signals) == []


def test_missing_user_agent_is_suspicious():
    assert _types(RequestSignals(method="GET", path="/health")) == [FlagType.SUSPICIOUS_USER_AGENT]


def test_bot_user_agent_is_suspicious():
    signals = RequestSignals(method="GET", path="/health", user_agent="Googlebot/2.1")
    assert FlagType.SUSPICIOUS_USER_AGENT in _types(signals)


def test_traversal_path_is_attack_pattern():
    signals = RequestSignals(method="GET", path="/deliveries/../etc/passwd", user_agent=BROWSER)
    assert FlagType.ATTACK_PATTERN in _types(signals)


def test_get_on_sequential_user_id_is_enumeration():
    signals = RequestSignals(method="GET", path="/users/1234", user_agent=BROWSER)
    assert _types(signals) == [FlagType.ENUMERATION_ATTEMPT]


def test_enumeration_only_counts_reads():
    signals = RequestSignals(method="POST", path="/users/1234", user_agent=BROWSER)
    assert _types(signals) == []


def test_multiple_forwarding_headers_are_manipulation():
    signals = RequestSignals(
        method="GET",
        path="/health",
        user_agent=BROWSER,
        headers={"x-forwarded-for": "1.1.1.1", "x-real-ip": "2.2.2.2"},
    )
    assert _types(signals) == [FlagType.HEADER_MANIPULATION]


def test_single_forwarding_header_is_fine():
    signals = RequestSignals(
        method="GET", path="/health", user_agent=BROWSER, headers={"x-forwarded-for": "1.1.1.1"}
    )
    assert _types(signals) == []


def test_skewed_timestamp_is_time_manipulation():
    signals = RequestSignals(
        method="POST", path="/p", user_agent=BROWSER, client_timestamp=str(int(NOW) - 301)
    )
    assert _types(signals) == [FlagType.TIME_MANIPULATION]


def test_unparsable_timestamp_is_time_manipulation():
    signals = RequestSignals(method="POST", path="/p", user_agent=BROWSER, client_timestamp="soon")
    assert _types(signals) == [FlagType.TIME_MANIPULATION]


def test_script_in_body_is_malicious_payload():
    signals = RequestSignals(
        method="POST",
        path="/p",
        user_agent=BROWSER,
        body={"reason": "<SCRIPT>alert(1)</SCRIPT>"},
    )
    assert _types(signals) == [FlagType.MALICIOUS_PAYLOAD]
