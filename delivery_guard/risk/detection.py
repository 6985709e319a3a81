"""Request signal detection. Inspects a request snapshot and returns flag signals."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional

from delivery_guard.risk.models import FlagSignal, FlagType

MAX_TIMESTAMP_SKEW_SECONDS = 300

_BOT_USER_AGENT = re.compile(r"bot|crawler|spider|scraper", re.IGNORECASE)

_ATTACK_PATH_PATTERNS = (
    re.compile(r"\.\."),
    re.compile(r"union.*select", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"eval\(", re.IGNORECASE),
    re.compile(r"exec\(", re.IGNORECASE),
    re.compile(r"system\(", re.IGNORECASE),
)

# GET scans for sequential ids and operator surfaces.
_ENUMERATION_PATTERNS = (
    re.compile(r"/users/\d+$"),
    re.compile(r"/admin"),
    re.compile(r"/config"),
    re.compile(r"/debug"),
)

_FORWARDING_HEADERS = ("x-forwarded-for", "x-real-ip", "x-originating-ip")

_PAYLOAD_MARKERS = ("<script", "javascript:", "eval(", "union select", "../", "; drop table")


@dataclass(frozen=True)
class RequestSignals:
    """The parts of a request the detector inspects. Header names lower-case."""

    method: str
    path: str
    user_agent: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    client_timestamp: Optional[str] = None


def detect_suspicious_patterns(signals: RequestSignals, now: float) -> List[FlagSignal]:
    flags: List[FlagSignal] = []

    if not signals.user_agent or _BOT_USER_AGENT.search(signals.user_agent):
        flags.append((FlagType.SUSPICIOUS_USER_AGENT, {"user_agent": signals.user_agent}))

    if any(p.search(signals.path) for p in _ATTACK_PATH_PATTERNS):
        flags.append((FlagType.ATTACK_PATTERN, {"path": signals.path, "pattern": "malicious_pattern"}))

    if signals.method.upper() == "GET" and any(p.search(signals.path) for p in _ENUMERATION_PATTERNS):
        flags.append((FlagType.ENUMERATION_ATTEMPT, {"path": signals.path}))

    present = [h for h in _FORWARDING_HEADERS if signals.headers.get(h)]
    if len(present) > 1:
        flags.append((FlagType.HEADER_MANIPULATION, {"headers": present}))

    if signals.client_timestamp:
        try:
            skew = abs(now - int(signals.client_timestamp.strip()))
        except ValueError:
            flags.append((FlagType.TIME_MANIPULATION, {"timestamp": signals.client_timestamp[:32]}))
        else:
            if skew > MAX_TIMESTAMP_SKEW_SECONDS:
                flags.append((FlagType.TIME_MANIPULATION, {"skew_seconds": round(skew, 3)}))

    if isinstance(signals.body, (dict, list)):
        body_text = json.dumps(signals.body, default=str).lower()
        if any(marker in body_text for marker in _PAYLOAD_MARKERS):
            flags.append((FlagType.MALICIOUS_PAYLOAD, {"body_size": len(body_text)}))

    return flags
