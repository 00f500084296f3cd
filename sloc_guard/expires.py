"""Listing of rules whose exemption window has passed."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any

from sloc_guard.config import Configuration


@dataclass(frozen=True, slots=True)
class ExpiredRule:
    """A content or structure rule with `expires` before today."""

    rule_type: str
    index: int
    pattern: str
    expires: date
    reason: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule_type": self.rule_type,
            "index": self.index,
            "pattern": self.pattern,
            "expires": self.expires.isoformat(),
            "reason": self.reason,
        }


def collect_expired_rules(config: Configuration, today: date | None = None) -> list[ExpiredRule]:
    today = today if today is not None else date.today()
    expired: list[ExpiredRule] = []
    for index, rule in enumerate(config.content.rules):
        if rule.expires is not None and rule.expires < today:
            expired.append(ExpiredRule("content", index, rule.pattern, rule.expires, rule.reason))
    for index, rule in enumerate(config.structure.rules):
        if rule.expires is not None and rule.expires < today:
            expired.append(ExpiredRule("structure", index, rule.scope, rule.expires, rule.reason))
    return expired
