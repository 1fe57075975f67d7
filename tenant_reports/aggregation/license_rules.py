"""
License rule engine — declarative overprovisioning rules over named SKU groups.

A rule table holds named groups of SKU ids and an ordered list of rules. Each rule
is a name plus conditions over how many of a user's tracked SKUs fall in a group.
Adding a rule or group is a configuration change; the evaluator never names a SKU.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from ..config import ConfigError, LicenseAuditConfig
from ..models import LicensedUser, Violation

logger = logging.getLogger("tenant_reports.aggregation.license_rules")

Memberships = Mapping[str, frozenset]


@dataclass(frozen=True)
class GroupCondition:
    """
    Holds when at least `minimum` of the user's matched SKUs are in `group`,
    not counting SKUs that also belong to any group in `excluding`.
    """
    group: str
    minimum: int = 1
    excluding: tuple[str, ...] = ()

    def holds(self, memberships: Memberships) -> bool:
        held = set(memberships.get(self.group, frozenset()))
        for other in self.excluding:
            held -= memberships.get(other, frozenset())
        return len(held) >= self.minimum


@dataclass(frozen=True)
class LicenseRule:
    """A named violation that fires when every condition holds."""
    name: str
    conditions: tuple[GroupCondition, ...]

    def matches(self, memberships: Memberships) -> bool:
        return all(c.holds(memberships) for c in self.conditions)


@dataclass(frozen=True)
class RuleTable:
    groups: Mapping[str, frozenset]
    rules: tuple[LicenseRule, ...] = field(default_factory=tuple)

    def __post_init__(self):
        for rule in self.rules:
            if not rule.conditions:
                raise ConfigError(f"Rule '{rule.name}' has no conditions")
            for condition in rule.conditions:
                for name in (condition.group, *condition.excluding):
                    if name not in self.groups:
                        raise ConfigError(f"Rule '{rule.name}' refers to unknown group '{name}'")

    def memberships(self, skus: frozenset) -> dict[str, frozenset]:
        """The subset of `skus` in each group."""
        return {name: skus & members for name, members in self.groups.items()}

    @classmethod
    def from_config(cls, config: LicenseAuditConfig) -> "RuleTable":
        groups = {
            name: frozenset(str(s).lower() for s in skus)
            for name, skus in config.groups.items()
        }
        rules = tuple(_rule_from_dict(r) for r in config.rules)
        logger.debug(f"Loaded {len(rules)} license rules over {len(groups)} SKU groups")
        return cls(groups=groups, rules=rules)


def _rule_from_dict(data: dict[str, Any]) -> LicenseRule:
    try:
        return LicenseRule(
            name=data["name"],
            conditions=tuple(
                GroupCondition(
                    group=c["group"],
                    minimum=int(c.get("minimum", 1)),
                    excluding=tuple(c.get("excluding", ())),
                )
                for c in data["conditions"]
            ),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid license rule {data!r}: {e}") from e


def normalize_tracked(tracked_skus: Mapping[str, str]) -> dict[str, str]:
    return {str(sku).lower(): name for sku, name in tracked_skus.items()}


def evaluate_license_rules(
    user: LicensedUser,
    tracked_skus: Mapping[str, str],
    rule_table: RuleTable,
) -> Optional[Violation]:
    """
    Apply every rule to the user's tracked SKUs.
    Returns None when the user holds no tracked SKU or breaks no rule.
    """
    tracked_skus = normalize_tracked(tracked_skus)
    matched = frozenset(sku.lower() for sku in user.sku_ids) & frozenset(tracked_skus)
    if not matched:
        return None

    memberships = rule_table.memberships(matched)
    violated = tuple(rule.name for rule in rule_table.rules if rule.matches(memberships))
    if not violated:
        return None

    names = tuple(sorted(tracked_skus[sku] for sku in matched))
    return Violation(user=user, matched_licenses=names, rules=violated)
