"""Listener rules for the API load balancer.

An ALB evaluates rules in ascending priority and stops at the first match, so
the static-asset rule has to sit below the catch-all. ``match_rule`` mirrors
that evaluation so the ordering can be checked without a deployed balancer.
"""
import re
from enum import Enum
from typing import Iterable, Optional, Sequence

from attrs import define, field
from attrs.validators import and_, deep_iterable, ge, instance_of, le

import common.constants as constants
from common.environments import EnvironmentConfig


def _wildcard_match(value: str, pattern: str) -> bool:
    """ALB condition match: only ``*`` and ``?`` are wildcards, the rest is literal."""
    regex = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.fullmatch(regex, value, flags=re.DOTALL) is not None


class RuleAction(str, Enum):
    FORWARD_API = "forward-api"
    REDIRECT_WEBAPP = "redirect-webapp"


@define(slots=True, frozen=True, kw_only=True)
class RoutingRule:
    name: str = field(validator=instance_of(str))
    priority: int = field(
        validator=and_(instance_of(int), ge(1), le(constants.MAX_RULE_PRIORITY))
    )
    host_headers: tuple[str, ...] = field(
        converter=tuple, validator=deep_iterable(instance_of(str))
    )
    path_patterns: tuple[str, ...] = field(
        converter=tuple, validator=deep_iterable(instance_of(str))
    )
    action: RuleAction = field(validator=instance_of(RuleAction))

    @property
    def is_catch_all(self) -> bool:
        return constants.CATCH_ALL_PATH_PATTERN in self.path_patterns

    def matches(self, host: str, path: str) -> bool:
        host = host.lower()
        host_ok = not self.host_headers or any(
            _wildcard_match(host, pattern.lower()) for pattern in self.host_headers
        )
        path_ok = not self.path_patterns or any(
            _wildcard_match(path, pattern) for pattern in self.path_patterns
        )
        return host_ok and path_ok


def build_api_routing_rules(env_config: EnvironmentConfig) -> list[RoutingRule]:
    base = env_config.rule_priority_base
    host = (env_config.api_domain,)
    return [
        RoutingRule(
            name="StaticAssets",
            priority=base,
            host_headers=host,
            path_patterns=(constants.STATIC_ASSET_PATH_PATTERN,),
            action=RuleAction.REDIRECT_WEBAPP,
        ),
        RoutingRule(
            name="CatchAll",
            priority=base + constants.CATCH_ALL_PRIORITY_OFFSET,
            host_headers=host,
            path_patterns=(constants.CATCH_ALL_PATH_PATTERN,),
            action=RuleAction.FORWARD_API,
        ),
    ]


def _hosts_overlap(first: RoutingRule, second: RoutingRule) -> bool:
    if not first.host_headers or not second.host_headers:
        return True
    return bool({h.lower() for h in first.host_headers} & {h.lower() for h in second.host_headers})


def validate_routing_rules(rules: Iterable[RoutingRule]) -> list[RoutingRule]:
    """Return the rules in evaluation order, rejecting ambiguous listeners.

    Raises ValueError when two rules share a priority or when a catch-all
    would shadow a more specific rule for the same host.
    """
    ordered = sorted(rules, key=lambda rule: rule.priority)
    seen: dict[int, str] = {}
    for rule in ordered:
        if rule.priority in seen:
            raise ValueError(
                f"Listener rules '{seen[rule.priority]}' and '{rule.name}' share priority {rule.priority}"
            )
        seen[rule.priority] = rule.name

    for index, rule in enumerate(ordered):
        if not rule.is_catch_all:
            continue
        for later in ordered[index + 1:]:
            if not later.is_catch_all and _hosts_overlap(rule, later):
                raise ValueError(
                    f"Catch-all rule '{rule.name}' (priority {rule.priority}) shadows "
                    f"'{later.name}' (priority {later.priority})"
                )
    return ordered


def match_rule(rules: Sequence[RoutingRule], host: str, path: str) -> Optional[RoutingRule]:
    for rule in sorted(rules, key=lambda rule: rule.priority):
        if rule.matches(host, path):
            return rule
    return None
