"""Per-environment deployment settings.

The environment name is chosen once per ``cdk`` invocation and threaded through
every stack as an ``EnvironmentConfig``. Branch and label resolution are plain
functions so they can be tested without synthesizing anything.
"""
from typing import Any, Optional

from attrs import define, field
from attrs.validators import gt, in_, instance_of, optional
from constructs import Node

import common.constants as constants

ENVIRONMENT_DEFAULTS: dict[str, dict[str, Any]] = {
    "prod": {"instance_type": "t3.small", "allocate_eip": True, "rule_priority_base": 100},
    "staging": {"instance_type": "t3.small", "allocate_eip": False, "rule_priority_base": 200},
    "dev": {"instance_type": "t3.micro", "allocate_eip": False, "rule_priority_base": 300},
}

CONTEXT_KEYS = {
    "instance_type": "instanceType",
    "certificate_arn": "certificateArn",
    "hosted_zone_id": "hostedZoneId",
}


def resolve_default_branch(env_name: str) -> str:
    """Branch tracked by an environment when no override is given."""
    if env_name == constants.PRODUCTION_ENV:
        return constants.PRODUCTION_BRANCH
    return constants.NON_PRODUCTION_BRANCH


def resolve_environment_label(env_name: str) -> str:
    """Runtime environment label handed to the applications (NODE_ENV style)."""
    if env_name == constants.PRODUCTION_ENV:
        return constants.PRODUCTION_LABEL
    return env_name


@define(slots=True, frozen=True, kw_only=True)
class EnvironmentConfig:
    name: str = field(validator=in_(constants.SUPPORTED_ENVS))
    instance_type: str = field(validator=instance_of(str))
    allocate_eip: bool = field(default=False, validator=instance_of(bool))
    rule_priority_base: int = field(validator=[instance_of(int), gt(0)])
    certificate_arn: Optional[str] = field(default=None, validator=optional(instance_of(str)))
    hosted_zone_id: Optional[str] = field(default=None, validator=optional(instance_of(str)))

    @property
    def is_production(self) -> bool:
        return self.name == constants.PRODUCTION_ENV

    @property
    def label(self) -> str:
        return resolve_environment_label(self.name)

    @property
    def default_branch(self) -> str:
        return resolve_default_branch(self.name)

    @property
    def api_domain(self) -> str:
        return f"{self.name}-api.{constants.ROOT_DOMAIN}"

    @property
    def webapp_domain(self) -> str:
        return f"{self.name}.{constants.ROOT_DOMAIN}"

    def parameter_prefix(self, component: str) -> str:
        return f"{constants.PARAMETER_ROOT}/{self.name}/{component}"


def build_environment_config(env_name: Optional[str] = None, **overrides: Any) -> EnvironmentConfig:
    """Build the config for ``env_name``, falling back to the default environment.

    Keyword overrides replace individual defaults; ``None`` values are ignored
    so unset CDK context keys keep the environment's defaults.
    """
    name = env_name or constants.DEFAULT_ENV
    if name not in ENVIRONMENT_DEFAULTS:
        raise ValueError(
            f"Unknown environment '{name}', expected one of: {', '.join(constants.SUPPORTED_ENVS)}"
        )
    settings = dict(ENVIRONMENT_DEFAULTS[name])
    settings.update({key: value for key, value in overrides.items() if value is not None})
    return EnvironmentConfig(name=name, **settings)


def environment_config_from_context(node: Node) -> EnvironmentConfig:
    """Read the environment and its overrides from CDK context (``-c env=dev``)."""
    overrides = {attr: node.try_get_context(key) for attr, key in CONTEXT_KEYS.items()}
    return build_environment_config(node.try_get_context("env"), **overrides)
