from attrs import define, field
from aws_cdk import RemovalPolicy, Stack, aws_logs as logs
from typing import Optional

import common.constants as constants


@define(slots=True, frozen=True)
class StackContext:
    scope: Stack
    env: str = field(
        default=constants.DEFAULT_ENV,
        metadata={"description": "Deployment environment (dev, staging, prod)"},
    )
    service: str = field(default=constants.SERVICE_NAME, init=False)
    domain: str = field(default=constants.DOMAIN)
    component: str = field(default=constants.COMPONENT_API)

    @property
    def aws_account_id(self) -> str:
        return Stack.of(self.scope).account

    @property
    def aws_region(self) -> str:
        return Stack.of(self.scope).region

    # ---------- layers ----------
    def build_power_tools_layer_arn(self) -> str:
        region = self.aws_region
        runtime = constants.POWER_TOOLS_PYTHON_RUNTIME
        version = constants.POWER_TOOLS_VERSION
        lambda_layer_account = constants.POWER_TOOLS_LAMBDA_LAYER_ACCOUNT
        power_tools_type = constants.POWER_TOOLS_LAMBDA_LAYER_NAME
        architecture = constants.POWER_TOOLS_ARCHITECTURE
        if not region:
            raise ValueError(
                "AWS region is not set, unable to resolve Power Tools Layer ARN"
            )
        return constants.POWER_TOOLS_LAYER.format(
            region=region,
            runtime=runtime,
            version=version,
            lambda_layer_account=lambda_layer_account,
            power_tools_type=power_tools_type,
            architecture=architecture,
        )

    # ---------- naming ----------
    def build_resource_name(
        self, resource_type: str, action: Optional[str] = None
    ) -> str:
        """Build resource name with optional action.

        Examples:
            - Without action: firenze-web-api-instance-dev
            - With action: firenze-web-api-alb-securitygroup-dev
        """
        if action:
            return f"{self.service}-{self.domain}-{self.component}-{action}-{resource_type}-{self.env}".lower()
        return f"{self.service}-{self.domain}-{self.component}-{resource_type}-{self.env}".lower()

    def build_resource_id(self, resource_type: str, action: Optional[str] = None) -> str:
        """Build resource ID with optional action.

        Examples:
            - Without action: FirenzeWebApiInstance
            - With action: FirenzeWebApiAlbSecuritygroup
        """
        if action:
            return (
                f"{self.service.capitalize()}"
                f"{self.domain.capitalize()}"
                f"{self.component.capitalize()}"
                f"{action.capitalize()}"
                f"{resource_type.capitalize()}"
            )
        return (
            f"{self.service.capitalize()}"
            f"{self.domain.capitalize()}"
            f"{self.component.capitalize()}"
            f"{resource_type.capitalize()}"
        )

    # ---------- parameters ----------
    @property
    def parameter_prefix(self) -> str:
        return f"{constants.PARAMETER_ROOT}/{self.env}/{self.component}"

    def parameter_arn(self) -> str:
        """ARN pattern covering every SSM parameter under this component's prefix."""
        return (
            f"arn:aws:ssm:{self.aws_region}:{self.aws_account_id}:"
            f"parameter{self.parameter_prefix}/*"
        )

    def build_log_group(self, function_name: str) -> logs.LogGroup:
        return logs.LogGroup(
            self.scope,
            self.build_resource_id("LogGroup"),
            log_group_name=f"/aws/lambda/{function_name}",
            removal_policy=RemovalPolicy.DESTROY,
            retention=logs.RetentionDays.ONE_YEAR,
        )
