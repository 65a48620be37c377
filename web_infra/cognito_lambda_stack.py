from aws_cdk import (
    CfnOutput,
    Duration,
    Stack,
    aws_iam as iam,
    aws_lambda as _lambda,
)
from constructs import Construct

import common.constants as constants
from common.stack_context import StackContext


class CognitoLambdaStack(Stack):
    """Cognito triggers shared by every environment.

    Deployed once per account; the function ARN is exported so user pools can
    attach it as their Pre Token Generation (V2) trigger.
    """

    def __init__(self, scope: Construct, construct_id: str, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.context = StackContext(scope=self, component=constants.COMPONENT_AUTH)

        self.log_group = self.context.build_log_group(
            constants.PRE_TOKEN_GENERATION_FUNCTION_NAME
        )
        self.role = self._build_execution_role()
        self.pre_token_generation_lambda = self._build_pre_token_generation_lambda()

        # Cognito invokes the trigger directly
        self.pre_token_generation_lambda.add_permission(
            "CognitoInvoke",
            principal=iam.ServicePrincipal("cognito-idp.amazonaws.com"),
            action="lambda:InvokeFunction",
            source_arn=f"arn:aws:cognito-idp:{self.region}:{self.account}:userpool/*",
        )

        CfnOutput(
            self,
            "PreTokenGenerationLambdaArn",
            value=self.pre_token_generation_lambda.function_arn,
            description="ARN of the Pre Token Generation Lambda to attach to Cognito user pools",
            export_name=constants.PRE_TOKEN_GENERATION_EXPORT_NAME,
        )

    def _build_execution_role(self) -> iam.Role:
        return iam.Role(
            self,
            self.context.build_resource_id("Role", action="PreTokenGeneration"),
            assumed_by=iam.ServicePrincipal("lambda.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "service-role/AWSLambdaBasicExecutionRole"
                ),
            ],
        )

    def _build_pre_token_generation_lambda(self) -> _lambda.Function:
        layers = [
            _lambda.LayerVersion.from_layer_version_arn(
                self,
                self.context.build_resource_id("LambdaPowerToolsLayer"),
                layer_version_arn=self.context.build_power_tools_layer_arn(),
            ),
        ]
        return _lambda.Function(
            self,
            self.context.build_resource_id("Function", action="PreTokenGeneration"),
            function_name=constants.PRE_TOKEN_GENERATION_FUNCTION_NAME,
            runtime=constants.PYTHON_RUNTIME,
            architecture=constants.DEFAULT_ARCHITECTURE,
            handler="pre_token_generation.handler",
            code=_lambda.Code.from_asset(constants.LAMBDA_CODE_DIR),
            description="Cognito Pre Token Generation V2 trigger - adds domainId claim to tokens",
            timeout=Duration.seconds(5),
            memory_size=128,
            role=self.role,
            layers=layers,
            tracing=_lambda.Tracing.ACTIVE,
            log_group=self.log_group,
            environment={
                "LOG_LEVEL": "INFO",
                "POWERTOOLS_SERVICE_NAME": constants.PRE_TOKEN_GENERATION_FUNCTION_NAME,
            },
        )
