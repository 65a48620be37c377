#!/usr/bin/env python3
"""AWS CDK entrypoint for provisioning the Firenze web infrastructure.

The deployment environment is picked from CDK context (``cdk deploy -c env=dev``,
default ``prod``) and passed explicitly to the per-environment stacks. The
Cognito trigger stack is shared by every environment and deployed once per
account. Account and region come from the CDK CLI defaults.
"""
import os

import aws_cdk as cdk
from aws_cdk import Environment

from common.environments import environment_config_from_context
from networking.networking_stack import NetworkingStack
from web_infra.cognito_lambda_stack import CognitoLambdaStack
from web_infra.web_infra_stack import WebInfraStack

app = cdk.App()

env_config = environment_config_from_context(app.node)

env = Environment(
    account=os.getenv("CDK_DEFAULT_ACCOUNT"),
    region=os.getenv("CDK_DEFAULT_REGION"),
)

# Network first; the web stack consumes its VPC.
networking = NetworkingStack(
    app,
    f"NetworkingStack-{env_config.name}",
    env_config=env_config,
    env=env,
)

WebInfraStack(
    app,
    f"WebInfraStack-{env_config.name}",
    env_config=env_config,
    vpc=networking.vpc,
    env=env,
)

# Shared Cognito Lambda functions (environment-agnostic)
CognitoLambdaStack(
    app,
    "CognitoLambdaStack",
    env=env,
    description="Cognito Lambda triggers for pre-token generation",
)

app.synth()
