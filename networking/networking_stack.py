from aws_cdk import (
    CfnOutput,
    Stack,
    aws_ec2 as ec2,
    aws_ssm as ssm,
)
from constructs import Construct

from common import constants
from common.environments import EnvironmentConfig
from common.stack_context import StackContext


class NetworkingStack(Stack):

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        env_config: EnvironmentConfig,
        vpc: ec2.IVpc | None = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.env_config = env_config
        self.context = StackContext(
            scope=self, env=env_config.name, component=constants.COMPONENT_NETWORK
        )

        self.vpc = vpc or self.create_vpc()
        self.vpc_endpoint()
        self.create_vpc_id_ssm_parameter()

        CfnOutput(self, "VpcId", value=self.vpc.vpc_id)

    def create_vpc_id_ssm_parameter(self) -> ssm.StringParameter:
        """Persist vpc id in SSM"""
        return ssm.StringParameter(
            self,
            self.context.build_resource_id("VpcIdParameter"),
            description=f"Firenze VPC ID ({self.env_config.name})",
            parameter_name=f"{self.context.parameter_prefix}/vpc-id",
            string_value=self.vpc.vpc_id,
        )

    def vpc_endpoint(self) -> ec2.GatewayVpcEndpoint:
        """Gateway VPC endpoint for S3 (uses route tables in selected subnets)."""
        return ec2.GatewayVpcEndpoint(
            self,
            self.context.build_resource_id("S3Endpoint"),
            vpc=self.vpc,
            service=ec2.GatewayVpcEndpointAwsService.S3,
            subnets=[
                ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            ],
        )

    def create_vpc(self) -> ec2.Vpc:

        vpc = ec2.Vpc(
            self,
            self.context.build_resource_id("Vpc"),
            max_azs=constants.MAX_AZS,
            nat_gateways=constants.NAT_GATEWAYS,
            vpc_name=self.context.build_resource_name("vpc"),
            ip_addresses=ec2.IpAddresses.cidr(constants.VPC_CIDR),
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="Public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=constants.CIDR_MASK,
                ),
                ec2.SubnetConfiguration(
                    name="Private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=constants.CIDR_MASK,
                ),
            ],
        )
        return vpc
