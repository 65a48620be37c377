from attrs import define, evolve, field
from attrs.validators import instance_of
from aws_cdk import (
    CfnOutput,
    CfnTag,
    Duration,
    SecretValue,
    Stack,
    aws_amplify as amplify,
    aws_certificatemanager as acm,
    aws_ec2 as ec2,
    aws_elasticloadbalancingv2 as elbv2,
    aws_elasticloadbalancingv2_targets as elbv2_targets,
    aws_iam as iam,
    aws_route53 as route53,
    aws_route53_targets as route53_targets,
)
from constructs import Construct

import common.constants as constants
from common.environments import EnvironmentConfig
from common.routing import (
    RoutingRule,
    RuleAction,
    build_api_routing_rules,
    validate_routing_rules,
)
from common.stack_context import StackContext
from web_infra.bootstrap import BootstrapConfig, build_user_data


@define(slots=True, frozen=True, kw_only=True)
class WebappBuildSettings:
    """Environment variables handed to the Amplify build."""

    node_env: str = field(validator=instance_of(str))
    parameter_prefix: str = field(validator=instance_of(str))
    monorepo_app_root: str = field(default=constants.WEBAPP_MONOREPO_APP_ROOT)
    node_version: str = field(default=constants.WEBAPP_NODE_VERSION)

    def to_environment_variables(self) -> list[amplify.CfnApp.EnvironmentVariableProperty]:
        variables = {
            "NODE_ENV": self.node_env,
            "AMPLIFY_MONOREPO_APP_ROOT": self.monorepo_app_root,
            "NODE_VERSION": self.node_version,
            "PARAMETER_PREFIX": self.parameter_prefix,
        }
        return [
            amplify.CfnApp.EnvironmentVariableProperty(name=name, value=value)
            for name, value in variables.items()
        ]


class WebInfraStack(Stack):
    """Per-environment web stack: API instance behind an ALB, Amplify webapp, DNS."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        env_config: EnvironmentConfig,
        vpc: ec2.IVpc,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.env_config = env_config
        self.context = StackContext(
            scope=self, env=env_config.name, component=constants.COMPONENT_API
        )
        self.webapp_context = evolve(self.context, component=constants.COMPONENT_WEBAPP)

        # Security groups: the instance only accepts traffic from the load balancer
        self.alb_security_group = self._build_alb_security_group(vpc)
        self.instance_security_group = self._build_instance_security_group(vpc)

        # API instance
        self.instance_role = self._build_instance_role()
        self.instance = self._build_api_instance(vpc)
        self.elastic_ip = self._build_elastic_ip() if env_config.allocate_eip else None

        # Amplify webapp
        self.amplify_app = self._build_amplify_app()
        self.amplify_branch = self._build_amplify_branch()
        self.amplify_domain = self._build_amplify_domain()

        # Load balancer
        self.zone = self._build_hosted_zone()
        self.certificate = self._build_certificate()
        self.alb = self._build_application_load_balancer(vpc)
        self.https_listener = self._build_https_listener()
        self.target_group = self._build_target_group(vpc)
        self.listener_rules = [
            self._build_listener_rule(rule)
            for rule in validate_routing_rules(build_api_routing_rules(env_config))
        ]

        # DNS
        self.api_record = self._build_api_record()

        self._build_outputs()

    # Security

    def _build_alb_security_group(self, vpc: ec2.IVpc) -> ec2.SecurityGroup:
        alb_sg = ec2.SecurityGroup(
            self,
            self.context.build_resource_id("SecurityGroup", action="alb"),
            vpc=vpc,
            allow_all_outbound=True,
            description=f"Load balancer for Firenze Web API ({self.env_config.name})",
        )
        alb_sg.add_ingress_rule(
            peer=ec2.Peer.any_ipv4(),
            connection=ec2.Port.tcp(80),
            description="Allow HTTP (redirected to HTTPS)",
        )
        alb_sg.add_ingress_rule(
            peer=ec2.Peer.any_ipv4(),
            connection=ec2.Port.tcp(443),
            description="Allow HTTPS",
        )
        return alb_sg

    def _build_instance_security_group(self, vpc: ec2.IVpc) -> ec2.SecurityGroup:
        instance_sg = ec2.SecurityGroup(
            self,
            self.context.build_resource_id("SecurityGroup", action="instance"),
            vpc=vpc,
            allow_all_outbound=True,
            description=f"Security group for Firenze Web API ({self.env_config.name})",
        )
        instance_sg.add_ingress_rule(
            peer=self.alb_security_group,
            connection=ec2.Port.tcp(constants.API_PORT),
            description="ALB access on API port",
        )
        return instance_sg

    def _build_instance_role(self) -> iam.Role:
        role = iam.Role(
            self,
            self.context.build_resource_id("Role"),
            assumed_by=iam.ServicePrincipal("ec2.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "AmazonSSMManagedInstanceCore"
                ),
            ],
        )
        # Runtime configuration is read by the API itself from its parameter prefix
        role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=[
                    "ssm:GetParameter",
                    "ssm:GetParameters",
                    "ssm:GetParametersByPath",
                ],
                resources=[self.context.parameter_arn()],
            )
        )
        # Source-control token fetched by the deploy script
        role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["secretsmanager:GetSecretValue"],
                resources=[
                    f"arn:aws:secretsmanager:{self.region}:{self.account}:"
                    f"secret:{constants.GITHUB_TOKEN_SECRET_NAME}-*"
                ],
            )
        )
        return role

    # Compute

    def _build_api_instance(self, vpc: ec2.IVpc) -> ec2.Instance:
        bootstrap = BootstrapConfig.for_environment(self.env_config, region=self.region)
        return ec2.Instance(
            self,
            self.context.build_resource_id("Instance"),
            vpc=vpc,
            # Explicit name so CI/CD can find the instance for redeploys
            instance_name=self.context.build_resource_name("instance"),
            instance_type=ec2.InstanceType(self.env_config.instance_type),
            machine_image=ec2.MachineImage.latest_amazon_linux2023(),
            role=self.instance_role,
            security_group=self.instance_security_group,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
            user_data=build_user_data(bootstrap),
            user_data_causes_replacement=True,
            require_imdsv2=True,
        )

    def _build_elastic_ip(self) -> ec2.CfnEIP:
        return ec2.CfnEIP(
            self,
            self.context.build_resource_id("Eip"),
            domain="vpc",
            instance_id=self.instance.instance_id,
            tags=[CfnTag(key="Name", value=self.context.build_resource_name("eip"))],
        )

    # Webapp

    def _build_amplify_app(self) -> amplify.CfnApp:
        amplify_role = iam.Role(
            self,
            self.webapp_context.build_resource_id("Role"),
            assumed_by=iam.ServicePrincipal("amplify.amazonaws.com"),
            managed_policies=[
                iam.ManagedPolicy.from_aws_managed_policy_name(
                    "AdministratorAccess-Amplify"
                ),
            ],
        )
        amplify_role.add_to_policy(
            iam.PolicyStatement(
                effect=iam.Effect.ALLOW,
                actions=["ssm:GetParametersByPath", "ssm:GetParameters"],
                resources=[self.webapp_context.parameter_arn()],
            )
        )
        build_settings = WebappBuildSettings(
            node_env=self.env_config.label,
            parameter_prefix=self.webapp_context.parameter_prefix,
        )
        return amplify.CfnApp(
            self,
            self.webapp_context.build_resource_id("App"),
            name=f"{constants.SERVICE_NAME}-webapp-{self.env_config.name}",
            repository=constants.WEBAPP_REPOSITORY_URL,
            access_token=SecretValue.secrets_manager(
                constants.GITHUB_TOKEN_SECRET_NAME
            ).unsafe_unwrap(),
            iam_service_role=amplify_role.role_arn,
            environment_variables=build_settings.to_environment_variables(),
            custom_rules=[
                amplify.CfnApp.CustomRuleProperty(
                    source="/<*>",
                    target="/index.html",
                    status="200",
                ),
            ],
        )

    def _build_amplify_branch(self) -> amplify.CfnBranch:
        return amplify.CfnBranch(
            self,
            self.webapp_context.build_resource_id("Branch"),
            app_id=self.amplify_app.attr_app_id,
            branch_name=self.env_config.default_branch,
            enable_auto_build=True,
            stage="PRODUCTION" if self.env_config.is_production else "DEVELOPMENT",
        )

    def _build_amplify_domain(self) -> amplify.CfnDomain:
        domain = amplify.CfnDomain(
            self,
            self.webapp_context.build_resource_id("Domain"),
            app_id=self.amplify_app.attr_app_id,
            domain_name=self.env_config.webapp_domain,
            sub_domain_settings=[
                amplify.CfnDomain.SubDomainSettingProperty(
                    branch_name=self.amplify_branch.branch_name,
                    prefix="",  # binds the bare <env>.<root domain>
                ),
            ],
        )
        domain.add_dependency(self.amplify_branch)
        return domain

    # Load balancer

    def _build_hosted_zone(self) -> route53.IHostedZone:
        if self.env_config.hosted_zone_id:
            return route53.HostedZone.from_hosted_zone_attributes(
                self,
                self.context.build_resource_id("Zone"),
                hosted_zone_id=self.env_config.hosted_zone_id,
                zone_name=constants.ROOT_DOMAIN,
            )
        return route53.HostedZone.from_lookup(
            self,
            self.context.build_resource_id("Zone"),
            domain_name=constants.ROOT_DOMAIN,
        )

    def _build_certificate(self) -> acm.ICertificate:
        if self.env_config.certificate_arn:
            return acm.Certificate.from_certificate_arn(
                self,
                self.context.build_resource_id("Certificate"),
                self.env_config.certificate_arn,
            )
        return acm.Certificate(
            self,
            self.context.build_resource_id("Certificate"),
            domain_name=self.env_config.api_domain,
            validation=acm.CertificateValidation.from_dns(self.zone),
        )

    def _build_application_load_balancer(
        self, vpc: ec2.IVpc
    ) -> elbv2.ApplicationLoadBalancer:
        alb = elbv2.ApplicationLoadBalancer(
            self,
            self.context.build_resource_id("LoadBalancer"),
            vpc=vpc,
            internet_facing=True,
            load_balancer_name=self.context.build_resource_name("alb"),
            security_group=self.alb_security_group,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PUBLIC),
        )
        alb.add_redirect(source_port=80, target_port=443, open=False)
        return alb

    def _build_https_listener(self) -> elbv2.ApplicationListener:
        return self.alb.add_listener(
            "HttpsListener",
            port=443,
            protocol=elbv2.ApplicationProtocol.HTTPS,
            certificates=[
                elbv2.ListenerCertificate.from_certificate_manager(self.certificate)
            ],
            open=False,
            default_action=elbv2.ListenerAction.fixed_response(
                404, content_type="text/plain", message_body="Not Found"
            ),
        )

    def _build_target_group(self, vpc: ec2.IVpc) -> elbv2.ApplicationTargetGroup:
        return elbv2.ApplicationTargetGroup(
            self,
            self.context.build_resource_id("TargetGroup"),
            vpc=vpc,
            target_group_name=self.context.build_resource_name("tg"),
            port=constants.API_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.INSTANCE,
            targets=[elbv2_targets.InstanceTarget(self.instance, constants.API_PORT)],
            health_check=elbv2.HealthCheck(
                path=constants.HEALTH_CHECK_PATH,
                healthy_http_codes="200",
                interval=Duration.seconds(30),
                healthy_threshold_count=2,
                unhealthy_threshold_count=3,
            ),
            deregistration_delay=Duration.seconds(30),
        )

    def _listener_action(self, rule: RoutingRule) -> elbv2.ListenerAction:
        if rule.action is RuleAction.REDIRECT_WEBAPP:
            return elbv2.ListenerAction.redirect(
                host=self.env_config.webapp_domain,
                protocol="HTTPS",
                port="443",
                permanent=False,
            )
        return elbv2.ListenerAction.forward([self.target_group])

    def _build_listener_rule(self, rule: RoutingRule) -> elbv2.ApplicationListenerRule:
        return elbv2.ApplicationListenerRule(
            self,
            self.context.build_resource_id("ListenerRule", action=rule.name),
            listener=self.https_listener,
            priority=rule.priority,
            conditions=[
                elbv2.ListenerCondition.host_headers(list(rule.host_headers)),
                elbv2.ListenerCondition.path_patterns(list(rule.path_patterns)),
            ],
            action=self._listener_action(rule),
        )

    # DNS

    def _build_api_record(self) -> route53.ARecord:
        return route53.ARecord(
            self,
            self.context.build_resource_id("AliasRecord"),
            zone=self.zone,
            record_name=self.env_config.api_domain,
            target=route53.RecordTarget.from_alias(
                route53_targets.LoadBalancerTarget(self.alb)
            ),
        )

    def _build_outputs(self) -> None:
        CfnOutput(self, "ApiUrl", value=f"https://{self.env_config.api_domain}")
        CfnOutput(self, "WebappUrl", value=f"https://{self.env_config.webapp_domain}")
        CfnOutput(
            self,
            "ApiInstanceId",
            value=self.instance.instance_id,
            description="Target for ad-hoc redeploys (/usr/local/bin/deploy-api [branch])",
        )
        CfnOutput(self, "AlbDnsName", value=self.alb.load_balancer_dns_name)
        if self.elastic_ip is not None:
            CfnOutput(self, "ApiElasticIp", value=self.elastic_ip.attr_public_ip)
