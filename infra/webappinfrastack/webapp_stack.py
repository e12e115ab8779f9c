"""Module for defining the web application infrastructure using AWS CDK.

This module contains the CDK stack definition for a single EC2 instance
running the application behind an internet-facing Application Load
Balancer in the account's default VPC.

The default VPC, its subnets and the AMI are resolved with boto3 before
the stack is declared, so the stack itself performs no context lookups.
"""

from logging import getLogger
from typing import Any, Optional

import aws_cdk as cdk
import aws_cdk.aws_ec2 as ec2
import aws_cdk.aws_elasticloadbalancingv2 as elbv2
import aws_cdk.aws_elasticloadbalancingv2_targets as elbv2_targets
from constructs import Construct
from rich import box
from rich.console import Console
from rich.table import Table

from webappinfra._lookups import ResolvedEnvironment, resolve_environment
from webappinfra._user_data import APP_PORT, render_user_data
from webappinfra.schema import WebAppConfig

logger = getLogger(__name__)

HTTP_PORT = 80
SSH_PORT = 22
# IMPORTANT: restrict this to your own IP/32
SSH_INGRESS_CIDR = "0.0.0.0/0"

# CDK context key -> WebAppConfig field
CONTEXT_KEYS = {
    "instanceType": "instance_type",
    "appRepoUrl": "app_repo_url",
    "keyPairName": "key_pair_name",
    "region": "region",
}


class WebAppStack(cdk.Stack):
    """CDK Stack for the web application.

    Creates two security groups, the EC2 instance, and the load
    balancer with its target group and listener.
    """

    def __init__(
        self,
        scope: Construct,
        id: str,
        config: WebAppConfig,
        resolved: ResolvedEnvironment,
        **kwargs,
    ) -> None:
        """Initialize the web application stack.

        Args:
            scope: The parent construct.
            id: The construct ID.
            config: Validated stack configuration.
            resolved: Default VPC, subnets and AMI resolved ahead of time.
            **kwargs: Additional keyword arguments passed to the parent Stack.
        """
        super().__init__(scope, id, **kwargs)

        network = resolved.network

        # Default VPC, imported from the resolved ids; every subnet is public
        self.vpc = ec2.Vpc.from_vpc_attributes(
            self,
            "DefaultVpc",
            vpc_id=network.vpc_id,
            availability_zones=[s.availability_zone for s in network.subnets],
            public_subnet_ids=network.subnet_ids,
        )

        # Security group for the ALB: public HTTP in, everything out
        self.alb_security_group = ec2.SecurityGroup(
            self,
            "AlbSecurityGroup",
            vpc=self.vpc,
            description="Allow HTTP inbound traffic for ALB",
            allow_all_outbound=True,
        )
        self.alb_security_group.add_ingress_rule(
            ec2.Peer.any_ipv4(),
            ec2.Port.tcp(HTTP_PORT),
            "Allow HTTP from anywhere",
        )
        cdk.Tags.of(self.alb_security_group).add("Name", f"{config.app_name}-alb-sg")

        # Security group for the instance: app port from the ALB only, plus SSH
        self.instance_security_group = ec2.SecurityGroup(
            self,
            "InstanceSecurityGroup",
            vpc=self.vpc,
            description="Allow HTTP from ALB and SSH",
            allow_all_outbound=True,  # apt-get, git clone, npm
        )
        self.instance_security_group.add_ingress_rule(
            self.alb_security_group,
            ec2.Port.tcp(APP_PORT),
            "Allow application traffic only from the ALB",
        )
        self.instance_security_group.add_ingress_rule(
            ec2.Peer.ipv4(SSH_INGRESS_CIDR),
            ec2.Port.tcp(SSH_PORT),
            "Allow SSH",
        )
        cdk.Tags.of(self.instance_security_group).add(
            "Name", f"{config.app_name}-instance-sg"
        )
        logger.warning(
            f"SSH (port {SSH_PORT}) is open to {SSH_INGRESS_CIDR}; "
            "restrict it to your own IP/32"
        )

        logger.debug(f"Using key pair '{config.key_pair_name}'")

        self.instance = ec2.Instance(
            self,
            "WebAppInstance",
            instance_name=config.app_name,
            instance_type=ec2.InstanceType(config.instance_type),
            machine_image=ec2.MachineImage.generic_linux(
                {config.region: resolved.image.image_id}
            ),
            vpc=self.vpc,
            # Use the first default subnet
            vpc_subnets=ec2.SubnetSelection(subnets=[self.vpc.public_subnets[0]]),
            security_group=self.instance_security_group,
            key_pair=ec2.KeyPair.from_key_pair_name(
                self, "KeyPair", config.key_pair_name
            ),
            user_data=ec2.UserData.custom(render_user_data(config.app_repo_url)),
            user_data_causes_replacement=True,
        )

        self.load_balancer = elbv2.ApplicationLoadBalancer(
            self,
            "LoadBalancer",
            vpc=self.vpc,
            internet_facing=True,
            security_group=self.alb_security_group,
            vpc_subnets=ec2.SubnetSelection(subnets=self.vpc.public_subnets),
        )
        cdk.Tags.of(self.load_balancer).add("Name", f"{config.app_name}-alb")

        self.target_group = elbv2.ApplicationTargetGroup(
            self,
            "TargetGroup",
            vpc=self.vpc,
            port=APP_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.INSTANCE,
            health_check=elbv2.HealthCheck(
                path="/",
                protocol=elbv2.Protocol.HTTP,
                healthy_http_codes="200-399",
                interval=cdk.Duration.seconds(30),
                timeout=cdk.Duration.seconds(5),
                healthy_threshold_count=2,
                unhealthy_threshold_count=2,
            ),
            # Single target: this instance on the app port
            targets=[
                elbv2_targets.InstanceIdTarget(self.instance.instance_id, APP_PORT)
            ],
        )
        cdk.Tags.of(self.target_group).add("Name", f"{config.app_name}-tg")

        # Ingress on port 80 is already declared on the ALB security group
        self.listener = self.load_balancer.add_listener(
            "Listener",
            port=HTTP_PORT,
            protocol=elbv2.ApplicationProtocol.HTTP,
            open=False,
            default_target_groups=[self.target_group],
        )

        cdk.CfnOutput(
            self,
            "AlbUrl",
            value=self.load_balancer.load_balancer_dns_name,
            description="Public DNS name of the load balancer",
        )

        cdk.CfnOutput(
            self,
            "InstanceId",
            value=self.instance.instance_id,
            description="ID of the application instance",
        )

        cdk.CfnOutput(
            self,
            "InstancePublicIp",
            value=self.instance.instance_public_ip,
            description="Public IP of the application instance for SSH access",
        )


def context_overrides(scope: Construct) -> dict[str, str]:
    """Collect config overrides supplied as CDK context (``-c key=value``)."""
    overrides = {}
    for context_key, field in CONTEXT_KEYS.items():
        value = scope.node.try_get_context(context_key)
        if value is not None:
            overrides[field] = value
    return overrides


def print_resolution_summary(config: WebAppConfig, resolved: ResolvedEnvironment):
    table = Table(
        box=box.SQUARE,
        show_lines=False,
        title="Resolved deployment inputs",
        title_style="bold",
        title_justify="left",
    )
    table.add_column("Input")
    table.add_column("Value")
    table.add_row("Region", config.region)
    table.add_row("VPC", resolved.network.vpc_id)
    table.add_row("Instance subnet", resolved.network.subnet_ids[0])
    table.add_row("ALB subnets", ", ".join(resolved.network.subnet_ids))
    table.add_row("AMI", f"{resolved.image.image_id} ({resolved.image.name})")
    table.add_row("Instance type", config.instance_type)
    table.add_row("Key pair", config.key_pair_name)
    Console(stderr=True).print(table)


def build_webapp_stack(
    scope: Construct,
    id: str,
    ec2_client: Optional[Any] = None,
    **kwargs,
) -> WebAppStack:
    """Validate config, resolve lookups, then declare the stack.

    Any configuration or lookup failure is raised before a construct is
    added to ``scope``.
    """
    config = WebAppConfig.from_settings(**context_overrides(scope))
    resolved = resolve_environment(config, ec2_client)

    print_resolution_summary(config, resolved)

    tags = {"Project": "webappinfra", **dict(config.extra_tags)}

    return WebAppStack(
        scope,
        id,
        config=config,
        resolved=resolved,
        env=cdk.Environment(account=config.account, region=config.region),
        tags=tags,
        **kwargs,
    )
