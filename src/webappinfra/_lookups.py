"""
Read-only lookups against the target AWS account.

The default VPC, its subnets and the machine image are resolved here,
one stage after the other, before any CDK construct is declared. Each
stage returns a frozen record that is handed to the next.
"""

from logging import getLogger
from typing import Any, Optional, Tuple

import boto3
from pydantic import BaseModel

from webappinfra.schema import WebAppConfig

logger = getLogger(__name__)

# Latest Ubuntu 22.04 LTS (Jammy) for amd64
UBUNTU_JAMMY_AMD64 = "ubuntu/images/hvm-ssd/ubuntu-jammy-22.04-amd64-server-*"
CANONICAL_OWNER_ID = "099720109477"


class LookupFailedError(ValueError):
    """An account lookup returned nothing usable."""


class ResolvedSubnet(BaseModel, frozen=True):
    subnet_id: str
    availability_zone: str


class ResolvedNetwork(BaseModel, frozen=True):
    """The default VPC and its subnets, in the order the API returned them."""

    vpc_id: str
    subnets: Tuple[ResolvedSubnet, ...]

    @property
    def subnet_ids(self) -> list[str]:
        return [subnet.subnet_id for subnet in self.subnets]


class ResolvedImage(BaseModel, frozen=True):
    image_id: str
    name: str
    creation_date: str


class ResolvedEnvironment(BaseModel, frozen=True):
    network: ResolvedNetwork
    image: ResolvedImage


def resolve_network(ec2_client: Any) -> ResolvedNetwork:
    """Find the account's default VPC and its member subnets.

    Raises:
        LookupFailedError: If there is no default VPC, or it has no subnets.
    """
    response = ec2_client.describe_vpcs(
        Filters=[{"Name": "is-default", "Values": ["true"]}]
    )
    if not response["Vpcs"]:
        raise LookupFailedError("Could not find a default VPC in this region")
    vpc_id = response["Vpcs"][0]["VpcId"]

    response = ec2_client.describe_subnets(
        Filters=[{"Name": "vpc-id", "Values": [vpc_id]}]
    )
    subnets = tuple(
        ResolvedSubnet(
            subnet_id=subnet["SubnetId"],
            availability_zone=subnet["AvailabilityZone"],
        )
        for subnet in response["Subnets"]
    )
    if not subnets:
        raise LookupFailedError(f"Default VPC {vpc_id} has no subnets")

    logger.debug(f"Resolved default VPC {vpc_id} with subnets {subnets}")
    return ResolvedNetwork(vpc_id=vpc_id, subnets=subnets)


def resolve_image(
    ec2_client: Any,
    name_pattern: str = UBUNTU_JAMMY_AMD64,
    owner: str = CANONICAL_OWNER_ID,
) -> ResolvedImage:
    """Find the most recently published image matching the name pattern.

    Raises:
        LookupFailedError: If no image matches.
    """
    response = ec2_client.describe_images(
        Owners=[owner],
        Filters=[
            {"Name": "name", "Values": [name_pattern]},
            {"Name": "virtualization-type", "Values": ["hvm"]},
        ],
    )
    if not response["Images"]:
        raise LookupFailedError(
            f"Could not find an AMI owned by {owner} matching '{name_pattern}'"
        )

    image = max(response["Images"], key=lambda i: i["CreationDate"])

    logger.debug(f"Resolved AMI {image['ImageId']} ({image.get('Name', '')})")
    return ResolvedImage(
        image_id=image["ImageId"],
        name=image.get("Name", ""),
        creation_date=image["CreationDate"],
    )


def resolve_environment(
    config: WebAppConfig, ec2_client: Optional[Any] = None
) -> ResolvedEnvironment:
    if ec2_client is None:
        ec2_client = boto3.client("ec2", region_name=config.region)

    network = resolve_network(ec2_client)
    image = resolve_image(ec2_client)

    return ResolvedEnvironment(network=network, image=image)
