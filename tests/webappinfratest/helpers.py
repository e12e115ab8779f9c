import boto3
from botocore.exceptions import BotoCoreError, ClientError

from webappinfra._lookups import (
    ResolvedEnvironment,
    ResolvedImage,
    ResolvedNetwork,
    ResolvedSubnet,
)


def has_aws_creds():
    try:
        boto3.client("sts").get_caller_identity()
        return True
    except (BotoCoreError, ClientError):
        return False


def resolved_environment(subnet_ids=("subnet-s1", "subnet-s2")) -> ResolvedEnvironment:
    azs = ["eu-west-2a", "eu-west-2b", "eu-west-2c"]
    return ResolvedEnvironment(
        network=ResolvedNetwork(
            vpc_id="vpc-123",
            subnets=tuple(
                ResolvedSubnet(subnet_id=subnet_id, availability_zone=azs[i])
                for i, subnet_id in enumerate(subnet_ids)
            ),
        ),
        image=ResolvedImage(
            image_id="ami-0abc",
            name="ubuntu/images/hvm-ssd/ubuntu-jammy-22.04-amd64-server-20240301",
            creation_date="2024-03-01T00:00:00.000Z",
        ),
    )
