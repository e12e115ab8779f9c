"""
Schema definitions for the web application infrastructure.

This module provides the configuration class used to declare the
web application stack, resolved from environment settings and
CDK context overrides.
"""

import os
from typing import Optional, Tuple

from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict

env_prefix = "WEBAPP_INFRA_"

DEFAULT_INSTANCE_TYPE = "t2.micro"  # free tier eligible
DEFAULT_APP_NAME = "video-to-audio-converter"


class MissingConfigError(ValueError):
    """A required configuration value was not supplied."""

    def __init__(self, field: str, message: str | None = None):
        self.field = field
        super().__init__(
            message
            or (
                f"Missing required configuration value '{field}'. Set "
                f"{env_prefix}{field.upper()} or pass it as CDK context."
            )
        )


class _WebAppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", env_prefix=env_prefix
    )
    region: Optional[str] = None
    account: Optional[str] = None
    instance_type: Optional[str] = None
    app_repo_url: Optional[str] = None
    key_pair_name: Optional[str] = None
    app_name: Optional[str] = None
    extra_tags_str: Optional[str] = None  # in the format "key1=value1;key2=value2"


class WebAppConfig(BaseModel, frozen=True):
    """
    Configuration for the web application stack.

    Attributes:
        region: AWS region to deploy into
        account: AWS account ID (optional)
        instance_type: EC2 instance type (optional, defaults to t2.micro)
        app_repo_url: git-cloneable URL of the application repository
        key_pair_name: name of an existing EC2 key pair for SSH access
        app_name: prefix for the Name tags on created resources
        extra_tags: tuple of 2-tuples of additional stack tags
    """

    region: str
    account: Optional[str] = None
    instance_type: str
    app_repo_url: str
    key_pair_name: str
    app_name: str
    extra_tags: Tuple[Tuple[str, str], ...]

    @classmethod
    def from_settings(cls, **kwargs):
        """Create an instance from environment settings with optional overrides."""
        settings = _WebAppSettings()

        params = {
            "region": settings.region,
            "account": settings.account,
            "instance_type": settings.instance_type,
            "app_repo_url": settings.app_repo_url,
            "key_pair_name": settings.key_pair_name,
            "app_name": settings.app_name,
            "extra_tags": unpack_tags(settings.extra_tags_str),
        }

        # Override with any provided kwargs
        params.update(kwargs)

        for field in ("app_repo_url", "key_pair_name"):
            if not params[field]:
                raise MissingConfigError(field)

        if not params["region"]:
            aws_region = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION")
            if aws_region:
                params["region"] = aws_region
            else:
                raise MissingConfigError(
                    "region",
                    "Region must be specified either in settings,"
                    f" or as an environment variable {env_prefix}REGION or AWS_REGION.",
                )

        if not params["instance_type"]:
            params["instance_type"] = DEFAULT_INSTANCE_TYPE

        if not params["app_name"]:
            params["app_name"] = DEFAULT_APP_NAME

        return cls(**params)


def unpack_tags(tags: str | None) -> Tuple[Tuple[str, str], ...]:
    tags_unpacked: list[Tuple[str, str]] = []
    if tags:
        try:
            for tag in tags.split(";"):
                key, value = tag.split("=")
                tags_unpacked.append((key.strip(), value.strip()))
        except ValueError:
            raise ValueError(
                "Tags must be in the format 'key1=value1;key2=value2', "
                f"but instead got {tags}"
            )
    return tuple(tags_unpacked)
