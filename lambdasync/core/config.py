"""
Deploy configuration.

Loads the declarative deploy document (YAML) into frozen pydantic models and
exposes process settings read from environment variables via pydantic-settings.
"""

from __future__ import annotations

import os
import string
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from lambdasync.core.errors import ConfigError

DEFAULT_CONFIG_FILE = "deploy.yml"


class _DocumentModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="forbid")


class VpcConfig(_DocumentModel):
    subnet_ids: Tuple[str, ...] = Field(default=(), alias="SubnetIds")
    security_group_ids: Tuple[str, ...] = Field(default=(), alias="SecurityGroupIds")


class EnvironmentConfig(_DocumentModel):
    variables: Dict[str, str] = Field(default_factory=dict, alias="Variables")

    @field_validator("variables", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> Any:
        # YAML scalars such as 8080 or true arrive typed; the platform wants strings.
        if isinstance(value, dict):
            return {str(k): "" if v is None else str(v) for k, v in value.items()}
        return value


class FunctionSpec(_DocumentModel):
    """Declared desired state for one function."""

    name: str = Field(..., min_length=1, alias="FunctionName")
    role: str = Field(..., min_length=1, alias="Role")
    runtime: Optional[str] = Field(default=None, alias="Runtime")
    handler: Optional[str] = Field(default=None, alias="Handler")
    description: Optional[str] = Field(default=None, alias="Description")
    memory_size: Optional[int] = Field(default=None, gt=0, alias="MemorySize")
    timeout: Optional[int] = Field(default=None, gt=0, alias="Timeout")
    environment: Optional[EnvironmentConfig] = Field(default=None, alias="Environment")
    vpc_config: Optional[VpcConfig] = Field(default=None, alias="VpcConfig")
    architectures: Optional[Tuple[str, ...]] = Field(default=None, alias="Architectures")

    def overrides(self) -> Dict[str, Any]:
        """Declared configuration in platform parameter form (unset keys omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True, exclude={"name"})


class LayerOptions(_DocumentModel):
    name: Optional[str] = Field(default=None, min_length=1, alias="Name")


class PackageOptions(_DocumentModel):
    ignore: Tuple[str, ...] = Field(default=(), alias="Ignore")


class PrunePolicy(_DocumentModel):
    retention_count: Optional[int] = Field(default=None, ge=0, alias="RetentionCount")
    include_layers: bool = Field(default=False, alias="IncludeLayers")


class DeployConfig(_DocumentModel):
    service: str = Field(..., min_length=1, alias="Service")
    functions: Dict[str, FunctionSpec] = Field(..., alias="Functions")
    layer: LayerOptions = Field(default_factory=LayerOptions, alias="Layer")
    package: PackageOptions = Field(default_factory=PackageOptions, alias="Package")
    prune: Optional[PrunePolicy] = Field(default=None, alias="Prune")

    @model_validator(mode="after")
    def _check_functions(self) -> "DeployConfig":
        if not self.functions:
            raise ValueError("Functions must declare at least one function")
        seen: set[str] = set()
        for spec in self.functions.values():
            if spec.name in seen:
                raise ValueError(f"duplicate FunctionName: {spec.name}")
            seen.add(spec.name)
        return self

    @property
    def function_specs(self) -> Tuple[FunctionSpec, ...]:
        """Function declarations in document order."""
        return tuple(self.functions.values())

    @property
    def layer_name(self) -> str:
        return self.layer.name or self.service


class DeploySettings(BaseSettings):
    """
    Process settings for a reconciler run.
    """

    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FORMAT: str = Field(default="text", description="Log format: text or json")

    SETTLE_MAX_ATTEMPTS: int = Field(default=100, gt=0, description="Settle poll attempts")
    SETTLE_INTERVAL_SECONDS: float = Field(
        default=1.0, ge=0, description="Delay between settle polls (seconds)"
    )
    RUN_DEADLINE_SECONDS: Optional[float] = Field(
        default=None, gt=0, description="Overall deadline for remote waits (seconds)"
    )

    AWS_REGION: Optional[str] = Field(default=None, description="Platform region")
    NPM_BIN: str = Field(default="npm", description="npm executable for layer installs")
    PYTHON_BIN: Optional[str] = Field(
        default=None, description="Python executable for pip layer installs"
    )

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=True, extra="ignore"
    )


def load_deploy_config(path: Path) -> DeployConfig:
    """
    Load the deploy document, substitute ${VAR} references and validate it.

    Raises:
        ConfigError: the file is missing, is not valid YAML, or fails validation.
    """
    config_path = Path(path)
    if not config_path.is_file():
        raise ConfigError(f"not found {config_path}")

    try:
        template = string.Template(config_path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read {config_path}: {e}") from e

    content = template.safe_substitute(os.environ)
    try:
        payload = yaml.safe_load(content) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {config_path}: {e}") from e

    if not isinstance(payload, dict):
        raise ConfigError(f"deploy document must be a mapping: {config_path}")

    try:
        return DeployConfig.model_validate(payload)
    except ValidationError as e:
        raise ConfigError(_format_validation_error(config_path, e)) from e


def _format_validation_error(path: Path, error: ValidationError) -> str:
    problems: List[str] = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        if item.get("type") == "missing":
            message = "is not defined"
        problems.append(f"{location} {message}" if location else message)
    return f"invalid deploy document {path}: " + "; ".join(problems)
