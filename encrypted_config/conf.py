"""
Encrypted Config options.

Options can be given per instance (a dict or a ConfigOptions) or read from
environment variables:
    ENCRYPTED_CONFIG_PREFIX = <key prefix marking encrypted values>
    ENCRYPTED_CONFIG_MAX_CONCURRENCY = <max parallel decrypt calls>
"""
import os
from typing import Any, Optional, Union
from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_PREFIX = "_"


class ConfigOptions(BaseModel):
    """Validated, immutable options of an EncryptedConfig."""

    prefix: str = Field(default=DEFAULT_PREFIX, min_length=1)
    max_concurrency: Optional[int] = Field(default=None, ge=1)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @field_validator("prefix")
    @classmethod
    def validate_prefix(cls, v: str) -> str:
        """Reject prefixes made only of whitespace."""
        if not v.strip():
            raise ValueError("prefix cannot be blank")
        return v

    @classmethod
    def from_env(cls) -> "ConfigOptions":
        """Create ConfigOptions from environment variables.

        Returns:
            Populated ConfigOptions instance; unset variables keep defaults.
        """
        values: dict[str, Any] = {}
        prefix = os.environ.get("ENCRYPTED_CONFIG_PREFIX")
        if prefix is not None:
            values["prefix"] = prefix
        concurrency = os.environ.get("ENCRYPTED_CONFIG_MAX_CONCURRENCY")
        if concurrency:
            values["max_concurrency"] = int(concurrency)
        return cls(**values)


def resolve_options(
    opts: Union[ConfigOptions, Mapping[str, Any], None] = None
) -> ConfigOptions:
    """Fill the given options with defaults.

    Args:
        opts: None, a mapping of option overrides, or ConfigOptions.

    Returns:
        ConfigOptions instance.

    Raises:
        TypeError: If opts is of an unsupported type.
        pydantic.ValidationError: If an option value is invalid.
    """
    if opts is None:
        return ConfigOptions()
    if isinstance(opts, ConfigOptions):
        return opts
    if isinstance(opts, Mapping):
        return ConfigOptions(**dict(opts))
    raise TypeError(
        f"options must be a mapping or ConfigOptions, got {type(opts).__name__}"
    )
