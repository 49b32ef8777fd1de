# devbastion/models/settings.py

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProvisionSettings(BaseSettings):
    """
    Settings for the provisioning driver and CLIs.
    Fields map to environment variables prefixed with `DEVBASTION_`,
    e.g. `DEVBASTION_KEY_PATH`, `DEVBASTION_SSH_USER`.
    """

    model_config = SettingsConfigDict(env_prefix="DEVBASTION_")

    ssh_user: str = "fedora"
    key_path: str = "./ssh-key"
    key_bits: int = Field(default=2048)
    ssh_config_path: str = "./ssh-config"
    control_persist: str = "5m"
    name_prefix: Optional[str] = None  # None => current user name
    stack: str = "dev"

    @field_validator("key_bits")
    @classmethod
    def validate_key_bits(cls, val: int) -> int:
        if val not in (2048, 3072, 4096):
            raise ValueError("key_bits must be one of 2048, 3072 or 4096")
        return val
