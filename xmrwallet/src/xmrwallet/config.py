"""
Configuration management for the account client.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from xmrwallet.backends.wallet_rpc import DEFAULT_RPC_TIMEOUT
from xmrwallet.wallet.sync import DEFAULT_ACCOUNT_REFRESH_PERIOD


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="XMR_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    rpc_url: str = "http://127.0.0.1:18082"
    rpc_user: str = ""
    rpc_password: str = ""
    rpc_timeout: float = Field(default=DEFAULT_RPC_TIMEOUT, gt=0)

    account_refresh_period: float = Field(
        default=DEFAULT_ACCOUNT_REFRESH_PERIOD,
        gt=0,
        description="Seconds between the end of one account refresh and the start of the next",
    )

    log_level: str = "INFO"


def get_settings() -> Settings:
    return Settings()
