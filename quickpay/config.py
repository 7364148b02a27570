"""Application configuration via environment variables and ~/.config/quickpay.toml."""

from pathlib import Path
from typing import Literal

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

CONFIG_FILE = Path.home() / ".config" / "quickpay.toml"

REQUIRED_CREDENTIALS = (
    "client_id",
    "client_secret",
    "client_kid",
    "client_private_key",
    "redirect_uri",
)


class Settings(BaseSettings):
    # TrueLayer credentials
    client_id: str = ""
    client_secret: str = ""
    client_kid: str = ""
    client_private_key: str = ""  # PEM, EC P-521
    redirect_uri: str = ""
    environment: Literal["sandbox", "production"] = "sandbox"

    # Payer details sent with every new payment
    user_name: str = "QuickPay User"
    user_email: str = "quickpay@example.com"

    database_url: str = "sqlite+aiosqlite:///./quickpay.db"
    log_level: str = "WARNING"
    http_timeout_seconds: float = 15.0
    poll_interval_seconds: float = 1.0
    poll_timeout_seconds: float = 300.0

    # Local redirect landing page (quickpay serve)
    callback_host: str = "127.0.0.1"
    callback_port: int = 3000

    model_config = SettingsConfigDict(
        env_prefix="QUICKPAY__",
        env_file=".env",
        env_file_encoding="utf-8",
        toml_file=CONFIG_FILE,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            TomlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )

    def missing_credentials(self) -> list[str]:
        """Names of the credential fields that are still empty."""
        return [name for name in REQUIRED_CREDENTIALS if not getattr(self, name)]


settings = Settings()
