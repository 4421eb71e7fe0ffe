from pathlib import Path
from typing import Any, Literal

import envyaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict, YamlConfigSettingsSource
from pydantic_settings.sources.types import DEFAULT_PATH, PathType

from s2ctl.dates import DEFAULT_START_OFFSET
from s2ctl.model import DEFAULT_CLOUD_PERCENTAGE, DEFAULT_RESULTS_LIMIT


class EnvYamlConfigSettingsSource(YamlConfigSettingsSource):
    def __init__(
        self,
        settings_cls: type[BaseSettings],
        *,
        yaml_file: PathType | None = DEFAULT_PATH,
        yaml_file_encoding: str | None = None,
        env_file: Path | str | None = None,
    ):
        self.env_file = env_file or settings_cls.model_config.get("env_file")
        super().__init__(settings_cls, yaml_file=yaml_file, yaml_file_encoding=yaml_file_encoding)

    def _read_file(self, file_path: Path) -> dict[str, Any]:
        """Read YAML file with environment variable expansion.

        Args:
            file_path (Path): Path to YAML configuration file

        Returns:
            dict[str, Any]: Parsed configuration data with ``${VAR}`` references expanded
        """
        if Path(file_path).exists():
            env_file = self.env_file if self.env_file and Path(self.env_file).exists() else None
            return dict(envyaml.EnvYAML(file_path, env_file, flatten=False))
        return {}


class SciHubSearchSettings(BaseModel):
    url: str = "https://scihub.copernicus.eu/apihub/search"
    secondary_url: str = "https://scihub.copernicus.eu/dhus/search"
    odata_url: str | None = None
    page_size: int = 100
    max_retries: int = 3
    timeout: int = 30


class AwsSearchSettings(BaseModel):
    bucket: str = "sentinel-s2-l1c"
    region_name: str = "eu-central-1"


class SearchSettings(BaseModel):
    scihub: SciHubSearchSettings = SciHubSearchSettings()
    aws: AwsSearchSettings = AwsSearchSettings()


class HTTPDownloadSettings(BaseModel):
    max_retries: int = 3
    chunk_size: int = 8192
    timeout: int = 30


class S3DownloadSettings(BaseModel):
    max_retries: int = 3
    chunk_size: int = 8192
    region_name: str | None = None


class DownloadSettings(BaseModel):
    http: HTTPDownloadSettings = HTTPDownloadSettings()
    s3: S3DownloadSettings = S3DownloadSettings()


class Credentials(BaseModel):
    username: str | None = None
    password: str | None = None


class AuthSettings(BaseModel):
    scihub: Credentials = Credentials()


class ProxySettings(BaseModel):
    type: Literal["http", "socks"] | None = None
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None


class DefaultSettings(BaseModel):
    cloud_percentage: float = DEFAULT_CLOUD_PERCENTAGE
    limit: int = DEFAULT_RESULTS_LIMIT
    start_offset: int = DEFAULT_START_OFFSET


class S2CtlSettings(BaseSettings):
    model_config = SettingsConfigDict(
        yaml_file="config.yml",
        env_file=".env",
        env_prefix="S2CTL_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    search: SearchSettings = SearchSettings()
    download: DownloadSettings = DownloadSettings()
    auth: AuthSettings = AuthSettings()
    proxy: ProxySettings = ProxySettings()
    defaults: DefaultSettings = DefaultSettings()
    log_file: str = "s2ctl.log"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the YAML file between the dotenv file and file secrets.

        Args:
            settings_cls (type[BaseSettings]): Settings class being configured
            init_settings (PydanticBaseSettingsSource): Initialization settings source
            env_settings (PydanticBaseSettingsSource): Environment variable settings source
            dotenv_settings (PydanticBaseSettingsSource): Dotenv file settings source
            file_secret_settings (PydanticBaseSettingsSource): File secrets settings source

        Returns:
            tuple[PydanticBaseSettingsSource, ...]: Ordered tuple of settings sources
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            EnvYamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


_instance: S2CtlSettings | None = None


def get_settings(**kwargs: Any) -> S2CtlSettings:
    """Get or create the global settings instance.

    Args:
        **kwargs: Optional keyword arguments passed to S2CtlSettings constructor

    Returns:
        Global S2CtlSettings instance
    """
    global _instance
    if _instance is None:
        _instance = S2CtlSettings(**kwargs)
    return _instance


def reset_settings() -> None:
    global _instance
    _instance = None
