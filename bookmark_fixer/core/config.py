from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Host application
    host_base_url: str = "https://core.ggather.com"
    host_api_path: str = "/api"

    # Call classification
    metadata_lookup_path: str = "/api/get-urldata/"
    bookmark_create_path: str = "/api/add-urlbookmark/"
    bookmark_edit_marker: str = "edit-urlbookmark"

    # Enrichment
    editor_component: str = "saveurl"
    settle_delay: float = 1.0

    # HTTP
    http_timeout: float = 10.0
    http_verify_ssl: bool = True  # set False behind corporate SSL-inspection proxies
    user_agent: str = (
        "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Logging
    log_level: str = "INFO"

    @property
    def host_api_url(self) -> str:
        return self.host_base_url.rstrip("/") + self.host_api_path


settings = Settings()
