import logging
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    host: str = "0.0.0.0"
    port: int = 3000
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    clients_file: Optional[str] = None # YAML file of clients upserted at startup

    code_cookie_name: str = "temp_auth_request_code"
    code_ttl_seconds: int = 60
    cookie_secure: bool = True

    access_token_ttl_hours: int = 6
    expires_in_display: int = 3600 # Reported in the token response, not the JWT exp
    jwt_algorithm: Literal["HS256", "HS384", "HS512"] = "HS256" # HMAC only; the key is the client secret

    # Off keeps a redeemed code usable until the next confirmation overwrites it
    clear_code_on_redeem: bool = False
    code_max_age_seconds: Optional[int] = None # None disables the server-side age check

    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
