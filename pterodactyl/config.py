from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    panel_url: str = ""
    api_key: str = ""
    api_version: str = "v1"
    user_agent: str = "pterodactyl-python/1.0"
    timeout: float = 30.0
    max_retries: int = 3
    retry_wait_min: float = 1.0
    retry_wait_max: float = 5.0
    rate_limit_max_wait: float = 300.0
    websocket_dial_timeout: float = 30.0
    websocket_send_timeout: float = 10.0
    websocket_max_size: int = 10 * 1024 * 1024
    websocket_buffer_size: int = 100
    log_format: str = "text"
    log_level: str = "INFO"

    model_config = {
        "env_prefix": "PTERODACTYL_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


settings = Settings()
