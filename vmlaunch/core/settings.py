from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from vmlaunch.core.logger import LoggerConfig


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Pydantic v2 config
    model_config = SettingsConfigDict(
        env_file=str(Path(__file__).parent.parent / ".env"),
        case_sensitive=False,
        extra="ignore",
    )

    # Сервис управления ВМ
    SERVER_URL: str = "http://127.0.0.1:3000"
    HTTP_TIMEOUT: float = 10.0  # секунды на один запрос
    VERIFY_SSL: bool = True

    # Application
    APP_NAME: str = "vmlaunch"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "local"
    DEBUG: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "vmlaunch.log"
    LOG_DIR: str = ""  # пусто - без записи в файл
    CONSOLE_OUTPUT: bool = True
    USE_JSON: bool = False

    # API
    API_PREFIX: str = "/client"


settings = Settings()
# --- Инициализация логирования ---
logger_config = LoggerConfig(
    log_dir=settings.LOG_DIR,
    log_file=settings.LOG_FILE,
    log_level=settings.LOG_LEVEL,
    console_output=settings.CONSOLE_OUTPUT,
    use_json=settings.USE_JSON,
)
logger_config.setup_logger()
logger = logger_config.get_logger(settings.APP_NAME)
