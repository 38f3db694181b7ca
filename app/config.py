from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, overridable via environment variables or `.env`."""

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    DATABASE_URL: str = Field('sqlite+aiosqlite:///./nodegate.sqlite', description='SQLAlchemy async database URL')
    DATABASE_ECHO: bool = False
    DATABASE_POOL_SIZE: int = Field(10, ge=1)
    DATABASE_MAX_OVERFLOW: int = Field(20, ge=0)

    LOG_LEVEL: str = 'INFO'
    LOG_FORMAT: str = Field('console', pattern='^(console|json)$')

    ORDER_NO_PREFIX: str = Field('ORD', max_length=8)
    SUBSCRIBE_URL_BASE: str = 'https://api.example.com/sub'
    TRAFFIC_LOG_PAGE_LIMIT: int = Field(100, ge=1, le=1000)


settings = Settings()
