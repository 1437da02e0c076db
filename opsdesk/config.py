from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', env_prefix='OPSDESK_', extra='ignore')

    database_url: str = 'sqlite+pysqlite:///:memory:'
    fixture_path: str | None = None
    seed_on_startup: bool = True
    settings_file: str = '.opsdesk_settings.json'

    session_cookie_name: str = 'opsdesk_session'
    session_ttl_minutes: int = 480
    rma_otp_ttl_hours: int = 24
    default_reorder_level: int = 5
    audit_user_name: str = 'Admin User'

    log_level: str = 'INFO'

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.strip().startswith('sqlite')


settings = Settings()
