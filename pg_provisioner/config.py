from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Server-level connections (existence checks, role and database DDL) go here
    maintenance_database: str = "postgres"
    database_template: str = "template0"

    # Azure Database for PostgreSQL: no SUPERUSER, admin role membership instead
    azure_platform_prefix: str = "Azure"
    azure_admin_role: str = "azure_pg_admin"
    azure_host_marker: str = ".postgres"

    connect_timeout_seconds: Optional[float] = None  # None = driver default
    application_name: str = "pg-provisioner"

    log_level: str = "INFO"

    class Config:
        env_prefix = "PGPROVISIONER_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
