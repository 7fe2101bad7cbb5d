from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ENV: str = "dev"                # "dev" / "staging" / "prod"
    ENABLE_ADMIN: bool = True
    ADMIN_ROLE: str = "admin"
    SERVICE_NAME: str = "storefront"

    class Config:
        env_file = ".env"
        extra="ignore"

admin_config = Settings()
