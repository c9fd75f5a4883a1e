from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(60, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # The only account allowed to use the admin API
    super_admin_email: Optional[str] = Field(None, alias="SUPER_ADMIN_EMAIL")

    cloudinary_cloud_name: Optional[str] = Field(None, alias="CLOUDINARY_CLOUD_NAME")
    cloudinary_upload_preset: Optional[str] = Field(None, alias="CLOUDINARY_UPLOAD_PRESET")
    cloudinary_folder: str = Field("profiles/students", alias="CLOUDINARY_FOLDER")
    image_download_timeout_seconds: float = Field(30.0, alias="IMAGE_DOWNLOAD_TIMEOUT_SECONDS")
    image_upload_timeout_seconds: float = Field(60.0, alias="IMAGE_UPLOAD_TIMEOUT_SECONDS")

    index_allocation_attempts: int = Field(5, alias="INDEX_ALLOCATION_ATTEMPTS")

    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
