"""Settings for the ProjectFlow API."""

from typing import Optional

from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings for the ProjectFlow API.

    [pydantic.BaseSettings](https://docs.pydantic.dev/latest/concepts/pydantic_settings/) is a popular
    framework for organizing, validating, and reading configuration values from a variety of sources
    including environment variables.

    This class automatically reads from:
    1. Environment variables (production - App Service configuration)
    2. .env file (local development)

    Environment variable names are treated case-insensitively.
    """

    log_level: str = "INFO"
    """Minimum level written to the stdout log sink."""

    # Database
    database_connection_string: Optional[str] = None
    """PostgreSQL connection string for the workspace database. Data routes answer 503 without it."""

    # Tokens
    jwt_secret_key: str
    """Process-wide signing secret for bearer, session and device tokens (required)."""

    jwt_algorithm: str = "HS256"
    """Signing algorithm for all tokens."""

    login_token_ttl_hours: int = 168
    """Lifetime of the token returned by a password login (7 days)."""

    session_token_ttl_hours: int = 24
    """Lifetime of the token returned after a second-factor check."""

    device_token_ttl_days: int = 7
    """Lifetime of a trusted-device token."""

    trusted_device_ttl_days: int = 7
    """How long a trusted device record bypasses the second factor."""

    # One-time codes and passwords
    otp_ttl_minutes: int = 10
    """Validity window of a password-reset OTP and of its verification."""

    temp_password_ttl_minutes: int = 5
    """Validity window of an employee's temporary password."""

    totp_issuer: str = "ProjectFlow"
    """Issuer name shown by authenticator apps."""

    totp_valid_window: int = 2
    """Accepted TOTP clock skew, in 30 second steps."""

    backup_code_count: int = 8
    """Number of backup codes generated per batch."""

    # Subtask images
    max_subtask_images: int = 2
    """Maximum images attached to one subtask."""

    image_max_upload_bytes: int = 5 * 1024 * 1024
    """Largest accepted upload per image, before compression."""

    image_max_width: int = 800
    """Images wider than this are resized before upload."""

    image_jpeg_quality: int = 70
    """JPEG quality used when compressing uploads."""

    azure_storage_account_url: Optional[str] = None
    """Azure Storage Account URL for image storage (e.g., https://<account>.blob.core.windows.net)"""

    azure_storage_connection_string: Optional[str] = None
    """Azure Storage Account connection string (alternative to managed identity).
    If provided, will be used instead of DefaultAzureCredential."""

    azure_storage_sas_url: Optional[str] = None
    """Azure Storage Account SAS URL for blob container access.
    Format: https://<account>.blob.core.windows.net/<container>?<sas-token>
    If provided, will be used instead of connection string or managed identity."""

    image_container: str = "subtask-images"
    """Azure Blob Storage container name for subtask images."""

    # Notification Settings (SMTP)
    smtp_host: Optional[str] = None
    """SMTP server hostname for email notifications."""

    smtp_port: int = 587
    """SMTP server port (default: 587 for TLS)."""

    smtp_username: Optional[str] = None
    """SMTP authentication username."""

    smtp_password: Optional[str] = None
    """SMTP authentication password."""

    smtp_use_tls: bool = True
    """Issue STARTTLS before authenticating."""

    notification_from_email: str = "noreply@projectflow.app"
    """From email address for notifications."""

    app_base_url: str = "http://localhost:5173"
    """Public URL of the web client, linked from welcome emails."""

    # Reaper
    enable_reaper: bool = True
    """Run the background purge loops (needs a database)."""

    project_retention_days: int = 5
    """Days a soft-deleted project is kept before permanent removal."""

    project_purge_hour: int = 2
    """UTC hour of the daily project purge."""

    employee_purge_interval_seconds: int = 60
    """Interval of the expired temporary-password sweep."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",  # Load from .env file if it exists (local development)
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra environment variables not defined in the model
        validate_default=True,
    )
