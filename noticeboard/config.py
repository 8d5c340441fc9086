"""
Settings from environment variables.

All config is loaded via Pydantic Settings with the NOTICEBOARD_ prefix.
"""

from pydantic_settings import BaseSettings

from noticeboard.errors import ConfigurationError


class Settings(BaseSettings):
    # Portal
    portal_login_url: str = "https://erp.iitkgp.ac.in"
    portal_welcome_url: str = "https://erp.iitkgp.ac.in/IIT_ERP3/welcome.jsp"
    portal_menu_url: str = "https://erp.iitkgp.ac.in/IIT_ERP3/menulist.htm?module_id=26"
    portal_notices_url: str = "https://erp.iitkgp.ac.in/TrainingPlacementSSO/Notice.jsp"
    session_cookie_name: str = "ssoToken"
    session_cookie_domain: str = "erp.iitkgp.ac.in"
    session_token_path: str = "session.txt"
    crawl_via_menu: bool = True

    # Browser
    browser_headless: bool = True
    browser_viewport_width: int = 1280
    browser_viewport_height: int = 720
    browser_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    )

    # Wait budgets (seconds)
    navigation_timeout_seconds: float = 30.0
    selector_timeout_seconds: float = 10.0
    grid_timeout_seconds: float = 5.0
    dialog_timeout_seconds: float = 10.0
    document_timeout_seconds: float = 10.0

    # OTP service
    otp_api_url: str = ""
    otp_max_attempts: int = 4
    otp_initial_delay_seconds: float = 10.0
    otp_retry_delay_seconds: float = 5.0
    otp_backoff_factor: float = 2.0
    otp_retry_delay_cap_seconds: float = 30.0
    otp_request_timeout_seconds: int = 30

    # Webhook delivery
    notice_webhook_url: str = ""
    webhook_timeout_seconds: int = 30

    # Document storage (Supabase Storage)
    supabase_url: str = ""
    supabase_service_role_key: str = ""
    storage_bucket: str = "notices"
    document_strategy: str = "auto"  # "auto" | "intercept" | "fetch"

    # Notice extraction
    notice_body_skip_lines: int = 4

    # App
    timezone: str = "Asia/Kolkata"
    host: str = "0.0.0.0"
    port: int = 9000
    error_log_path: str = ""

    model_config = {
        "env_file": ".env",
        "env_prefix": "NOTICEBOARD_",
    }

    @property
    def storage_enabled(self) -> bool:
        return bool(self.supabase_url and self.supabase_service_role_key)


def validate_settings(config: Settings) -> None:
    """Raise ConfigurationError naming every missing required endpoint."""
    missing = [
        f"NOTICEBOARD_{name.upper()}"
        for name in ("otp_api_url", "notice_webhook_url")
        if not getattr(config, name).strip()
    ]
    if missing:
        raise ConfigurationError(
            f"Missing required configuration: {', '.join(missing)}"
        )


settings = Settings()
