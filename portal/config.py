import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv(dotenv_path=os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), ".env"))


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv("PORTAL_DATABASE_URL", os.getenv("DATABASE_URL", ""))
    supabase_url: str = os.getenv("SUPABASE_URL", os.getenv("NEXT_PUBLIC_SUPABASE_URL", "")).rstrip("/")
    supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    supabase_service_role_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    supabase_jwt_secret: str = os.getenv("SUPABASE_JWT_SECRET", "")
    jwt_audience: str = os.getenv("SUPABASE_JWT_AUDIENCE", "authenticated")
    main_admin_email: str = os.getenv("MAIN_ADMIN_EMAIL", "")
    school_code: str = os.getenv("SCHOOL_CODE", "ELBA")
    school_name: str = os.getenv("SCHOOL_NAME", "El Bethel Academy")
    default_term: str = os.getenv("DEFAULT_TERM", "First Term")
    default_session: str = os.getenv("DEFAULT_SESSION", "2024/2025")
    paystack_secret_key: str = os.getenv("PAYSTACK_SECRET_KEY", "")
    paystack_base_url: str = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co").rstrip("/")
    sms_provider: str = os.getenv("SMS_PROVIDER", "auto").lower()
    twilio_account_sid: str = os.getenv("TWILIO_ACCOUNT_SID", "")
    twilio_auth_token: str = os.getenv("TWILIO_AUTH_TOKEN", "")
    twilio_from: str = os.getenv("TWILIO_FROM", "")
    zapier_sms_webhook: str = os.getenv("ZAPIER_SMS_WEBHOOK", "")
    otp_ttl_minutes: int = int(os.getenv("OTP_TTL_MINUTES", "5"))
    otp_max_attempts: int = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))
    http_timeout_seconds: int = int(os.getenv("HTTP_TIMEOUT_SECONDS", "15"))
    cors_origins: str = os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000")
    backend_host: str = os.getenv("BACKEND_HOST", "127.0.0.1")
    backend_port: int = int(os.getenv("BACKEND_PORT", "8000"))
    backend_reload: bool = os.getenv("BACKEND_RELOAD", "false").lower() == "true"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
