from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"
    DATA_DIR: str = "./data"
    STORE_PROVIDER: str | None = None  # memory | json; unset picks json for dev/local
    DIRECTORY_SEED_ENABLED: bool = True

    DEFAULT_SERVICE_MINUTES: int = 30
    NO_SHOW_TIMEOUT_MINUTES: int = 20
    CHECK_IN_APPROVE_METERS_NEW: float = 50.0
    CHECK_IN_APPROVE_METERS_REGULAR: float = 100.0
    CHECK_IN_APPROVE_METERS_TRUSTED: float = 200.0
    CHECK_IN_MAX_DISTANCE_METERS: float = 500.0
    DEFAULT_ARRIVAL_MINUTES: int = 10

    LOYALTY_POINTS_PER_COMPLETION: int = 25
    LOYALTY_SILVER_THRESHOLD: int = 50
    LOYALTY_GOLD_THRESHOLD: int = 100

    OTP_LENGTH: int = 6
    OTP_TTL_MINUTES: int = 5
    OTP_MAX_ATTEMPTS: int = 5
    OTP_RESEND_COOLDOWN_SECONDS: int = 30
    OTP_REQUIRED_CHANNELS: str = "email,phone"
    OTP_EXPOSE_CODE: bool = False
    OTP_HASH_SECRET: str = "change-me"

    NOTIFY_CHANNELS: str = "push,sms,email"
    NOTIFICATION_DEDUPE_SECONDS: float = 60.0
    NOTIFICATION_MAX_ATTEMPTS: int = 3
    NOTIFICATION_BACKOFF_SECONDS: float = 1.0
    NOTIFICATION_BACKOFF_MULTIPLIER: float = 2.0
    NOTIFICATION_BACKOFF_MAX_SECONDS: float = 30.0
    DISPATCH_QUEUE_SIZE: int = 1000
    MAINTENANCE_INTERVAL_SECONDS: float = 60.0

    TWILIO_ACCOUNT_SID: str | None = None
    TWILIO_AUTH_TOKEN: str | None = None
    TWILIO_PHONE_NUMBER: str | None = None
    TWILIO_BASE_URL: str = "https://api.twilio.com/2010-04-01"

    RESEND_API_KEY: str | None = None
    RESEND_BASE_URL: str = "https://api.resend.com"
    EMAIL_FROM: str = "Queue <noreply@example.com>"

    PUSH_GATEWAY_URL: str | None = None
    PUSH_GATEWAY_API_KEY: str | None = None


settings = Settings()
