from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+psycopg://user:password@db/dbname"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10

    LOG_LEVEL: str = "INFO"

    AWS_ENDPOINT_URL: str
    AWS_ACCESS_KEY_ID: str
    AWS_SECRET_ACCESS_KEY: str
    AWS_REGION_NAME: str = "eu-west-3"
    S3_BUCKET_NAME: str = "videos"
    SIGNED_URL_TTL_SECONDS: int = 365 * 24 * 60 * 60

    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"
    PIPELINE_INLINE: bool = False
    SWEEP_INTERVAL_SECONDS: int = 60
    SWEEP_GRACE_SECONDS: int = 120
    SWEEP_BATCH_SIZE: int = 50

    OPENAI_API_KEY: str = ""
    TRANSCRIPTION_MODEL: str = "whisper-1"
    TRANSCRIPTION_LANGUAGE: str = "fr"
    ANALYSIS_MODEL: str = "gpt-4o"
    ANALYSIS_MAX_CHARS: int = 12000
    PROVIDER_TIMEOUT_SECONDS: float = 120.0

    FFMPEG_BINARY: str = "ffmpeg"
    COMPRESSION_TIMEOUT_SECONDS: int = 600

    RESEND_API_KEY: str = ""
    NOTIFY_FROM_EMAIL: str = "SpotBulle <no-reply@spotbulle.app>"
    NOTIFY_ON_COMPLETE: bool = True

    JWT_SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_AUDIENCE: str = "authenticated"
    TRIGGER_WEBHOOK_SECRET: str = ""

    class Config:
        env_file = ".env"

settings = Settings()
