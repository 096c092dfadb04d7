"""
NoteWise Configuration
Supports AWS Parameter Store for production secrets
"""
import os
from functools import lru_cache

import boto3
from botocore.exceptions import BotoCoreError, ClientError


def get_parameter(name: str, default: str = "") -> str:
    """Get parameter from AWS Parameter Store or environment"""
    # Environment variable takes precedence
    env_key = name.upper().replace("-", "_").replace("/", "_")
    if env_key in os.environ:
        return os.environ[env_key]

    if os.environ.get("USE_PARAMETER_STORE"):
        try:
            ssm = boto3.client("ssm", region_name=os.environ.get("AWS_REGION", "us-west-2"))
            path = os.environ.get("PARAMETER_STORE_PATH", "/notewise/prod/")
            response = ssm.get_parameter(Name=f"{path}{name}", WithDecryption=True)
            return response["Parameter"]["Value"]
        except (BotoCoreError, ClientError):
            return default

    return default


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


class Config:
    """Base configuration"""
    # Flask
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-change-in-production")

    # Session cookie only carries the study session id
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"
    SESSION_IDLE_SECONDS = _int_env("SESSION_IDLE_SECONDS", 2 * 60 * 60)

    # Security
    WTF_CSRF_ENABLED = True
    WTF_CSRF_TIME_LIMIT = 3600

    # Uploads
    MAX_UPLOAD_BYTES = _int_env("MAX_UPLOAD_BYTES", 50 * 1024 * 1024)  # 50MB
    # Leave headroom for multipart framing; the per-file check uses MAX_UPLOAD_BYTES
    MAX_CONTENT_LENGTH = MAX_UPLOAD_BYTES + 1024 * 1024

    # OpenAI
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.environ.get("OPENAI_MODEL", "gpt-4.1")
    OPENAI_TTS_MODEL = os.environ.get("OPENAI_TTS_MODEL", "gpt-4o-mini-tts")
    OPENAI_TTS_VOICE = os.environ.get("OPENAI_TTS_VOICE", "alloy")
    OPENAI_TIMEOUT = _int_env("OPENAI_TIMEOUT", 60)

    # Use the PDF text layer when it is readable and skip the extraction call
    PDF_TEXT_LAYER_FIRST = os.environ.get("PDF_TEXT_LAYER_FIRST", "0") == "1"

    # Prompting
    PROMPT_TEXT_LIMIT = _int_env("PROMPT_TEXT_LIMIT", 120000)
    QUIZ_MIN_QUESTIONS = 1
    QUIZ_MAX_QUESTIONS = 20
    QUIZ_DEFAULT_QUESTIONS = 5
    FLASHCARD_COUNT = 10
    VIDEO_SUGGESTION_COUNT = 3

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # App Version
    APP_VERSION = os.environ.get("APP_VERSION", "2026.10")
    BUILD_TIME = os.environ.get("BUILD_TIME", "")
    GIT_COMMIT = os.environ.get("GIT_COMMIT", "")

    # Feature Flags
    FEATURE_VIDEO_SUGGESTIONS = os.environ.get("FEATURE_VIDEO_SUGGESTIONS", "1") == "1"
    FEATURE_TTS = os.environ.get("FEATURE_TTS", "1") == "1"


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    TESTING = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "DEBUG")


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    TESTING = False
    SESSION_COOKIE_SECURE = True

    # Override with Parameter Store in production
    SECRET_KEY = get_parameter("secret-key", Config.SECRET_KEY)
    OPENAI_API_KEY = get_parameter("openai-api-key", Config.OPENAI_API_KEY)


class TestingConfig(Config):
    """Testing configuration"""
    DEBUG = True
    TESTING = True
    WTF_CSRF_ENABLED = False
    SECRET_KEY = "test-secret-key"
    OPENAI_API_KEY = "sk-test"
    MAX_UPLOAD_BYTES = 1024 * 1024
    MAX_CONTENT_LENGTH = 2 * 1024 * 1024
    PDF_TEXT_LAYER_FIRST = False
    FEATURE_VIDEO_SUGGESTIONS = True
    FEATURE_TTS = True


config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}


@lru_cache()
def get_config(env: str = None):
    """Get configuration by environment name"""
    env = env or os.environ.get("FLASK_ENV", "development")
    return config.get(env, DevelopmentConfig)
