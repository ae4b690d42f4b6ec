import os
from dotenv import load_dotenv
load_dotenv()

class PharmaLyncConfigs:
    def __init__(self):

        # Environment settings
        self.APPLICATION_ENVIRONMENT = os.getenv("APPLICATION_ENVIRONMENT", "UAT")
        self.APP_NAME = os.getenv("APP_NAME", "pharmalync-payments")
        self.APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
        self.DEBUG = os.getenv("DEBUG", "true").lower() == "true"
        self.ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "")

        # Storage settings ("firestore" in deployments, "memory" for local runs and tests)
        self.STORAGE_BACKEND = os.getenv("STORAGE_BACKEND", "firestore").lower()
        self.FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH", "")
        self.FIREBASE_APP_NAME = os.getenv("FIREBASE_APP_NAME", "pharmalync")
        self.FIRESTORE_DATABASE = os.getenv("FIRESTORE_DATABASE", "")

        # OTP settings
        self.OTP_LENGTH = int(os.getenv("OTP_LENGTH", "6"))
        self.OTP_EXPIRY_MINUTES = int(os.getenv("OTP_EXPIRY_MINUTES", "10"))
        self.OTP_MAX_ATTEMPTS = int(os.getenv("OTP_MAX_ATTEMPTS", "3"))
        self.OTP_RESEND_COOLDOWN_SECONDS = int(os.getenv("OTP_RESEND_COOLDOWN_SECONDS", "30"))

        # Fast2SMS settings
        self.FAST2SMS_API_KEY = os.getenv("FAST2SMS_API_KEY", "")
        self.FAST2SMS_SENDER_ID = os.getenv("FAST2SMS_SENDER_ID", "")
        self.FAST2SMS_ENTITY_ID = os.getenv("FAST2SMS_ENTITY_ID", "")
        self.FAST2SMS_BASE_URL = os.getenv("FAST2SMS_BASE_URL", "https://www.fast2sms.com/dev/bulkV2")
        self.FAST2SMS_RETAILER_MESSAGE_ID = os.getenv("FAST2SMS_RETAILER_MESSAGE_ID", "199054")
        self.FAST2SMS_WHOLESALER_MESSAGE_ID = os.getenv("FAST2SMS_WHOLESALER_MESSAGE_ID", "199055")
        self.SMS_TIMEOUT = int(os.getenv("SMS_TIMEOUT", "10"))
        self.SMS_DEV_MODE = os.getenv("SMS_DEV_MODE", "false").lower() == "true"

        # Push settings
        self.FCM_ENABLED = os.getenv("FCM_ENABLED", "true").lower() == "true"
        self.FCM_LOGS_ENABLED = os.getenv("FCM_LOGS_ENABLED", "true").lower() == "true"
        self.DEVICE_INACTIVE_DAYS = int(os.getenv("DEVICE_INACTIVE_DAYS", "30"))

        # Cache settings
        self.CACHE_BACKEND = os.getenv("CACHE_BACKEND", "memory").lower()
        self.CACHE_TTL_SECONDS = int(os.getenv("CACHE_TTL_SECONDS", "300"))
        self.REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
        self.REDIS_CACHE_DB = int(os.getenv("REDIS_CACHE_DB", "3"))
        self.CACHE_PREFIX = os.getenv("CACHE_PREFIX", "pharmalync")

        # Sentry settings
        self.SENTRY_ENABLED = os.getenv("SENTRY_ENABLED", "false").lower() == "true"
        self.SENTRY_DSN = os.getenv("SENTRY_DSN", "")
        self.ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
        self.SENTRY_RELEASE = os.getenv("SENTRY_RELEASE", "pharmalync-payments@1.0.0")
        self.SENTRY_TRACES_SAMPLE_RATE = os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.1")
        self.SENTRY_PROFILES_SAMPLE_RATE = os.getenv("SENTRY_PROFILES_SAMPLE_RATE", "0.1")

        # Logging Core settings
        self.FIREHOSE_ENABLED = os.getenv("FIREHOSE_ENABLED", "false").lower() == "true"
        self.AUDIT_LOGGING_ENABLED = os.getenv("AUDIT_LOGGING_ENABLED", "false").lower() == "true"
        self.LOCAL_LOG_TARGET = os.getenv("LOCAL_LOG_TARGET", "file").lower()
        self.LOG_DIR = os.getenv("LOG_DIR", "logs")
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.SLACK_WEBHOOK_URL = os.getenv("SLACK_WEBHOOK_URL", "")

        # Logging Stream Names
        self.APP_LOGS_STREAM_NAME = os.getenv("APP_LOGS_STREAM_NAME", "")
        self.AUDIT_LOGS_STREAM_NAME = os.getenv("AUDIT_LOGS_STREAM_NAME", "")
        self.LOG_BUFFER_TIMEOUT = int(os.getenv("LOG_BUFFER_TIMEOUT", "600"))
        self.APP_LOGS_CAPACITY = int(os.getenv("APP_LOGS_CAPACITY", "50"))
        self.AUDIT_LOGS_CAPACITY = int(os.getenv("AUDIT_LOGS_CAPACITY", "50"))

        # Firehose settings
        self.FIREHOSE_REGION_NAME = os.getenv("FIREHOSE_REGION_NAME", "ap-south-1")
        self.FIREHOSE_ACCESS_KEY_ID = os.getenv("FIREHOSE_ACCESS_KEY_ID", "")
        self.FIREHOSE_SECRET_ACCESS_KEY = os.getenv("FIREHOSE_SECRET_ACCESS_KEY", "")
        self.FIREHOSE_RETRY_COUNT = int(os.getenv("FIREHOSE_RETRY_COUNT", "3"))
        self.FIREHOSE_RETRY_DELAY = int(os.getenv("FIREHOSE_RETRY_DELAY", "1"))
