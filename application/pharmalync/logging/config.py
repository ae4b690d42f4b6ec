"""
Logging configuration for PharmaLync payments.
Firehose shipping when enabled, local file or stream otherwise.
"""
from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()


class LoggingConfig:
    """Logging knobs resolved once from the environment"""

    FIREHOSE_ENABLED = configs.FIREHOSE_ENABLED
    AUDIT_LOGGING_ENABLED = configs.AUDIT_LOGGING_ENABLED
    LOCAL_LOG_TARGET = configs.LOCAL_LOG_TARGET
    LOG_DIR = configs.LOG_DIR
    LOG_LEVEL = configs.LOG_LEVEL

    APP_LOGS_STREAM_NAME = configs.APP_LOGS_STREAM_NAME
    AUDIT_LOGS_STREAM_NAME = configs.AUDIT_LOGS_STREAM_NAME
    LOG_BUFFER_TIMEOUT = configs.LOG_BUFFER_TIMEOUT
    APP_LOGS_CAPACITY = configs.APP_LOGS_CAPACITY
    AUDIT_LOGS_CAPACITY = configs.AUDIT_LOGS_CAPACITY

    FIREHOSE_REGION_NAME = configs.FIREHOSE_REGION_NAME
    FIREHOSE_ACCESS_KEY_ID = configs.FIREHOSE_ACCESS_KEY_ID
    FIREHOSE_SECRET_ACCESS_KEY = configs.FIREHOSE_SECRET_ACCESS_KEY
    FIREHOSE_RETRY_COUNT = configs.FIREHOSE_RETRY_COUNT
    FIREHOSE_RETRY_DELAY = configs.FIREHOSE_RETRY_DELAY

    @classmethod
    def is_valid_config(cls):
        """Firehose needs credentials; everything else has safe defaults"""
        if cls.FIREHOSE_ENABLED:
            if not cls.FIREHOSE_ACCESS_KEY_ID or not cls.FIREHOSE_SECRET_ACCESS_KEY:
                return False, "Firehose credentials not configured"
        if cls.LOCAL_LOG_TARGET not in ("file", "stream"):
            return False, f"Unknown LOCAL_LOG_TARGET '{cls.LOCAL_LOG_TARGET}', falling back to file"
        return True, "Configuration is valid"
