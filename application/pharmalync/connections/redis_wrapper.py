import json
from urllib.parse import quote_plus

import redis

# Logger
from pharmalync.logging.utils import get_app_logger
logger = get_app_logger("pharmalync.redis_wrapper")

# Settings
from pharmalync.config.settings import PharmaLyncConfigs
configs = PharmaLyncConfigs()

REDIS_URL = configs.REDIS_URL


def safe_key_part(part) -> str:
    """Encode dynamic key segments so Redis keys contain only URL-safe chars."""
    return quote_plus(str(part), safe='')


class RedisJSONWrapper:
    def __init__(self, redis_uri=REDIS_URL, database=None):
        if database is not None:
            redis_uri = f"{redis_uri}/{database}"
        try:
            self.redis_client = redis.from_url(redis_uri)
            self.redis_client.ping()
            self.connected = True
        except redis.exceptions.RedisError as e:
            logger.error(f"redis_connect_failed | uri={redis_uri} error={e}")
            self.redis_client = None
            self.connected = False

    def set_with_ttl(self, key, data, ttl_seconds: int):
        """Store data as JSON; SETEX when a positive TTL is given."""
        value = json.dumps(data, default=str)
        if isinstance(ttl_seconds, int) and ttl_seconds > 0:
            self.redis_client.setex(key, ttl_seconds, value)
        else:
            self.redis_client.set(key, value)

    def get(self, key):
        data = self.redis_client.get(key)
        if data:
            return json.loads(data)
        return None

    def delete(self, key) -> bool:
        return self.redis_client.delete(key) > 0
