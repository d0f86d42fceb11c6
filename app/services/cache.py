import json
import redis
from typing import Optional
from app.schemas import DiseaseInfo
from app.services.disease_table import normalize_class
import logging

logger = logging.getLogger(__name__)

class DiseaseInfoCache:
    def __init__(self, client: redis.Redis, ttl: int = 604800, enabled: bool = True):
        self.client = client
        self.default_ttl = ttl  # 7 days in seconds
        self.enabled = enabled

    def _key(self, disease_class: str) -> str:
        return f"disease_info:{normalize_class(disease_class)}"

    def get(self, disease_class: str) -> Optional[DiseaseInfo]:
        """
        Get disease information from cache by class label.
        Returns None if not found or unreadable.
        """
        if not self.enabled:
            return None

        try:
            data = self.client.get(self._key(disease_class))
            if data:
                return DiseaseInfo.model_validate(json.loads(data))
        except redis.RedisError as e:
            # Cache problems must never break enrichment
            logger.warning(f"Disease info cache read failed: {e}")
        except ValueError:
            logger.warning(f"Discarding unreadable cache entry for {disease_class}")
        return None

    def set(self, disease_class: str, info: DiseaseInfo, ttl: int = None) -> None:
        """
        Store disease information in cache.
        """
        if not self.enabled:
            return

        try:
            self.client.set(
                self._key(disease_class),
                info.model_dump_json(),
                ex=ttl or self.default_ttl
            )
        except redis.RedisError as e:
            logger.warning(f"Disease info cache write failed: {e}")
