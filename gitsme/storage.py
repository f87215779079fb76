import hashlib
import json
import os
import re
import typing

from loguru import logger
from pydantic import BaseModel, ValidationError

from gitsme.config import SmeConfig

SCHEMA_VERSION = 1


class CachePurpose(object):
    COMMITS = "commits"
    ANALYSIS = "analysis"


class CacheEnvelope(BaseModel):
    schema_version: int
    payload: typing.Any = None


class Storage(object):
    """
    keyed JSON blobs under config.cache_dir

    load() falls back to the caller's default when the cache is disabled,
    missing, unreadable or written by another schema version.
    """

    def __init__(self, config: SmeConfig = None):
        if not config:
            config = SmeConfig()
        self.config = config
        self.cache_dir = os.path.expanduser(config.cache_dir)

    @staticmethod
    def key_for(repo_identity: str, branch: str, purpose: str) -> str:
        if not repo_identity or not repo_identity.strip():
            raise ValueError(f"invalid cache name: [{repo_identity}]")

        digest = hashlib.sha1(repo_identity.encode("utf-8")).hexdigest()[:12]
        name = os.path.basename(repo_identity.rstrip("/\\")) or "repo"
        raw = f"{name}-{digest}-{branch}-{purpose}"
        return re.sub(r"[^a-zA-Z0-9._-]", "_", raw)

    def path_of(self, key: str) -> str:
        return os.path.join(self.cache_dir, f"{key}.json")

    def load(self, key: str, default: typing.Any = None) -> typing.Any:
        if not self.config.read_cache:
            return default

        path = self.path_of(key)
        if not os.path.isfile(path):
            logger.debug(f"no cache entry: {key}")
            return default

        try:
            with open(path, encoding="utf-8") as f:
                envelope = CacheEnvelope.model_validate(json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"cache entry {key} unreadable, ignored: {e}")
            return default

        if envelope.schema_version != SCHEMA_VERSION:
            logger.warning(
                f"cache entry {key} has schema {envelope.schema_version}, "
                f"expected {SCHEMA_VERSION}, ignored"
            )
            return default

        logger.info(f"cache entry found: {key}")
        return envelope.payload

    def save(self, key: str, value: typing.Any):
        if not self.config.write_cache:
            return

        os.makedirs(self.cache_dir, exist_ok=True)
        envelope = CacheEnvelope(schema_version=SCHEMA_VERSION, payload=value)
        path = self.path_of(key)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(envelope.model_dump_json())
        os.replace(tmp_path, path)
        logger.info(f"cache entry updated: {key}")

    def clear(self, key: str) -> bool:
        path = self.path_of(key)
        if not os.path.isfile(path):
            return False
        os.remove(path)
        logger.info(f"cache entry removed: {key}")
        return True
