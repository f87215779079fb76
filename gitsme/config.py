import os
import typing

from pydantic_settings import BaseSettings, SettingsConfigDict


class SmeConfig(BaseSettings):
    """ one immutable value shared by every component of a run """

    model_config = SettingsConfigDict(env_prefix="GITSME_", frozen=True)

    repo_root: str = "."
    branch: str = "master"

    # cache switches
    # use_cache: read and write
    # ignore_cache: skip reading, but still write when use_cache is on
    use_cache: bool = False
    ignore_cache: bool = False
    cache_dir: str = os.path.join("~", ".gitsme", "cache")

    # query
    top: int = 10
    fuzzy: bool = False
    users: typing.List[str] = []
    files: typing.List[str] = []

    @property
    def read_cache(self) -> bool:
        return self.use_cache and not self.ignore_cache

    @property
    def write_cache(self) -> bool:
        return self.use_cache
