import typing

from git import Commit
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from gitsme.config import SmeConfig
from gitsme.extractor import extract
from gitsme.model import CommitRecord, GitSmeException, LoadCancelled, LoadResult
from gitsme.repository import GitRepository
from gitsme.storage import CachePurpose, Storage

# (new commits so far, processed commits so far, total commits of the branch)
LoadProgress = typing.Callable[[int, int, int], None]
StopCheck = typing.Callable[[], bool]

_commit_list_adapter = TypeAdapter(typing.List[CommitRecord])


def is_linear(commit: Commit) -> bool:
    """ merges are ambiguous and roots have nothing to diff against """
    return len(commit.parents) == 1


class CommitLoader(object):
    """
    Incremental Loader

    First run: walk the branch oldest-first and keep every linear commit.
    Later runs: walk newest-first until the last cached commit shows up,
    then append that batch (in chronological order) to the cached list.
    """

    def __init__(self, config: SmeConfig = None, storage: Storage = None):
        if not config:
            config = SmeConfig()
        self.config = config
        self.storage = storage or Storage(config)

        self.repository: typing.Optional[GitRepository] = None
        self.branch: str = config.branch
        self.branch_fallback: bool = False

        self.result: LoadResult = LoadResult()
        self.loaded: bool = False

        exc = self._check_env()
        self.valid: bool = exc is None
        self.error_message: str = str(exc) if exc else ""

    def _check_env(self) -> typing.Optional[GitSmeException]:
        try:
            self.repository = GitRepository(self.config.repo_root)
            self.branch, self.branch_fallback = self.repository.resolve_branch(self.config.branch)
        except GitSmeException as e:
            return e
        return None

    @property
    def commits(self) -> typing.List[CommitRecord]:
        return self.result.commits

    @property
    def new_commits(self) -> typing.List[CommitRecord]:
        return self.result.new_commits

    def cache_key(self) -> str:
        return self.storage.key_for(self.repository.identity, self.branch, CachePurpose.COMMITS)

    def load(
        self,
        force: bool = False,
        progress: LoadProgress = None,
        should_stop: StopCheck = None,
    ) -> LoadResult:
        if not self.valid:
            logger.error(f"loader invalid: {self.error_message}")
            return LoadResult()
        if self.loaded and not force:
            return self.result

        logger.info(f"loading commits of {self.repository.identity}, branch {self.branch}")
        previous = self._load_cached_commits()
        commits, new_commits = self.load_from(previous, progress=progress, should_stop=should_stop)

        self.storage.save(self.cache_key(), [each.model_dump() for each in commits])

        self.result = LoadResult(
            commits=commits,
            new_commits=new_commits,
            branch=self.branch,
            branch_fallback=self.branch_fallback,
        )
        self.loaded = True
        logger.info(f"total commits loaded: {len(commits)}, new: {len(new_commits)}")
        return self.result

    def reload(self, progress: LoadProgress = None, should_stop: StopCheck = None) -> LoadResult:
        return self.load(force=True, progress=progress, should_stop=should_stop)

    def _load_cached_commits(self) -> typing.List[CommitRecord]:
        payload = self.storage.load(self.cache_key(), default=None)
        if not payload:
            return []
        try:
            return _commit_list_adapter.validate_python(payload)
        except ValidationError as e:
            logger.warning(f"cached commits malformed, reloading from scratch: {e}")
            return []

    def load_from(
        self,
        previous: typing.List[CommitRecord],
        progress: LoadProgress = None,
        should_stop: StopCheck = None,
    ) -> typing.Tuple[typing.List[CommitRecord], typing.List[CommitRecord]]:
        """ returns (full commit list, commits appended by this call) """
        tip = self.repository.tip_id(self.branch)
        if previous and previous[-1].id == tip:
            logger.info("no new commits since last load")
            return list(previous), []

        total = self.repository.count_commits(tip)
        if not previous:
            commits = self._walk_cold(tip, total, progress, should_stop)
            return commits, list(commits)

        batch = self._walk_warm(tip, previous, total, progress, should_stop)
        return list(previous) + batch, batch

    def _walk_cold(self, tip, total, progress, should_stop) -> typing.List[CommitRecord]:
        commits = []
        for each in self.repository.walk(tip, chronological=True):
            _check_stop(should_stop)
            if not is_linear(each):
                continue

            commits.append(extract(self.repository.raw_commit(each)))
            if progress:
                progress(len(commits), len(commits), total)
        return commits

    def _walk_warm(self, tip, previous, total, progress, should_stop) -> typing.List[CommitRecord]:
        boundary = previous[-1].id
        known = {each.id for each in previous}

        batch = []
        boundary_found = False
        for each in self.repository.walk(tip, chronological=False):
            _check_stop(should_stop)
            if each.hexsha == boundary:
                boundary_found = True
                break
            if each.hexsha in known or not is_linear(each):
                continue

            batch.append(extract(self.repository.raw_commit(each)))
            if progress:
                progress(len(batch), len(previous) + len(batch), total)

        if not boundary_found:
            logger.warning(f"cached commit {boundary} not in history of {self.branch}, history rewritten?")

        batch.reverse()
        return batch


def _check_stop(should_stop: typing.Optional[StopCheck]):
    if should_stop and should_stop():
        raise LoadCancelled("commit loading cancelled")
