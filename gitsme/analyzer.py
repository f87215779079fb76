import time
import typing

from loguru import logger
from pydantic import ValidationError

from gitsme.config import SmeConfig
from gitsme.loader import CommitLoader, LoadProgress, StopCheck
from gitsme.model import AggregateResult, AnalysisSnapshot, CommitRecord
from gitsme.storage import CachePurpose, Storage

ROOT_PATH = "/"

# (processed commits so far, commits to process)
AnalyzeProgress = typing.Callable[[int, int], None]


def decay_weight(time_delta: float) -> float:
    """ inverse cube root falloff, 1.0 for zero or negative age """
    if time_delta > 0:
        return time_delta ** (-1.0 / 3.0)
    return 1.0


def weighted_value(value: float, time_delta: float) -> float:
    return float(value) * decay_weight(time_delta)


def affected_paths(file_path: str) -> typing.List[str]:
    """ "a/b/c.py" -> ["/", "/a", "/a/b", "/a/b/c.py"] """
    ret = [ROOT_PATH]
    current = ""
    for part in file_path.split("/"):
        if not part:
            continue
        current = f"{current}/{part}"
        ret.append(current)
    return ret


def aggregate(
    commits: typing.Iterable[CommitRecord],
    now: int,
    progress: AnalyzeProgress = None,
) -> AggregateResult:
    """ decayed change magnitudes, rolled up to every ancestor directory """
    commits = list(commits)
    result = AggregateResult()
    for index, commit in enumerate(commits):
        weight = decay_weight(now - commit.timestamp)
        for file_path, change in commit.file_changes.items():
            value = change.changes * weight
            for each_path in affected_paths(file_path):
                result.add(commit.author, each_path, value)

        if progress:
            progress(index + 1, len(commits))
    return result


def merge(cached: AggregateResult, fresh: AggregateResult) -> AggregateResult:
    """ sum fresh into cached, in place; both views get the same treatment """
    cached.by_contributor.merge(fresh.by_contributor)
    cached.by_path.merge(fresh.by_path)
    return cached


class CommitAnalyzer(object):
    """
    keeps the aggregate of a branch up to date

    the cached snapshot remembers the last commit it covers, and only the
    commits strictly after that one are aggregated and merged
    """

    def __init__(self, loader: CommitLoader, config: SmeConfig = None, storage: Storage = None):
        self.loader = loader
        self.config = config or loader.config
        self.storage = storage or loader.storage

        self.valid: bool = loader.valid
        self.error_message: str = loader.error_message

        self.analysis: AggregateResult = AggregateResult()
        self.analyzed: bool = False
        self.processed_commits: int = 0

    def cache_key(self) -> str:
        return self.storage.key_for(
            self.loader.repository.identity, self.loader.branch, CachePurpose.ANALYSIS
        )

    def analyze(
        self,
        force: bool = False,
        now: int = None,
        progress: AnalyzeProgress = None,
        load_progress: LoadProgress = None,
        should_stop: StopCheck = None,
    ) -> AggregateResult:
        if not self.valid:
            logger.error(f"analyzer invalid: {self.error_message}")
            return self.analysis
        if self.analyzed and not force:
            return self.analysis

        if now is None:
            now = int(time.time())

        load_result = self.loader.load(force=force, progress=load_progress, should_stop=should_stop)
        commits = load_result.commits

        snapshot = None if force else self._load_snapshot()
        pending = self._pending_commits(snapshot, commits)
        if pending is None:
            logger.info(f"analyzing all {len(commits)} commits")
            self.analysis = aggregate(commits, now, progress=progress)
            self.processed_commits = len(commits)
        else:
            logger.info(f"merging {len(pending)} new commits into cached analysis")
            self.analysis = merge(snapshot.to_result(), aggregate(pending, now, progress=progress))
            self.processed_commits = len(pending)

        self.storage.save(
            self.cache_key(),
            AnalysisSnapshot.from_result(
                self.analysis,
                last_commit_id=commits[-1].id if commits else "",
                commit_count=len(commits),
                analyzed_at=now,
            ).model_dump(),
        )
        self.analyzed = True
        return self.analysis

    def _load_snapshot(self) -> typing.Optional[AnalysisSnapshot]:
        payload = self.storage.load(self.cache_key(), default=None)
        if not payload:
            return None
        try:
            return AnalysisSnapshot.model_validate(payload)
        except ValidationError as e:
            logger.warning(f"cached analysis malformed, recomputing: {e}")
            return None

    @staticmethod
    def _pending_commits(
        snapshot: typing.Optional[AnalysisSnapshot],
        commits: typing.List[CommitRecord],
    ) -> typing.Optional[typing.List[CommitRecord]]:
        """ commits after the snapshot boundary, None when a full pass is needed """
        if snapshot is None or not snapshot.last_commit_id:
            return None

        for index, each in enumerate(commits):
            if each.id == snapshot.last_commit_id:
                return commits[index + 1:]

        logger.warning(f"cached analysis boundary {snapshot.last_commit_id} not found, recomputing")
        return None
