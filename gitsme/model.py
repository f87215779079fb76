import typing

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field


class FileChange(BaseModel):
    model_config = ConfigDict(frozen=True)

    additions: int = Field(default=0, ge=0)
    deletions: int = Field(default=0, ge=0)
    changes: int = Field(default=0, ge=0)


class CommitRecord(BaseModel):
    """ one linear commit, reduced to what the analysis needs """

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: int
    author: str
    file_changes: typing.Dict[str, FileChange] = dict()
    files_changed: int = 0
    additions: int = 0
    deletions: int = 0
    changes: int = 0


class RawPatch(object):
    def __init__(self, header: str, additions: int, deletions: int, changes: int = None):
        self.header: str = header
        self.additions: int = additions
        self.deletions: int = deletions
        if changes is None:
            changes = additions + deletions
        self.changes: int = changes


class RawCommit(object):
    """ what the repository hands over for a single commit """

    def __init__(
        self,
        commit_id: str,
        author_email: str,
        timestamp: int,
        parent_ids: typing.List[str],
        patches: typing.List[RawPatch] = None,
    ):
        self.id: str = commit_id
        self.author_email: str = author_email
        self.timestamp: int = timestamp
        self.parent_ids: typing.List[str] = parent_ids
        self.patches: typing.List[RawPatch] = patches or []


class ScoreTable(object):
    """
    two-level mapping: outer key -> inner key -> score

    missing keys read as zero, and `accumulate` creates them on demand
    """

    def __init__(self, data: typing.Dict[str, typing.Dict[str, float]] = None):
        self._data: typing.Dict[str, typing.Dict[str, float]] = dict()
        if data:
            for outer, inner_dict in data.items():
                self._data[outer] = {k: float(v) for k, v in inner_dict.items()}

    def accumulate(self, outer: str, inner: str, value: float):
        inner_dict = self._data.setdefault(outer, dict())
        inner_dict[inner] = inner_dict.get(inner, 0.0) + value

    def get(self, outer: str, inner: str) -> float:
        return self._data.get(outer, dict()).get(inner, 0.0)

    def row(self, outer: str) -> typing.Dict[str, float]:
        """ a copy, changes do not reach the table """
        return dict(self._data.get(outer, dict()))

    def merge(self, other: "ScoreTable") -> "ScoreTable":
        """ add every score of other into self, in place """
        for outer, inner_dict in other._data.items():
            if outer not in self._data:
                self._data[outer] = dict(inner_dict)
                continue
            for inner, value in inner_dict.items():
                self.accumulate(outer, inner, value)
        return self

    def keys(self) -> typing.KeysView:
        return self._data.keys()

    def items(self):
        return self._data.items()

    def to_dict(self) -> typing.Dict[str, typing.Dict[str, float]]:
        return {outer: dict(inner_dict) for outer, inner_dict in self._data.items()}

    def __getitem__(self, outer: str) -> typing.Dict[str, float]:
        return self._data[outer]

    def __contains__(self, outer: str) -> bool:
        return outer in self._data

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ScoreTable):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"ScoreTable({self._data!r})"


class AggregateResult(object):
    """ by_contributor and by_path are transposed views of the same edges """

    def __init__(self, by_contributor: ScoreTable = None, by_path: ScoreTable = None):
        if by_contributor is None:
            by_contributor = ScoreTable()
        if by_path is None:
            by_path = ScoreTable()
        self.by_contributor: ScoreTable = by_contributor
        self.by_path: ScoreTable = by_path

    def add(self, contributor: str, path: str, value: float):
        self.by_contributor.accumulate(contributor, path, value)
        self.by_path.accumulate(path, contributor, value)

    def is_empty(self) -> bool:
        return not len(self.by_contributor) and not len(self.by_path)

    def contributors(self) -> typing.List[str]:
        return sorted(self.by_contributor.keys())

    def paths(self) -> typing.List[str]:
        return sorted(self.by_path.keys())

    def to_dataframe(self) -> pd.DataFrame:
        """ rows are paths, columns are contributors, missing edges are 0 """
        df = pd.DataFrame.from_dict(self.by_path.to_dict(), orient="index")
        return df.fillna(0.0).sort_index(axis=0).sort_index(axis=1)

    def __eq__(self, other) -> bool:
        if not isinstance(other, AggregateResult):
            return NotImplemented
        return self.by_contributor == other.by_contributor and self.by_path == other.by_path


class AnalysisSnapshot(BaseModel):
    """ persisted form of an AggregateResult plus the commits it covers """

    last_commit_id: str = ""
    commit_count: int = 0
    analyzed_at: int = 0
    by_contributor: typing.Dict[str, typing.Dict[str, float]] = dict()
    by_path: typing.Dict[str, typing.Dict[str, float]] = dict()

    @classmethod
    def from_result(cls, result: AggregateResult, **kwargs) -> "AnalysisSnapshot":
        return cls(
            by_contributor=result.by_contributor.to_dict(),
            by_path=result.by_path.to_dict(),
            **kwargs,
        )

    def to_result(self) -> AggregateResult:
        return AggregateResult(
            by_contributor=ScoreTable(self.by_contributor),
            by_path=ScoreTable(self.by_path),
        )


class LoadResult(object):
    def __init__(
        self,
        commits: typing.List[CommitRecord] = None,
        new_commits: typing.List[CommitRecord] = None,
        branch: str = "",
        branch_fallback: bool = False,
    ):
        self.commits: typing.List[CommitRecord] = commits or []
        self.new_commits: typing.List[CommitRecord] = new_commits or []
        self.branch: str = branch
        self.branch_fallback: bool = branch_fallback


class GitSmeException(Exception):
    pass


class RepositoryError(GitSmeException):
    pass


class BranchNotFound(GitSmeException):
    pass


class PatternCompileError(GitSmeException):
    pass


class LoadCancelled(GitSmeException):
    pass
