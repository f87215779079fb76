import os
import typing

import git
import pytest
from git import Actor

from gitsme.config import SmeConfig
from gitsme.model import CommitRecord, FileChange


class RepoBuilder(object):
    """ writes files and commits them with fixed authors and dates """

    def __init__(self, path: str):
        self.repo = git.Repo.init(path)
        self.path = path

    @property
    def branch(self) -> str:
        return self.repo.active_branch.name

    def write(self, rel_path: str, content: str):
        full_path = os.path.join(self.path, rel_path)
        os.makedirs(os.path.dirname(full_path), exist_ok=True)
        with open(full_path, "w") as f:
            f.write(content)
        self.repo.index.add([rel_path])

    def commit(self, email: str, timestamp: int, files: typing.Dict[str, str] = None, parents=None):
        for rel_path, content in (files or {}).items():
            self.write(rel_path, content)
        actor = Actor(email.split("@")[0], email)
        date = f"@{timestamp} +0000"
        return self.repo.index.commit(
            f"commit at {timestamp}",
            parent_commits=parents,
            author=actor,
            committer=actor,
            author_date=date,
            commit_date=date,
        )


def lines(count: int, prefix: str = "line") -> str:
    return "".join(f"{prefix} {i}\n" for i in range(count))


@pytest.fixture
def repo_builder(tmp_path) -> RepoBuilder:
    builder = RepoBuilder(str(tmp_path / "repo"))
    # root commit, never analyzed
    builder.commit("root@example.com", 500, {"README.md": "readme\n"})
    return builder


@pytest.fixture
def cache_dir(tmp_path) -> str:
    return str(tmp_path / "cache")


@pytest.fixture
def make_config(repo_builder, cache_dir):
    def _make(**kwargs) -> SmeConfig:
        kwargs.setdefault("repo_root", repo_builder.path)
        kwargs.setdefault("branch", repo_builder.branch)
        kwargs.setdefault("cache_dir", cache_dir)
        return SmeConfig(**kwargs)

    return _make


def make_record(commit_id: str, timestamp: int, author: str, **changes: int) -> CommitRecord:
    """ make_record("c1", 1000, "alice", **{"src/a.py": 10}) """
    file_changes = {path: FileChange(additions=value, deletions=0, changes=value) for path, value in changes.items()}
    return CommitRecord(
        id=commit_id,
        timestamp=timestamp,
        author=author,
        file_changes=file_changes,
        files_changed=len(file_changes),
        additions=sum(changes.values()),
        deletions=0,
        changes=sum(changes.values()),
    )
