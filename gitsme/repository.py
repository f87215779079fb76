import os
import typing

import git
from git import Commit, Repo
from loguru import logger

from gitsme.model import BranchNotFound, RawCommit, RawPatch, RepositoryError

# tried in order when the requested branch does not exist
FALLBACK_BRANCHES = ("main", "master")


class GitRepository(object):
    """ read-only view over a git repository, backed by GitPython """

    def __init__(self, repo_root: str):
        try:
            self.repo: Repo = git.Repo(os.path.expanduser(repo_root))
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            raise RepositoryError(f"not a git repository: {repo_root}") from e

    @property
    def identity(self) -> str:
        """ absolute path of the work tree (or of the git dir for bare repos) """
        root = self.repo.working_tree_dir or self.repo.git_dir
        return os.path.abspath(root)

    def has_branch(self, name: str) -> bool:
        return name in [each.name for each in self.repo.heads]

    def resolve_branch(self, name: str) -> typing.Tuple[str, bool]:
        """
        returns (branch actually used, whether it is a fallback)

        a missing branch degrades to the checked-out one, then to main/master
        """
        if self.has_branch(name):
            return name, False

        candidates = []
        try:
            candidates.append(self.repo.active_branch.name)
        except TypeError:
            # detached HEAD
            pass
        candidates.extend(FALLBACK_BRANCHES)

        for each in candidates:
            if self.has_branch(each):
                logger.warning(f"branch {name} not found, fallback to {each}")
                return each, True
        raise BranchNotFound(f"branch {name} not found and no fallback available")

    def tip_id(self, branch: str) -> str:
        return self.repo.heads[branch].commit.hexsha

    def count_commits(self, rev: str) -> int:
        return int(self.repo.git.rev_list("--count", rev))

    def walk(self, rev: str, chronological: bool) -> typing.Iterator[Commit]:
        """
        topological walk from rev

        chronological: oldest first, else newest first.
        both directions are exact reverses of each other.
        """
        return self.repo.iter_commits(rev, topo_order=True, reverse=chronological)

    def raw_commit(self, commit: Commit) -> RawCommit:
        """ metadata plus per-file stats against the first parent """
        parent_ids = [each.hexsha for each in commit.parents]
        patches = []
        if commit.parents:
            patches = self.diff(commit.parents[0], commit)

        return RawCommit(
            commit_id=commit.hexsha,
            author_email=commit.author.email or commit.author.name or "",
            timestamp=int(commit.authored_date),
            parent_ids=parent_ids,
            patches=patches,
        )

    def diff(self, parent: Commit, commit: Commit) -> typing.List[RawPatch]:
        """ per-file stats from `git diff --numstat -z -M` """
        output = self.repo.git.diff(parent.hexsha, commit.hexsha, numstat=True, z=True, M=True)
        return [
            RawPatch(
                header=f"diff --git a/{a_path} b/{b_path}",
                additions=additions,
                deletions=deletions,
            )
            for additions, deletions, a_path, b_path in parse_numstat(output)
        ]


def parse_numstat(output: str) -> typing.List[typing.Tuple[int, int, str, str]]:
    """
    (additions, deletions, source path, destination path) per file

    with -z a plain entry is "add\\tdel\\tpath\\0",
    a rename is "add\\tdel\\t\\0src\\0dst\\0", binary files show "-" counts
    """
    ret = []
    tokens = output.split("\0")
    index = 0
    while index < len(tokens):
        token = tokens[index]
        index += 1
        if not token.strip():
            continue

        additions, deletions, path = token.lstrip("\n").split("\t", 2)
        if path:
            a_path = b_path = path
        else:
            a_path, b_path = tokens[index], tokens[index + 1]
            index += 2

        ret.append((_to_count(additions), _to_count(deletions), a_path, b_path))
    return ret


def _to_count(value: str) -> int:
    return int(value) if value.isdigit() else 0
