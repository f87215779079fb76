"""
Commit Extractor

Turns a RawCommit from the repository into a CommitRecord.
The caller only passes linear commits (exactly one parent).
"""
import typing

from gitsme.model import CommitRecord, FileChange, RawCommit

DIFF_GIT_PREFIX = "diff --git "
DESTINATION_MARKER = " b/"


def author_key(identity: str) -> str:
    """
    canonical contributor key: the part before the first '@'

    alice@a.com and alice@b.org collide, which is accepted.
    """
    return identity.split("@", 1)[0].strip()


def path_from_header(header: str) -> str:
    """
    repository-relative path of a patch header

    "diff --git a/src/x.py b/src/x.py" -> "src/x.py"
    """
    first_line = header.splitlines()[0] if header else ""
    if first_line.startswith(DIFF_GIT_PREFIX):
        rest = first_line[len(DIFF_GIT_PREFIX):]
        # "a/<p> b/<p>": split in the middle, p may contain " b/" itself
        half = (len(rest) - 1) // 2
        if (
            rest.startswith("a/")
            and rest[half:half + len(DESTINATION_MARKER)] == DESTINATION_MARKER
            and rest[2:half] == rest[half + len(DESTINATION_MARKER):]
        ):
            return rest[2:half]
        # renames have different halves
        if DESTINATION_MARKER in rest:
            return rest.rsplit(DESTINATION_MARKER, 1)[-1]

    # unknown format: last token, minus the diff prefix segment
    last_token = first_line.split()[-1] if first_line.split() else ""
    return last_token.split("/", 1)[-1]


def extract(raw: RawCommit) -> CommitRecord:
    per_path: typing.Dict[str, typing.List[int]] = dict()
    for each_patch in raw.patches:
        path = path_from_header(each_patch.header)
        if not path:
            continue
        totals = per_path.setdefault(path, [0, 0, 0])
        totals[0] += each_patch.additions
        totals[1] += each_patch.deletions
        totals[2] += each_patch.changes

    file_changes = {
        path: FileChange(additions=a, deletions=d, changes=c)
        for path, (a, d, c) in per_path.items()
    }
    return CommitRecord(
        id=raw.id,
        timestamp=raw.timestamp,
        author=author_key(raw.author_email),
        file_changes=file_changes,
        files_changed=len(file_changes),
        additions=sum(each.additions for each in file_changes.values()),
        deletions=sum(each.deletions for each in file_changes.values()),
        changes=sum(each.changes for each in file_changes.values()),
    )
