from gitsme.analyzer import CommitAnalyzer, aggregate, merge
from gitsme.config import SmeConfig
from gitsme.extractor import extract
from gitsme.loader import CommitLoader
from gitsme.model import (
    AggregateResult,
    BranchNotFound,
    CommitRecord,
    FileChange,
    GitSmeException,
    LoadCancelled,
    LoadResult,
    PatternCompileError,
    RepositoryError,
    ScoreTable,
)
from gitsme.query import SmeQuery, SmeReport
from gitsme.storage import Storage

__version__ = "0.1.0"
