import re
import typing

import networkx as nx
import pandas as pd
from loguru import logger

from gitsme.analyzer import ROOT_PATH
from gitsme.config import SmeConfig
from gitsme.model import AggregateResult, PatternCompileError

Ranking = typing.List[typing.Tuple[str, float]]


class Matcher(object):
    def __init__(self, pattern: str):
        self.pattern = pattern

    def match(self, key: str) -> bool:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.pattern!r})"


class ExactMatcher(Matcher):
    def match(self, key: str) -> bool:
        return key == self.pattern


class RegexMatcher(Matcher):
    def __init__(self, pattern: str):
        super().__init__(pattern)
        try:
            self.regex = re.compile(pattern)
        except re.error as e:
            raise PatternCompileError(f"invalid pattern {pattern!r}: {e}") from e

    def match(self, key: str) -> bool:
        return self.regex.search(key) is not None


def normalize_path_filter(path: str) -> str:
    """ "src/lib/" -> "/src/lib", "" -> "/" """
    path = path.strip().strip("/")
    return f"{ROOT_PATH}{path}"


def compile_matchers(patterns: typing.Iterable[str], fuzzy: bool) -> typing.List[Matcher]:
    if fuzzy:
        return [RegexMatcher(each) for each in patterns]
    return [ExactMatcher(each) for each in patterns]


def match_keys(keys: typing.Iterable[str], matchers: typing.List[Matcher]) -> typing.List[str]:
    """ keys matched by any matcher, sorted """
    return sorted(key for key in keys if any(each.match(key) for each in matchers))


def rank(scores: typing.Dict[str, float], top_n: int) -> Ranking:
    """ highest score first, ties by key ascending """
    ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return ordered[:top_n]


class SmeReport(object):
    """ ordered (key, ranking) entries ready for presentation """

    def __init__(self, entries: typing.List[typing.Tuple[str, Ranking]] = None):
        self.entries: typing.List[typing.Tuple[str, Ranking]] = entries or []

    def keys(self) -> typing.List[str]:
        return [key for key, _ in self.entries]

    def get(self, key: str) -> typing.Optional[Ranking]:
        for each_key, ranking in self.entries:
            if each_key == key:
                return ranking
        return None

    def experts(self, key: str) -> typing.List[str]:
        return [other for other, _ in (self.get(key) or [])]

    def to_dataframe(self) -> pd.DataFrame:
        rows = []
        for key, ranking in self.entries:
            for index, (other, score) in enumerate(ranking):
                rows.append({"key": key, "other": other, "score": score, "rank": index + 1})
        return pd.DataFrame(rows, columns=["key", "other", "score", "rank"])

    def export_csv(self, path: str = "gitsme-output.csv") -> None:
        logger.info(f"dump result to csv: {path}")
        self.to_dataframe().to_csv(path, index=False)

    def export_networkx(self) -> nx.Graph:
        g = nx.Graph()
        for key, ranking in self.entries:
            g.add_node(key)
            for other, score in ranking:
                g.add_node(other)
                g.add_edge(key, other, weight=score)
        return g

    def __bool__(self) -> bool:
        return bool(self.entries)

    def __len__(self) -> int:
        return len(self.entries)


class SmeQuery(object):
    """ Query Matcher: filters and ranks an AggregateResult """

    def __init__(self, config: SmeConfig = None):
        if not config:
            config = SmeConfig()
        self.config = config

        users = list(config.users)
        files = list(config.files)
        if not users and not files:
            files = [ROOT_PATH]
        if not config.fuzzy:
            files = [normalize_path_filter(each) for each in files]

        # fails before any walking starts
        self.user_matchers = compile_matchers(users, config.fuzzy)
        self.file_matchers = compile_matchers(files, config.fuzzy)

    def query(self, analysis: AggregateResult) -> SmeReport:
        top_n = self.config.top
        users = match_keys(analysis.by_contributor.keys(), self.user_matchers)
        files = match_keys(analysis.by_path.keys(), self.file_matchers)

        if self.user_matchers and not users:
            logger.warning(f"no contributor matched {self.user_matchers}")
        if self.file_matchers and not files:
            logger.warning(f"no path matched {self.file_matchers}")

        entries = []
        if self.user_matchers and self.file_matchers:
            # restrict the bipartite graph to users x files, both directions
            user_set, file_set = set(users), set(files)
            for user in users:
                row = analysis.by_contributor.row(user)
                entries.append((user, rank({k: v for k, v in row.items() if k in file_set}, top_n)))
            for path in files:
                row = analysis.by_path.row(path)
                entries.append((path, rank({k: v for k, v in row.items() if k in user_set}, top_n)))
        elif self.user_matchers:
            entries = [(user, rank(analysis.by_contributor.row(user), top_n)) for user in users]
        else:
            entries = [(path, rank(analysis.by_path.row(path), top_n)) for path in files]

        return SmeReport([(key, ranking) for key, ranking in entries if ranking])
