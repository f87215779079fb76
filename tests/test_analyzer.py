import pytest
from conftest import lines, make_record

from gitsme.analyzer import (
    CommitAnalyzer,
    affected_paths,
    aggregate,
    decay_weight,
    merge,
    weighted_value,
)
from gitsme.config import SmeConfig
from gitsme.loader import CommitLoader
from gitsme.model import AggregateResult, AnalysisSnapshot


def assert_same_result(left: AggregateResult, right: AggregateResult):
    assert left.by_contributor.to_dict().keys() == right.by_contributor.to_dict().keys()
    assert left.by_path.to_dict().keys() == right.by_path.to_dict().keys()
    for table_left, table_right in (
        (left.by_contributor, right.by_contributor),
        (left.by_path, right.by_path),
    ):
        for outer, inner_dict in table_left.items():
            assert inner_dict == pytest.approx(table_right[outer])


def assert_transposed(result: AggregateResult):
    for contributor, paths in result.by_contributor.items():
        for path, score in paths.items():
            assert result.by_path[path][contributor] == score
    for path, contributors in result.by_path.items():
        for contributor, score in contributors.items():
            assert result.by_contributor[contributor][path] == score


def test_decay_weight():
    assert decay_weight(0) == 1.0
    assert decay_weight(-50) == 1.0
    assert decay_weight(1) == 1.0
    assert decay_weight(1000) == pytest.approx(0.1)
    assert decay_weight(8) == pytest.approx(0.5)
    assert weighted_value(10, 1000) == pytest.approx(1.0)


def test_decay_monotonic():
    assert weighted_value(10, 100) > weighted_value(10, 101)
    assert weighted_value(10, 1) > weighted_value(10, 10 ** 9)


def test_affected_paths():
    assert affected_paths("a/b/c.ext") == ["/", "/a", "/a/b", "/a/b/c.ext"]
    assert affected_paths("x.ext") == ["/", "/x.ext"]
    assert affected_paths("a//b/") == ["/", "/a", "/a/b"]


def test_hierarchical_rollup():
    result = aggregate([make_record("c1", 1000, "alice", **{"src/lib/foo.ext": 10})], now=1008)
    w = decay_weight(8)

    assert sorted(result.by_path.keys()) == ["/", "/src", "/src/lib", "/src/lib/foo.ext"]
    for path in result.by_path.keys():
        assert result.by_path[path]["alice"] == pytest.approx(10 * w)


def test_rollup_sums_siblings():
    commit = make_record("c1", 1000, "alice", **{"src/a.ext": 3, "src/b.ext": 4})
    result = aggregate([commit], now=1000)

    assert result.by_path["/src/a.ext"]["alice"] == 3.0
    assert result.by_path["/src/b.ext"]["alice"] == 4.0
    assert result.by_path["/src"]["alice"] == 7.0
    assert result.by_path["/"]["alice"] == 7.0


def test_end_to_end_scenario():
    commits = [
        make_record("c1", 1000, "alice", **{"x.ext": 5}),
        make_record("c2", 2000, "alice", **{"x.ext": 5, "y.ext": 2}),
    ]
    result = aggregate(commits, now=2000)
    weight1 = decay_weight(1000)

    assert result.by_path["/x.ext"]["alice"] == pytest.approx(5 * weight1 + 5 * 1.0)
    assert result.by_path["/y.ext"]["alice"] == pytest.approx(2 * 1.0)
    assert result.by_path["/"]["alice"] == pytest.approx(5 * weight1 + 5 + 2)
    assert_transposed(result)


def test_transpose_invariant():
    commits = [
        make_record("c1", 100, "alice", **{"a/b.py": 4, "c.py": 1}),
        make_record("c2", 200, "bob", **{"a/b.py": 2, "a/d.py": 9}),
        make_record("c3", 300, "carol", **{"c.py": 3}),
        make_record("c4", 400, "alice", **{"a/d.py": 1}),
    ]
    result = aggregate(commits, now=1000)
    assert_transposed(result)
    assert result.contributors() == ["alice", "bob", "carol"]


def test_aggregate_progress():
    calls = []
    commits = [make_record(f"c{i}", i, "alice", **{"x": 1}) for i in range(3)]
    aggregate(commits, now=10, progress=lambda done, total: calls.append((done, total)))
    assert calls == [(1, 3), (2, 3), (3, 3)]


def test_incremental_equivalence():
    commits = [
        make_record("c1", 100, "alice", **{"a/b.py": 4, "c.py": 1}),
        make_record("c2", 200, "bob", **{"a/b.py": 2, "a/d.py": 9}),
        make_record("c3", 300, "carol", **{"c.py": 3}),
        make_record("c4", 400, "alice", **{"e/f/g.py": 1}),
        make_record("c5", 500, "dave", **{"a/b.py": 6}),
    ]
    now = 10000
    full = aggregate(commits, now)

    for split in range(len(commits) + 1):
        merged = merge(aggregate(commits[:split], now), aggregate(commits[split:], now))
        assert_same_result(merged, full)
        assert_transposed(merged)


def test_merge_commutative_and_associative():
    now = 5000
    a = [make_record("a", 100, "alice", **{"x/y.py": 3})]
    b = [make_record("b", 200, "bob", **{"x/y.py": 2, "z.py": 1})]
    c = [make_record("c", 300, "alice", **{"z.py": 8})]

    left = merge(aggregate(a, now), merge(aggregate(b, now), aggregate(c, now)))
    right = merge(merge(aggregate(a, now), aggregate(b, now)), aggregate(c, now))
    assert_same_result(left, right)

    ab = merge(aggregate(a, now), aggregate(b, now))
    ba = merge(aggregate(b, now), aggregate(a, now))
    assert_same_result(ab, ba)


def test_merge_does_not_alias_fresh():
    cached = AggregateResult()
    fresh = aggregate([make_record("c1", 1, "alice", **{"x": 2})], now=1)
    merge(cached, fresh)
    cached.add("alice", "/x", 1.0)
    assert fresh.by_path["/x"]["alice"] == 2.0


def test_analyzer_incremental(repo_builder, make_config):
    repo_builder.commit("alice@example.com", 1000, {"src/a.py": lines(5)})
    repo_builder.commit("bob@example.com", 2000, {"src/b.py": lines(3), "docs/readme.md": lines(2)})

    config = make_config(use_cache=True)
    first = CommitAnalyzer(CommitLoader(config))
    first.analyze(now=5000)
    assert first.analyzed
    assert first.processed_commits == 2

    repo_builder.commit("alice@example.com", 3000, {"src/b.py": lines(4, "new")})
    repo_builder.commit("carol@other.org", 4000, {"docs/guide.md": lines(7)})

    second = CommitAnalyzer(CommitLoader(config))
    incremental = second.analyze(now=5000)
    assert second.processed_commits == 2

    recomputed = aggregate(second.loader.commits, now=5000)
    assert_same_result(incremental, recomputed)
    assert_transposed(incremental)
    assert incremental.by_path["/src/b.py"]["alice"] == pytest.approx(
        (4 + 3) * decay_weight(2000)
    )


def test_analyzer_noop_second_run(repo_builder, make_config):
    repo_builder.commit("alice@example.com", 1000, {"a.py": lines(5)})
    config = make_config(use_cache=True)

    first = CommitAnalyzer(CommitLoader(config)).analyze(now=2000)
    second_analyzer = CommitAnalyzer(CommitLoader(config))
    second = second_analyzer.analyze(now=9000)

    assert second_analyzer.processed_commits == 0
    assert_same_result(first, second)


def test_analyzer_force_recompute(repo_builder, make_config):
    repo_builder.commit("alice@example.com", 1000, {"a.py": lines(8)})
    config = make_config(use_cache=True)

    CommitAnalyzer(CommitLoader(config)).analyze(now=2000)
    forced_analyzer = CommitAnalyzer(CommitLoader(config))
    forced = forced_analyzer.analyze(force=True, now=9000)

    assert forced_analyzer.processed_commits == 1
    assert forced.by_path["/a.py"]["alice"] == pytest.approx(8 * decay_weight(8000))


def test_analyzer_without_cache(repo_builder, make_config, cache_dir):
    repo_builder.commit("alice@example.com", 1000, {"a.py": lines(2)})
    analyzer = CommitAnalyzer(CommitLoader(make_config()))
    result = analyzer.analyze(now=1000)

    assert result.by_path["/"]["alice"] == 2.0
    # the root commit is not linear and is skipped
    assert "root" not in result.by_contributor


def test_analyzer_invalid(tmp_path, cache_dir):
    config = SmeConfig(repo_root=str(tmp_path / "missing"), cache_dir=cache_dir)
    analyzer = CommitAnalyzer(CommitLoader(config))
    assert not analyzer.valid
    assert analyzer.error_message
    assert analyzer.analyze().is_empty()


def test_analyzer_boundary_vanished(repo_builder, make_config):
    repo_builder.commit("alice@example.com", 1000, {"a.py": lines(3)})
    repo_builder.commit("bob@example.com", 2000, {"b.py": lines(4)})
    config = make_config(use_cache=True)

    first = CommitAnalyzer(CommitLoader(config))
    first.analyze(now=3000)
    stale = AnalysisSnapshot.from_result(first.analysis, last_commit_id="0" * 40, commit_count=2)
    first.storage.save(first.cache_key(), stale.model_dump())

    second = CommitAnalyzer(CommitLoader(config))
    result = second.analyze(now=3000)
    assert second.processed_commits == len(second.loader.commits) == 2
    assert_same_result(result, aggregate(second.loader.commits, now=3000))


def test_analyzer_force_reloads_commits(repo_builder, make_config):
    repo_builder.commit("alice@example.com", 1000, {"a.py": lines(3)})
    analyzer = CommitAnalyzer(CommitLoader(make_config()))
    analyzer.analyze(now=1000)

    repo_builder.commit("bob@example.com", 1000, {"b.py": lines(2)})
    assert "bob" not in analyzer.analyze(now=1000).by_contributor

    result = analyzer.analyze(force=True, now=1000)
    assert len(analyzer.loader.commits) == 2
    assert result.by_path["/"]["bob"] == 2.0
