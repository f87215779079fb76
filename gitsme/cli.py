import sys

import click
from loguru import logger
from tqdm import tqdm

from gitsme.analyzer import CommitAnalyzer
from gitsme.config import SmeConfig
from gitsme.loader import CommitLoader
from gitsme.model import GitSmeException, PatternCompileError
from gitsme.query import SmeQuery
from gitsme.storage import CachePurpose, Storage


@click.group()
def cli():
    pass


@cli.command()
@click.option("--repo", "repo_root", required=True, help="Path to the git repository")
@click.option("--branch", default="master", help="Branch to process, falls back to the checked-out one")
@click.option("--use-cache/--no-use-cache", default=False, help="Keep loaded commits and analysis between runs")
@click.option("--ignore-cache", is_flag=True, default=False, help="Ignore any existing cache for this repository")
@click.option("--file", "files", multiple=True, help="Path (or pattern with --fuzzy) to limit analysis to")
@click.option("--user", "users", multiple=True, help="User (or pattern with --fuzzy) to limit analysis to")
@click.option("--fuzzy", is_flag=True, default=False, help="Treat --file and --user as regular expressions")
@click.option("--top", default=10, type=int, help="Number of users/files to show per entry")
@click.option("--force", is_flag=True, default=False, help="Recompute the analysis from every loaded commit")
@click.option("--output-path", default="", help="Also dump the result to this CSV file")
def analyze(repo_root, branch, use_cache, ignore_cache, files, users, fuzzy, top, force, output_path):
    """ find the subject matter experts of files and directories """
    config = SmeConfig(
        repo_root=repo_root,
        branch=branch,
        use_cache=use_cache,
        ignore_cache=ignore_cache,
        files=list(files),
        users=list(users),
        fuzzy=fuzzy,
        top=top,
    )

    try:
        query = SmeQuery(config)
    except PatternCompileError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    loader = CommitLoader(config)
    if not loader.valid:
        click.echo(f"Error: {loader.error_message}", err=True)
        sys.exit(1)

    click.echo(f"Repository: {loader.repository.identity}, Branch: {loader.branch}")
    if loader.branch_fallback:
        click.echo(f"Branch {branch} not found, using {loader.branch}")

    load_bar = tqdm(desc="Loaded", unit="commit")

    def on_load(new_count, processed_count, total_count):
        load_bar.total = total_count
        load_bar.update(1)

    analyze_bar = tqdm(desc="Analyzed", unit="commit")

    def on_analyze(processed_count, total_count):
        analyze_bar.total = total_count
        analyze_bar.update(1)

    analyzer = CommitAnalyzer(loader)
    try:
        analysis = analyzer.analyze(force=force, progress=on_analyze, load_progress=on_load)
    except GitSmeException as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        load_bar.close()
        analyze_bar.close()

    report = query.query(analysis)
    click.echo()
    if not report:
        click.echo("No data found!")
        return

    for key, ranking in report.entries:
        experts = ", ".join(f"{other} ({score:.2f})" for other, score in ranking)
        click.echo(f"{key}: {experts}")

    if output_path:
        report.export_csv(path=output_path)


@cli.command(name="clear-cache")
@click.option("--repo", "repo_root", required=True, help="Path to the git repository")
@click.option("--branch", default="master", help="Branch whose cache is removed")
def clear_cache(repo_root, branch):
    """ remove cached commits and analysis of a branch """
    config = SmeConfig(repo_root=repo_root, branch=branch)
    loader = CommitLoader(config)
    if not loader.valid:
        click.echo(f"Error: {loader.error_message}", err=True)
        sys.exit(1)

    storage = Storage(config)
    removed = 0
    for purpose in (CachePurpose.COMMITS, CachePurpose.ANALYSIS):
        key = storage.key_for(loader.repository.identity, loader.branch, purpose)
        if storage.clear(key):
            removed += 1
    logger.info(f"{removed} cache entries removed")
    click.echo(f"{removed} cache entries removed.")


if __name__ == '__main__':
    cli()
