"""Admin CLI for feeds, the crawl schedule and headline search."""
import json
from datetime import timedelta
from pathlib import Path

import click

from newsfeeds.config import get_db_path, get_project_dir, load_config
from newsfeeds.database import Database, FeedInUseError, NotFoundError
from newsfeeds.models import CrawlReport, utcnow
from newsfeeds.query import sanitize
from newsfeeds.ranking import RankingEngine, half_life_decay
from newsfeeds.scheduler import FeedScheduler
from newsfeeds.service import HeadlineQueryService


def get_db() -> Database:
    """Get database instance."""
    return Database(get_db_path(load_config()))


def build_service(db: Database, config: dict) -> HeadlineQueryService:
    half_life = timedelta(hours=config["ranking"]["half_life_hours"])
    engine = RankingEngine(half_life_decay(half_life))
    return HeadlineQueryService(db, engine)


@click.group()
def cli():
    """newsfeeds - Crawl schedule and headline search for news aggregators."""
    pass


# === Search ===


@cli.command()
@click.option("--query", "-q", "raw_query", default="", help="Search text; empty lists newest headlines")
@click.option("--since-days", type=float, default=None, help="Only headlines added in the last N days")
@click.option("--min-rank", type=float, default=None, help="Minimum rank for search results")
@click.option("--limit", "-n", type=click.IntRange(min=0), default=None, help="Maximum results")
@click.option("--offset", type=click.IntRange(min=0), default=0, help="Skip this many results")
@click.option("--json", "output_json", is_flag=True, help="Output as a JSON array")
def search(raw_query: str, since_days: float | None, min_rank: float | None,
           limit: int | None, offset: int, output_json: bool):
    """Browse or search recent headlines."""
    config = load_config()
    search_config = config["search"]
    db = get_db()
    service = build_service(db, config)

    since = timedelta(days=since_days if since_days is not None else search_config["since_days"])
    min_rank = min_rank if min_rank is not None else search_config["min_rank"]
    limit = limit if limit is not None else search_config["limit"]

    if output_json:
        click.echo(service.search_as_json(since, raw_query, min_rank, limit, offset))
        return

    results = service.query(since, raw_query, min_rank, limit, offset)
    browsing = sanitize(raw_query).is_empty
    if not results:
        click.echo("No headlines found")
        return
    for result in results:
        headline = result.headline
        rank = "" if browsing else f" ({result.rank:.3f})"
        click.echo(f"[{headline.display_source}] {headline.title or '(untitled)'}{rank}")
        click.echo(f"    {headline.url}")


# === Crawl Schedule ===


@cli.command()
def pending():
    """Print feeds due for a crawl as JSON, for the crawler."""
    db = get_db()
    plan = FeedScheduler(db).plan()
    for feed_id, error in plan.errors.items():
        click.echo(f"Skipped feed {feed_id}: {error}", err=True)
    click.echo(json.dumps([request.to_dict() for request in plan.requests], indent=2))


@cli.command()
@click.argument("report_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--verbose", "-v", is_flag=True, help="Show detailed progress")
def ingest(report_file: str, verbose: bool):
    """Store a crawler report (JSON object or list of objects)."""
    import logging

    from newsfeeds.logging_config import setup_logging

    config = load_config()
    setup_logging(get_project_dir() / "logs", config["logging"]["retention_days"], verbose)
    logger = logging.getLogger(__name__)

    data = json.loads(Path(report_file).read_text())
    reports = [CrawlReport.from_dict(item) for item in (data if isinstance(data, list) else [data])]

    db = get_db()
    scheduler = FeedScheduler(db)
    total = 0
    for report in reports:
        try:
            total += len(scheduler.record_crawl(report))
        except NotFoundError as e:
            logger.error(f"Report for unknown feed {report.feed_id}: {e}")
            click.echo(f"Error: feed {report.feed_id} not found", err=True)
            raise SystemExit(1)

    skipped = sum(report.skipped for report in reports)
    suffix = f", skipped {skipped} with unusable links" if skipped else ""
    click.echo(f"Stored {total} headlines from {len(reports)} reports{suffix}")


# === Feed Management Commands ===


@cli.group()
def feeds():
    """Manage news aggregator feeds."""
    pass


@feeds.command("add")
@click.argument("url")
@click.option("--name", required=True, help="Human readable feed name")
@click.option("--entries", required=True, help="Selector for each headline entry")
@click.option("--title-selector", required=True, help="Selector for the headline title")
@click.option("--link-selector", required=True, help="Selector for the headline link")
@click.option("--exclude-selector", default=None, help="Selector for entries to skip")
@click.option("--label-selector", default=None, help="Selector for headline labels")
@click.option("--discussion-selector", default=None, help="Selector for the discussion link")
@click.option("--interval", type=click.IntRange(min=1), default=None, help="Minutes between polls")
def feeds_add(url: str, name: str, entries: str, title_selector: str, link_selector: str,
              exclude_selector: str | None, label_selector: str | None,
              discussion_selector: str | None, interval: int | None):
    """Add a news aggregator feed."""
    feeds_config = load_config()["feeds"]
    db = get_db()
    interval = interval or feeds_config["update_interval_minutes"]

    try:
        feed = db.add_feed(
            url,
            feedname=name,
            entries=entries,
            title_selector=title_selector,
            link_selector=link_selector,
            exclude_selector=exclude_selector,
            label_selector=label_selector,
            discussion_selector=discussion_selector,
            update_interval=timedelta(minutes=interval),
            updated=utcnow() - timedelta(days=feeds_config["initial_lookback_days"]),
        )
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Added: [{feed.id}] {feed.feedname}")


@feeds.command("list")
def feeds_list():
    """List all feeds."""
    db = get_db()
    for feed in db.list_feeds():
        minutes = int(feed.update_interval.total_seconds() // 60)
        click.echo(f"[{feed.id}] {feed.feedname} (every {minutes}m)")
        click.echo(f"    {feed.crawl_url}")
        click.echo(f"    last polled {feed.updated.strftime('%Y-%m-%d %H:%M')}")


@feeds.command("remove")
@click.argument("feed_id", type=int)
def feeds_remove(feed_id: int):
    """Remove a feed that has no headlines."""
    db = get_db()
    try:
        db.delete_feed(feed_id)
    except (NotFoundError, FeedInUseError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
    click.echo(f"Removed: {feed_id}")


if __name__ == "__main__":
    cli()
