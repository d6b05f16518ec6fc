# storesync/cli.py
import asyncio
import json
import logging

import click

from storesync.core.config import get_settings
from storesync.core.logging_config import configure_logging

logger = logging.getLogger(__name__)


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level):
    """Multi-platform store sync."""
    configure_logging(log_level or get_settings().LOG_LEVEL)


@cli.command()
@click.option("--full", is_flag=True, help="Full historical sync instead of the 1-day window")
def sync(full):
    """Run one sync across eBay and every configured Shopify store."""
    from storesync.database import dispose_engine, get_session_factory
    from storesync.services.sync_service import SyncService

    async def _sync():
        try:
            service = SyncService(get_session_factory())
            return await service.run_sync(is_initial_sync=full)
        finally:
            await dispose_engine()

    result = asyncio.run(_sync())
    click.echo(json.dumps(result.to_dict(), indent=2))
    if not result.success:
        raise SystemExit(1)


@cli.command("create-tables")
def create_tables_command():
    """Create the orders, products and customers tables directly using SQLAlchemy"""
    from storesync.database import create_tables, dispose_engine

    async def _create_tables():
        try:
            await create_tables()
        finally:
            await dispose_engine()

    asyncio.run(_create_tables())
    click.echo("All tables created successfully!")


@cli.command()
def schedule():
    """Run the daily sync scheduler until interrupted."""
    from storesync.database import dispose_engine, get_session_factory
    from storesync.scheduler import create_scheduler
    from storesync.services.sync_service import SyncService

    async def _run():
        service = SyncService(get_session_factory())
        scheduler = create_scheduler(service)
        scheduler.start()
        for job in scheduler.get_jobs():
            logger.info(f"  - {job.name}: {job.trigger}")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown(wait=False)
            await dispose_engine()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        logger.info("Scheduler stopped")


if __name__ == "__main__":
    cli()
