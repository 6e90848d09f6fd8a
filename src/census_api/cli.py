import asyncio
import click

from .db import Database


@click.group()
def cli():
    """Top-level CLI group for the census-api tool."""
    pass


@cli.command(name="serve")
@click.option("--host", default="0.0.0.0", help="Host to bind to")
@click.option("--port", default=8000, type=int, help="Port to bind to")
@click.option("--reload", is_flag=True, help="Enable auto-reload for development")
def serve(host: str, port: int, reload: bool):
    """Start the FastAPI REST API server."""
    import uvicorn
    click.echo(f"Starting API server on {host}:{port}")
    click.echo(f"API documentation: http://{host}:{port}/docs")
    uvicorn.run(
        "census_api.api:app",
        host=host,
        port=port,
        reload=reload,
        access_log=False,
    )


# ============================================================================
# Database Management Commands
# ============================================================================

def _run(database_url: str, operation, **kwargs):
    """Run one db_utils coroutine against a freshly opened database."""
    async def runner():
        database = Database.from_url(database_url)
        try:
            return await operation(database, **kwargs)
        finally:
            await database.dispose()
    return asyncio.run(runner())


database_url_option = click.option(
    "--database-url",
    envvar="POSTGRES_URI",
    required=True,
    help="Database connection string (or set POSTGRES_URI env var)",
)


@cli.group(name="db")
def db_group():
    """Database schema and data management commands."""
    pass


@db_group.command(name="create-schema")
@database_url_option
@click.option(
    "--drop-existing",
    is_flag=True,
    help="Drop existing tables before creating schema"
)
@click.confirmation_option(
    prompt="Are you sure you want to create the database schema?",
    help="Skip confirmation prompt"
)
def create_schema(database_url: str, drop_existing: bool):
    """Create tables and the population density view."""
    from . import db_utils

    click.echo(f"Creating schema in database: {database_url}")

    if drop_existing:
        click.echo(click.style("⚠️  WARNING: Dropping all existing tables!", fg="yellow", bold=True))

    try:
        _run(database_url, db_utils.create_schema, drop_existing=drop_existing)
        click.echo(click.style("✓ Schema created successfully!", fg="green"))
    except Exception as e:
        click.echo(click.style(f"✗ Error creating schema: {e}", fg="red"), err=True)
        raise click.Abort()


@db_group.command(name="seed")
@database_url_option
def seed_data(database_url: str):
    """Seed the database with sample species, locations and census counts."""
    from . import db_utils

    click.echo(f"Seeding sample data in database: {database_url}")

    try:
        seeded = _run(database_url, db_utils.seed_initial_data)
        if seeded:
            click.echo(click.style("✓ Sample data seeded successfully!", fg="green"))
        else:
            click.echo(click.style("Species already present, nothing seeded.", fg="yellow"))
    except Exception as e:
        click.echo(click.style(f"✗ Error seeding data: {e}", fg="red"), err=True)
        raise click.Abort()


@db_group.command(name="stats")
@database_url_option
def show_stats(database_url: str):
    """Show database statistics (record counts per table)."""
    from . import db_utils

    click.echo(f"Fetching statistics from database: {database_url}\n")

    try:
        stats = _run(database_url, db_utils.get_database_stats)
    except Exception as e:
        click.echo(click.style(f"✗ Error fetching statistics: {e}", fg="red"), err=True)
        raise click.Abort()

    max_table_len = max(len(table) for table in stats.keys())

    click.echo(click.style("Database Statistics", bold=True))
    click.echo("=" * (max_table_len + 20))
    for table, count in stats.items():
        color = "green" if count > 0 else "white"
        click.echo(f"  {table:<{max_table_len}} : {click.style(str(count), fg=color)}")

    total_records = sum(stats.values())
    click.echo("=" * (max_table_len + 20))
    click.echo(f"Total Records: {click.style(str(total_records), fg='cyan', bold=True)}")


@db_group.command(name="verify")
@database_url_option
def verify_schema(database_url: str):
    """Verify that every table and the density view are queryable."""
    from . import db_utils

    click.echo(f"Verifying schema in database: {database_url}\n")

    is_valid = _run(database_url, db_utils.verify_schema)
    if is_valid:
        click.echo(click.style("✓ Schema verification passed!", fg="green", bold=True))
    else:
        click.echo(click.style("✗ Schema verification failed!", fg="red", bold=True), err=True)
        raise click.Abort()


@db_group.command(name="init")
@database_url_option
@click.option(
    "--drop-existing",
    is_flag=True,
    help="Drop existing tables before creating schema"
)
def init_database(database_url: str, drop_existing: bool):
    """Initialize database (create schema + seed data)."""
    from . import db_utils

    click.echo(click.style("Initializing database...\n", bold=True))
    click.echo(f"Database: {database_url}\n")

    if drop_existing:
        click.echo(click.style("⚠️  WARNING: This will drop all existing tables!", fg="yellow", bold=True))
        if not click.confirm("Are you sure you want to continue?"):
            raise click.Abort()

    try:
        click.echo("\n[1/3] Creating schema...")
        _run(database_url, db_utils.create_schema, drop_existing=drop_existing)
        click.echo(click.style("  ✓ Schema created", fg="green"))

        click.echo("\n[2/3] Seeding sample data...")
        _run(database_url, db_utils.seed_initial_data)
        click.echo(click.style("  ✓ Data seeded", fg="green"))

        click.echo("\n[3/3] Verifying schema...")
        if not _run(database_url, db_utils.verify_schema):
            click.echo(click.style("  ✗ Verification failed", fg="red"))
            raise click.Abort()
        click.echo(click.style("  ✓ Verification passed", fg="green"))

        stats = _run(database_url, db_utils.get_database_stats)
    except click.Abort:
        raise
    except Exception as e:
        click.echo(click.style(f"\n✗ Database initialization failed: {e}", fg="red", bold=True), err=True)
        raise click.Abort()

    click.echo("\n" + "=" * 60)
    click.echo(click.style("Database initialized successfully!", fg="green", bold=True))
    click.echo("=" * 60 + "\n")
    click.echo("Initial record counts:")
    for table, count in sorted(stats.items()):
        if count > 0:
            click.echo(f"  {table}: {count}")


__all__ = ["cli"]
