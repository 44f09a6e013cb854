"""
Root Typer application for the sitefactory CLI.

Every command works on one site, described by the same three options as
a Factory: the global config file, the site config file and the site id.
"""

from __future__ import annotations

import typer
from typer import Typer

from sitefactory.cli.utils import build_factory, console, fail, output_dict, output_rows
from sitefactory.core.config.settings import get_settings
from sitefactory.core.errors import SiteFactoryError
from sitefactory.core.logging import configure_logging

app = Typer(
    name="sitefactory",
    help="sitefactory: inspect and serve configured sites.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = Typer(no_args_is_help=True)
app.add_typer(config_app, name="config", help="Site configuration.")

ConfigOption = typer.Option(None, "--config", "-c", help="Global config file")
SiteConfigOption = typer.Option(None, "--site-config", "-s", help="Site config file")
SiteOption = typer.Option(None, "--site", help="Site id")
JsonOption = typer.Option(False, "--json", help="Output as JSON")


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from sitefactory import __version__

        typer.echo(f"sitefactory {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """sitefactory CLI: site status, configuration, classes and database."""


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("status")
def status(
    config: str | None = ConfigOption,
    site_config: str | None = SiteConfigOption,
    site: str | None = SiteOption,
    as_json: bool = JsonOption,
) -> None:
    """Show the site's files, database, template path and classes."""
    factory = build_factory(config, site_config, site)
    try:
        factory.load_classes()
        output_dict(factory.status(), as_json=as_json, title=f"Site {factory.id}")
    except SiteFactoryError as exc:
        fail(exc)
    finally:
        factory.close()


@config_app.command("show")
def show_config(
    config: str | None = ConfigOption,
    site_config: str | None = SiteConfigOption,
    site: str | None = SiteOption,
    as_json: bool = JsonOption,
) -> None:
    """Show every configuration parameter, its value and where it came from."""
    factory = build_factory(config, site_config, site)
    try:
        store = factory.config
    except SiteFactoryError as exc:
        fail(exc)
    if as_json:
        output_dict(store.as_dict(), as_json=True)
        return
    rows = [
        {
            "parameter": name,
            "value": store.get(name),
            "source": sorted(set(store.provenance(name).values())),
        }
        for name in store.all_names()
    ]
    output_rows(rows, title="Configuration")


@app.command("classes")
def classes(
    config: str | None = ConfigOption,
    site_config: str | None = SiteConfigOption,
    site: str | None = SiteOption,
    as_json: bool = JsonOption,
) -> None:
    """List the site's data classes by moniker."""
    factory = build_factory(config, site_config, site)
    try:
        rows = [
            {
                "moniker": moniker,
                "class": factory.class_name(moniker),
                "title": factory.title(moniker),
                "plural": factory.plural(moniker),
                "description": factory.description(moniker),
            }
            for moniker in factory.classes
        ]
    except SiteFactoryError as exc:
        fail(exc)
    output_rows(rows, as_json=as_json, title="Classes")


@app.command("init-db")
def init_db(
    config: str | None = ConfigOption,
    site_config: str | None = SiteConfigOption,
    site: str | None = SiteOption,
) -> None:
    """Create the tables of every data class the site manages."""
    factory = build_factory(config, site_config, site)
    try:
        tables = factory.create_tables()
    except SiteFactoryError as exc:
        fail(exc)
    finally:
        factory.close()
    console.print(f"[green]✓[/green] {len(tables)} table(s) ready: {', '.join(tables)}")


@app.command("serve")
def serve(
    config: str | None = ConfigOption,
    site_config: str | None = SiteConfigOption,
    site: str | None = SiteOption,
    host: str = typer.Option("127.0.0.1", "--host", "-h", help="Bind address"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    log_level: str | None = typer.Option(None, "--log-level", help="Defaults to the log_level setting"),
) -> None:
    """Serve the site over HTTP."""
    import uvicorn

    from sitefactory.web.app import create_app

    settings = get_settings()
    level = (log_level or settings.log_level).upper()
    configure_logging(level=level, json_format=settings.log_format == "json")
    factory = build_factory(config, site_config, site)
    console.print(f"[bold green]Serving site {factory.id}[/bold green] on {host}:{port}")
    uvicorn.run(create_app(site, factory=factory), host=host, port=port, log_level=level.lower())
