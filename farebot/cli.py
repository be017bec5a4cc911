from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from .airports import DIRECTORY, UnresolvedCityError
from .aviasales_fetcher import AviasalesFetcher
from .config import SearchConfigError, Settings, get_settings
from .search import FareSearch

logger = logging.getLogger(__name__)


def setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        handlers=[logging.FileHandler(settings.log_file), logging.StreamHandler()],
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # python-telegram-bot logs every getUpdates call at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def make_search(settings: Settings, *, request_delay_s: Optional[float] = None) -> FareSearch:
    fetcher = AviasalesFetcher(
        settings.travelpayouts_token,
        price_url=settings.price_url,
        link_base_url=settings.link_base_url,
        currency=settings.currency,
    )
    delay = settings.request_delay_s if request_delay_s is None else request_delay_s
    return FareSearch(settings.search_config(), fetcher, request_delay_s=delay)


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Cheap flight search bot for Telegram."""
    settings = get_settings()
    setup_logging(settings)
    ctx.obj = settings


@cli.command()
@click.pass_obj
def run(settings: Settings) -> None:
    """Start the Telegram bot together with the scheduled search."""
    from .bot import build_application
    from .tasks import build_scheduler

    search = make_search(settings)
    try:
        application = build_application(settings, search)
    except SearchConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    build_scheduler(application, search, settings)
    logger.info("Starting bot, scheduled search at '%s'", settings.search_cron)
    application.run_polling()


@cli.command()
@click.option("--destination", "-d", help="City name or IATA code to search to")
@click.option("--months", "-m", type=click.IntRange(min=1), help="Months ahead to search")
@click.option("--no-delay", is_flag=True, help="Skip the pause between API requests")
@click.pass_obj
def search(
    settings: Settings,
    destination: Optional[str],
    months: Optional[int],
    no_delay: bool,
) -> None:
    """Run a single search and print the report."""
    fare_search = make_search(settings, request_delay_s=0 if no_delay else None)
    code = None
    if destination:
        literal = DIRECTORY.resolve_code(destination)
        if literal is not None:
            code = literal[0]
        else:
            try:
                code = DIRECTORY.resolve(destination)[0][0]
            except UnresolvedCityError as exc:
                raise click.BadParameter(str(exc), param_hint="--destination") from exc
    fare_search.update(destination=code, months_ahead=months)

    try:
        click.echo(fare_search.run())
    except SearchConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.argument("text", nargs=-1, required=True)
@click.option("--origin", "as_origin", is_flag=True, help="Exact lookup, as /origin does")
def resolve(text: tuple, as_origin: bool) -> None:
    """Resolve a city name to IATA codes."""
    query = " ".join(text)
    lookup = DIRECTORY.resolve_origin if as_origin else DIRECTORY.resolve
    try:
        codes, name = lookup(query)
    except UnresolvedCityError:
        click.echo(f"Not found: {query}", err=True)
        sys.exit(1)
    click.echo(f"{name}: {', '.join(codes)}")


@cli.command()
def cities() -> None:
    """List the cities known to the directory."""
    click.echo(DIRECTORY.city_list())


if __name__ == "__main__":
    cli()
