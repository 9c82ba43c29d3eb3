"""Command line interface for the Databox client."""

import json
import logging
from typing import List, Optional, Tuple

import click

from .client import API_URL, Client
from .errors import DataboxError
from .types import KPI


def _parse_attribute(raw: str) -> Tuple[str, object]:
    name, sep, value = raw.partition('=')
    if not sep or not name:
        raise click.BadParameter(f"expected name=value, got {raw!r}", param_hint='--attribute')
    # Allow JSON values (numbers, booleans) and fall back to the raw string
    try:
        return name, json.loads(value)
    except ValueError:
        return name, value


def _echo_status(status):
    click.echo(f"{status.type}: {status.message} (id={status.id})")


@click.group()
@click.option('--token', envvar='DATABOX_PUSH_TOKEN', required=True, help='Databox push token')
@click.option('--host', default=API_URL, show_default=True, help='Databox push host')
@click.option('--timeout', default=None, type=float, help='Request timeout in seconds')
@click.option('--verbose', is_flag=True, help='Log HTTP traffic')
@click.pass_context
def cli(ctx, token: str, host: str, timeout: Optional[float], verbose: bool):
    """Databox push client CLI."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    ctx.obj = ctx.with_resource(Client(token, push_host=host, timeout=timeout))


@cli.command()
@click.option('--key', required=True, help='Metric key')
@click.option('--value', required=True, type=float, help='Metric value')
@click.option('--unit', default='', help='Unit of the value')
@click.option('--date', default='', help='YYYY-MM-DD, "YYYY-MM-DD HH:MM:SS" or with a +HH:MM offset')
@click.option('--attribute', 'attributes', multiple=True, help='Attribute as name=value')
@click.pass_obj
def push(client: Client, key: str, value: float, unit: str, date: str, attributes: List[str]):
    """Push a single metric value."""
    kpi = KPI(
        key=key,
        value=value,
        unit=unit,
        date=date,
        attributes=dict(_parse_attribute(a) for a in attributes),
    )
    try:
        _echo_status(client.push(kpi))
    except DataboxError as e:
        raise click.ClickException(str(e))


@cli.command('insert-all')
@click.argument('source', type=click.File('r'))
@click.option('--force-push', is_flag=True, help='Ask the service not to deduplicate this batch')
@click.pass_obj
def insert_all(client: Client, source, force_push: bool):
    """Push a JSON list of KPIs read from SOURCE ('-' for stdin)."""
    try:
        records = json.load(source)
    except ValueError as e:
        raise click.ClickException(f"invalid JSON in {source.name}: {e}")
    if not isinstance(records, list):
        raise click.ClickException("expected a JSON list of KPIs")

    try:
        kpis = [KPI.from_dict(r) for r in records]
    except (AttributeError, TypeError, ValueError) as e:
        raise click.ClickException(f"invalid KPI record: {e}")
    try:
        _echo_status(client.insert_all(kpis, force_push=force_push))
    except DataboxError as e:
        raise click.ClickException(str(e))


@cli.command('last-pushes')
@click.option('--limit', default=5, type=int, help='Number of pushes to show')
@click.pass_obj
def last_pushes(client: Client, limit: int):
    """Show the most recent pushes."""
    try:
        df = client.last_pushes_frame(limit)
    except DataboxError as e:
        raise click.ClickException(str(e))

    if df.empty:
        click.echo("No pushes found")
    else:
        click.echo(df.to_string())


@cli.command('last-push')
@click.pass_obj
def last_push(client: Client):
    """Show the latest push with its payload."""
    try:
        push = client.last_push()
    except DataboxError as e:
        raise click.ClickException(str(e))

    click.echo(f"{push.request.date}  {push.response.body.type}: {push.response.body.message}")
    click.echo(json.dumps(push.request.body.to_json_data(), indent=2))
    for error in push.request.errors:
        click.echo(f"error: {error}", err=True)


if __name__ == '__main__':
    cli()
