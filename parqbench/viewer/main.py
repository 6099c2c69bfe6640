"""parqbench CLI entrypoint."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import click

from parqbench.frames.types import SortKey
from parqbench.session.controller import SessionController
from parqbench.session.types import ApplyQuery, LoadFile, Request, SortBy, Status, ViewState
from parqbench.shared.cli import CLIContext, common_cli_options, handle_cli_errors, pass_cli_context

from . import render


@click.group(help="Browse Parquet and CSV files with SQL filtering and sorting.")
@common_cli_options
@handle_cli_errors
def cli(cli_ctx: CLIContext) -> None:
    """Primary Click group for parqbench commands."""
    cli_ctx.logger.debug("parqbench group initialised.")


@cli.command("view")
@click.argument("filename", type=str)
@click.option("-q", "--query", type=str, help="SQL to apply after loading (table alias from --table-name).")
@click.option("-t", "--table-name", "table_name", type=str, help="Table alias used in SQL queries.")
@click.option("-d", "--delimiter", type=str, help="CSV delimiter; detected automatically when omitted.")
@click.option(
    "-s",
    "--sort",
    "sort_keys",
    multiple=True,
    metavar="COLUMN[:asc|desc]",
    help="Sort by a column; repeat for secondary keys.",
)
@click.option("--limit", type=int, help="Maximum rows to print (0 prints everything).")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(render.OUTPUT_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def view(
    cli_ctx: CLIContext,
    filename: str,
    query: str | None,
    table_name: str | None,
    delimiter: str | None,
    sort_keys: Sequence[str],
    limit: int | None,
    output_format: str,
) -> None:
    """Load FILENAME, optionally query and sort it, and print the result."""
    config = cli_ctx.config.with_table_name(table_name) if table_name else cli_ctx.config
    requests: list[Request] = [LoadFile(source=filename, csv_delimiter=delimiter)]
    if query is not None:
        requests.append(ApplyQuery(sql_text=query, table_alias=config.query.table_name))
    if sort_keys:
        requests.append(SortBy(columns=tuple(SortKey.parse(raw) for raw in sort_keys)))

    result = _run_requests(cli_ctx, requests)
    render.render_view(
        result,
        output_format=output_format,
        display=cli_ctx.config.display,
        logger=cli_ctx.logger,
        limit=limit,
    )


@cli.command("schema")
@click.argument("filename", type=str)
@click.option("-d", "--delimiter", type=str, help="CSV delimiter; detected automatically when omitted.")
@click.option(
    "--format",
    "output_format",
    default="table",
    show_default=True,
    type=click.Choice(render.SCHEMA_FORMAT_CHOICES),
)
@pass_cli_context
@handle_cli_errors
def schema(cli_ctx: CLIContext, filename: str, delimiter: str | None, output_format: str) -> None:
    """Show column types, nullability and row counts for FILENAME."""
    result = _run_requests(cli_ctx, [LoadFile(source=filename, csv_delimiter=delimiter)])
    if result.frame is None:
        raise click.ClickException("No data loaded.")
    render.render_schema(result.frame, output_format=output_format)


@cli.command("examples")
@pass_cli_context
def examples(cli_ctx: CLIContext) -> None:
    """Print example SQL statements, starting with the configured default query."""
    render.render_examples(default_query=cli_ctx.config.query.default_query)


def _run_requests(cli_ctx: CLIContext, requests: Iterable[Request]) -> ViewState:
    """Submit each request in turn, waiting for it to settle before the next one."""
    with SessionController(cli_ctx.config, logger=cli_ctx.logger) as controller:
        snapshot = controller.snapshot()
        for request in requests:
            controller.submit(request)
            snapshot = controller.wait_idle()
            if snapshot.status is Status.FAILED and snapshot.error is not None:
                raise click.ClickException(f"{snapshot.error.kind.value}: {snapshot.error.message}")
    return snapshot


def main() -> None:
    """Entry point for console_scripts."""
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
