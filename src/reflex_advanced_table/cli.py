"""CLI for reflex-advanced-table -- query and browse tabular files.

Usage::

    # Print page 2 of the rows whose status is "active", most expensive first
    reflex-advanced-table query products.csv --filter status=active \\
        --sort price:desc --page 2 --page-size 10

    # Range and any-of filters, free-text search
    reflex-advanced-table query products.parquet --filter price=10..50 \\
        --filter category=books,games --search lamp

    # Browse a file in a generated Reflex app
    reflex-advanced-table view products.csv --page-size 50
"""

import asyncio
import json
import logging
import os
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from reflex_advanced_table.memory import InMemoryDataSource
from reflex_advanced_table.models import DataSourceParams, Pagination, SortSpec

app = typer.Typer(
    name="reflex-advanced-table",
    help="Query and browse tabular data files with the advanced table engine.",
    no_args_is_help=True,
)


@app.callback()
def _configure(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _parse_sort(values: list[str]) -> list[SortSpec]:
    """``["price:desc", "name"]`` -> sort keys (ascending by default)."""
    sorting: list[SortSpec] = []
    for value in values:
        field, _, direction = value.partition(":")
        direction = direction.lower() or "asc"
        if direction not in ("asc", "desc"):
            raise typer.BadParameter(f"sort direction must be asc or desc, got {direction!r}")
        sorting.append(SortSpec(field=field, direction=direction))  # type: ignore[arg-type]
    return sorting


def _parse_filter_value(raw: str) -> Any:
    if ".." in raw:
        low, _, high = raw.partition("..")
        return {"min": low or None, "max": high or None}
    if "," in raw:
        return [part for part in raw.split(",") if part]
    return raw


def _parse_filters(values: list[str]) -> dict[str, Any]:
    """``["status=active", "price=10..50", "tag=a,b"]`` -> raw filter values."""
    filters: dict[str, Any] = {}
    for value in values:
        key, sep, raw = value.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"filters look like key=value, got {value!r}")
        filters[key] = _parse_filter_value(raw)
    return filters


def _check_file(file: Path) -> Path:
    file = file.resolve()
    if not file.exists():
        typer.echo(f"Error: file not found: {file}", err=True)
        raise typer.Exit(code=1)
    return file


@app.command()
def query(
    file: Annotated[Path, typer.Argument(help="Path to the data file (CSV, TSV, Parquet, JSON, NDJSON, IPC)")],
    page: Annotated[int, typer.Option("--page", min=1, help="Page number (1-based)")] = 1,
    page_size: Annotated[int, typer.Option("--page-size", "-n", min=1, help="Rows per page")] = 20,
    sort: Annotated[Optional[list[str]], typer.Option("--sort", "-s", help="Sort key, field[:asc|desc]; repeatable")] = None,
    filter_: Annotated[Optional[list[str]], typer.Option("--filter", "-f", help="key=value, key=min..max or key=a,b; repeatable")] = None,
    search: Annotated[str, typer.Option("--search", "-q", help="Free-text search across every column")] = "",
    id_field: Annotated[str, typer.Option("--id-field", help="Row identifier column")] = "id",
) -> None:
    """Print one page of a data file as JSON."""
    file = _check_file(file)
    try:
        source = InMemoryDataSource.from_file(file, id_field=id_field)
    except ValueError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    params = DataSourceParams(
        pagination=Pagination(page=page, page_size=page_size),
        sorting=tuple(_parse_sort(sort or [])),
        filters=_parse_filters(filter_ or []),
        search=search,
    )
    result = asyncio.run(source.fetch(params))
    payload = {
        "rows": result.rows,
        "total": result.total,
        "page": result.page,
        "page_size": result.page_size,
        "total_pages": result.total_pages,
    }
    typer.echo(json.dumps(payload, indent=2, default=str))


def _build_app_code(file_path: Path, page_size: int, title: str, id_field: str) -> str:
    """Generate the Reflex app module source code."""
    abs_path = str(file_path.resolve())
    # Escape backslashes and quotes for embedding in a Python string literal.
    safe_path = abs_path.replace("\\", "\\\\").replace('"', '\\"')

    template = _APP_TEMPLATE
    template = template.replace("__FILENAME__", file_path.name)
    template = template.replace("__SAFE_PATH__", safe_path)
    template = template.replace("__PAGE_SIZE__", str(page_size))
    template = template.replace("__ID_FIELD__", id_field.replace('"', '\\"'))
    template = template.replace("__TITLE__", title.replace('"', '\\"'))
    return template


# ---------------------------------------------------------------------------
# App template -- uses __PLACEHOLDER__ tokens for dynamic parts.
# ---------------------------------------------------------------------------

_APP_TEMPLATE = '''"""Auto-generated table app for: __FILENAME__"""

import reflex as rx

from reflex_advanced_table import (
    AdvancedTableMixin,
    InMemoryDataSource,
    PolarsSchemaProvider,
    TableOptions,
    load_frame,
)


class ViewerState(AdvancedTableMixin, rx.State):
    """Viewer state backed by an in-memory data source."""

    async def load_data(self):
        df = load_frame("__SAFE_PATH__")
        source = InMemoryDataSource.from_frame(df, id_field="__ID_FIELD__")
        schema = PolarsSchemaProvider(df.schema, id_field="__ID_FIELD__")
        options = TableOptions(page_size=__PAGE_SIZE__)
        async for _ in self.set_data_source(source, schema, options):
            yield

    async def next_page(self):
        model = dict(self.table_pagination_model)
        if model["page"] + 1 < self.table_total_pages:
            model["page"] += 1
            async for _ in self.handle_table_pagination(model):
                yield

    async def previous_page(self):
        model = dict(self.table_pagination_model)
        if model["page"] > 0:
            model["page"] -= 1
            async for _ in self.handle_table_pagination(model):
                yield


def _cell(row: rx.Var, column: rx.Var) -> rx.Component:
    return rx.table.cell(row[column["field"]].to_string())


def _row(row: rx.Var) -> rx.Component:
    return rx.table.row(
        rx.foreach(ViewerState.table_columns, lambda column: _cell(row, column)),
    )


def index() -> rx.Component:
    return rx.box(
        rx.heading("__TITLE__", size="6", margin_bottom="0.5em"),
        rx.hstack(
            rx.input(
                placeholder="Search...",
                value=ViewerState.table_search,
                on_change=ViewerState.set_table_search,
            ),
            rx.button("Previous", on_click=ViewerState.previous_page),
            rx.button("Next", on_click=ViewerState.next_page),
            rx.text(ViewerState.table_status, color="var(--gray-9)"),
            margin_bottom="1em",
        ),
        rx.cond(ViewerState.table_error != "", rx.callout(ViewerState.table_error, color_scheme="red")),
        rx.cond(
            ViewerState.table_loaded,
            rx.table.root(
                rx.table.header(
                    rx.table.row(
                        rx.foreach(
                            ViewerState.table_columns,
                            lambda column: rx.table.column_header_cell(column["headerName"].to_string()),
                        ),
                    ),
                ),
                rx.table.body(rx.foreach(ViewerState.table_rows, _row)),
            ),
            rx.text("Loading...", color="var(--gray-9)"),
        ),
        padding="2em",
        max_width="1400px",
        margin="0 auto",
    )


app = rx.App()
app.add_page(index, on_load=ViewerState.load_data)
'''


@app.command()
def view(
    file: Annotated[Path, typer.Argument(help="Path to the data file (CSV, TSV, Parquet, JSON, NDJSON, IPC)")],
    page_size: Annotated[int, typer.Option("--page-size", "-n", min=1, help="Rows per page")] = 20,
    port: Annotated[int, typer.Option("--port", "-p", help="Port for the Reflex frontend")] = 3000,
    title: Annotated[Optional[str], typer.Option("--title", "-t", help="Page title")] = None,
    id_field: Annotated[str, typer.Option("--id-field", help="Row identifier column")] = "id",
) -> None:
    """Browse a data file in a generated Reflex app."""
    file = _check_file(file)
    if title is None:
        title = f"{file.name} -- Advanced Table"

    app_code = _build_app_code(file, page_size, title, id_field)

    # Create a temporary Reflex app directory.
    tmp_dir = Path(tempfile.mkdtemp(prefix="advanced_table_viewer_"))
    app_name = "viewer_app"
    app_pkg = tmp_dir / app_name
    app_pkg.mkdir()
    (app_pkg / "__init__.py").write_text("")
    (app_pkg / f"{app_name}.py").write_text(app_code)

    rxconfig_code = f"""import reflex as rx
config = rx.Config(app_name="{app_name}", frontend_port={port})
"""
    (tmp_dir / "rxconfig.py").write_text(rxconfig_code)

    typer.echo(f"Launching viewer for: {file}")
    typer.echo(f"Page size: {page_size} | Port: {port}")

    os.chdir(tmp_dir)

    # reflex's CLI calls sys.exit() on completion, so init runs in a subprocess.
    typer.echo("Initializing Reflex project...")
    subprocess.run(
        [sys.executable, "-m", "reflex", "init"],
        cwd=str(tmp_dir),
        check=True,
    )

    typer.echo("Starting viewer...")
    os.execvp(sys.executable, [sys.executable, "-m", "reflex", "run"])


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
