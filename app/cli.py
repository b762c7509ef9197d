import json
import uuid
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer  # type: ignore

from coursebooks.decision import DecisionInputError, get_file_decisions, get_term_decisions
from coursebooks.enrollment import EnrollmentInputError, create_course_csv, match_enrollment
from coursebooks.ingestion import UnsupportedFileError
from coursebooks.query import CourseCursor, PageDirection, QueryError, QueryService
from coursebooks.store import IngestionPipeline, MergeError, SchemaError, create_database, load_registry
from coursebooks.utils.config_loader import load_settings
from coursebooks.utils.logger import LoggerManager
from coursebooks.utils.task_paths import TaskPaths
from coursebooks.utils.terms import split_full_term

app = typer.Typer(help="Course textbook store: ingest feeds, page courses, calculate buying decisions.")

paths = TaskPaths()

cli_logger = LoggerManager.get_logger(
    name="cli",
    task_paths=paths,
    run_id=None,            # leave None for long-lived processes
    use_json=True           # JSON for file logs, color for console
)

# Typed failures become one error line and exit code 1
CLI_ERRORS = (
    SchemaError,
    MergeError,
    QueryError,
    DecisionInputError,
    EnrollmentInputError,
    UnsupportedFileError,
    FileNotFoundError,
)


class State:
    """Settings resolved once per invocation by the app callback."""

    def __init__(self, settings, db_path: Path, registry_path: Optional[str]):
        self.settings = settings
        self.db_path = db_path
        self.registry_path = registry_path

    def registry(self):
        return load_registry(self.registry_path) if self.registry_path else None

    def service(self) -> QueryService:
        return QueryService(self.db_path, unit=str(self.settings.get("store.unit", "1")), registry=self.registry())


def _echo_json(data) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


def _fail(error: Exception, command: str) -> None:
    cli_logger.error(str(error), extra={"extra_data": {"command": command, "error_type": type(error).__name__}})
    raise typer.Exit(code=1)


def _split_term_or_exit(full_term: str, command: str):
    parts = split_full_term(full_term)
    if parts is None:
        cli_logger.error(f"Unexpected term code: {full_term}", extra={"extra_data": {"command": command}})
        raise typer.Exit(code=1)
    return parts


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="Settings YAML (defaults to $COURSEBOOKS_CONFIG or packaged settings)."),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite store path (overrides database.path)."),
):
    """
    Loads settings and configures logging for every command.
    """
    try:
        settings = load_settings(config)
    except (FileNotFoundError, ValueError) as e:
        _fail(e, "config")
    LoggerManager.configure(level=settings.get("logging.level"), log_dir=settings.get("logging.dir"))
    ctx.obj = State(
        settings=settings,
        db_path=Path(db or settings.get("database.path", "data/coursebooks.db")),
        registry_path=settings.get("registry.path"),
    )


@app.command("init-db")
def init_db(ctx: typer.Context):
    """
    Drops and recreates every table of the store.
    """
    state: State = ctx.obj
    try:
        created = create_database(state.db_path, registry=state.registry())
    except CLI_ERRORS as e:
        _fail(e, "init-db")
    cli_logger.info(f"Database ready at {state.db_path}", extra={"extra_data": {"tables": created}})
    _echo_json({"db_path": str(state.db_path), "tables": created})


@app.command()
def ingest(
    ctx: typer.Context,
    files: List[Path] = typer.Argument(..., help="Feed files, one per table (Books.csv, Sales.csv, ...)."),
):
    """
    Stages and merges feed files into the store in dependency order.
    """
    state: State = ctx.obj
    run_id = uuid.uuid4().hex[:12]
    cli_logger.info(f"Starting ingestion of {len(files)} files", extra={"extra_data": {"run_id": run_id}})
    try:
        pipeline = IngestionPipeline(state.db_path, registry=state.registry(), run_id=run_id)
        report = pipeline.ingest_files(files)
    except CLI_ERRORS as e:
        _fail(e, "ingest")

    typer.echo(report.model_dump_json(indent=2))
    if not report.ok:
        cli_logger.error(
            f"Ingestion stopped at {report.failed_table}",
            extra={"extra_data": {"run_id": run_id, "error": report.error}},
        )
        raise typer.Exit(code=1)
    cli_logger.info(f"Ingested {len(report.results)} files", extra={"extra_data": {"run_id": run_id, "unmatched": report.unmatched}})


@app.command()
def table(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Table name, e.g. Books."),
    offset: int = typer.Option(0, help="Page number (0-based)."),
    limit: Optional[int] = typer.Option(None, help="Rows per page."),
):
    """
    Prints one offset page of a table.
    """
    state: State = ctx.obj
    limit = limit or int(state.settings.get("paging.limit", 25))
    try:
        page = state.service().get_table_page(name, offset, limit)
    except CLI_ERRORS as e:
        _fail(e, "table")
    _echo_json(page.model_dump())


@app.command()
def courses(
    ctx: typer.Context,
    term: str = typer.Argument(..., help="Full term code, e.g. F2024."),
    limit: Optional[int] = typer.Option(None, help="Rows per page."),
    prev: bool = typer.Option(False, "--prev", help="Read the page before the cursor."),
    dept: Optional[str] = typer.Option(None, help="Cursor department."),
    course: Optional[str] = typer.Option(None, help="Cursor course number."),
    section: Optional[str] = typer.Option(None, help="Cursor section."),
    search: bool = typer.Option(False, "--search", help="Seek to the first course at or after the cursor parts given."),
):
    """
    Prints one keyset page of a term's courses.
    """
    state: State = ctx.obj
    term_code, year = _split_term_or_exit(term, "courses")
    limit = limit or int(state.settings.get("paging.limit", 25))
    cursor = None
    if dept is not None or course is not None or section is not None:
        cursor = CourseCursor(dept=dept, course=course, section=section)

    try:
        page = state.service().get_courses_by_term(
            term_code,
            year,
            limit,
            direction=PageDirection.PREV if prev else PageDirection.NEXT,
            cursor=cursor,
            search=search,
        )
    except CLI_ERRORS as e:
        _fail(e, "courses")
    _echo_json(page.model_dump())


@app.command()
def terms(ctx: typer.Context):
    """
    Lists every term code in the store.
    """
    try:
        _echo_json(ctx.obj.service().get_all_terms())
    except CLI_ERRORS as e:
        _fail(e, "terms")


@app.command()
def book(
    ctx: typer.Context,
    isbn: str = typer.Argument(..., help="Full or partial ISBN."),
):
    """
    Prints books matching an ISBN with their sales by term.
    """
    try:
        _echo_json(ctx.obj.service().get_book_by_isbn(isbn))
    except CLI_ERRORS as e:
        _fail(e, "book")


@app.command()
def history(
    ctx: typer.Context,
    isbn: str = typer.Argument(..., help="Book ISBN."),
    title: str = typer.Argument(..., help="Book title."),
    term: str = typer.Argument(..., help="Full term code; its year is left out of the history."),
):
    """
    Prints a book's sales and enrollment for the same term in other years.
    """
    term_code, year = _split_term_or_exit(term, "history")
    try:
        rows = ctx.obj.service().get_prev_sales_by_book(isbn, title, term_code, year)
    except CLI_ERRORS as e:
        _fail(e, "history")
    _echo_json(rows)


@app.command()
def decisions(
    ctx: typer.Context,
    term: Optional[str] = typer.Argument(None, help="Full term code, e.g. F2024."),
    file: Optional[Path] = typer.Option(None, "--file", help="Decision sheet (XLSX/CSV) with manual quantities."),
    store: Optional[int] = typer.Option(None, help="Store number whose sheet rows are used."),
):
    """
    Calculates buying decisions for a term, or for the books of a decision sheet.
    """
    state: State = ctx.obj
    if (term is None) == (file is None):
        cli_logger.error("Give either a term code or --file", extra={"extra_data": {"command": "decisions"}})
        raise typer.Exit(code=1)

    try:
        if file is not None:
            store = store or int(state.settings.get("store.number", 620))
            result = get_file_decisions(state.service(), file, store=store)
        else:
            result = get_term_decisions(state.service(), term)
    except CLI_ERRORS as e:
        _fail(e, "decisions")
    _echo_json(result.model_dump(by_alias=True))


@app.command()
def features(
    ctx: typer.Context,
    term: str = typer.Argument(..., help="Full term code, e.g. F2024."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="CSV file to write; stdout when omitted."),
):
    """
    Exports forecasting features for a term as CSV.
    """
    term_code, year = _split_term_or_exit(term, "features")
    try:
        rows = ctx.obj.service().get_term_model_features(term_code, year)
    except CLI_ERRORS as e:
        _fail(e, "features")

    df = pd.DataFrame(rows)
    if output is None:
        typer.echo(df.to_csv(index=False), nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output, index=False)
    cli_logger.info(f"Wrote {len(df)} feature rows to {output}")


@app.command()
def enrollment(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Registrar enrollment export; the name must carry the term (Enrollment_F24.xlsx)."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Courses feed CSV to write; stdout when omitted."),
):
    """
    Converts a registrar enrollment export into a Courses feed file.
    """
    state: State = ctx.obj
    try:
        batch = match_enrollment(state.service(), file)
    except CLI_ERRORS as e:
        _fail(e, "enrollment")

    csv_text = create_course_csv(batch, main_campus=state.settings.get("store.main_campus", "MPC"))
    if output is None:
        typer.echo(csv_text, nl=False)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(csv_text, encoding="utf-8", newline="")
    cli_logger.info(f"Wrote {len(batch.courses)} courses to {output}")


if __name__ == "__main__":
    app()
