"""Main CLI entry point for doc-truyen."""

import asyncio
from pathlib import Path
from typing import Optional

import click
import structlog
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from doc_truyen import __version__
from doc_truyen.config import AppConfig, get_config, set_config
from doc_truyen.errors import DocTruyenError

logger = structlog.get_logger()
console = Console()


def setup_config(env_file: Optional[Path] = None) -> None:
    """Load configuration from environment."""
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    config = AppConfig.load(env_file)
    set_config(config)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output")
@click.option("--log-file", type=click.Path(), help="Write JSON logs to file")
@click.option("--env-file", type=click.Path(exists=True), help="Path to .env file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, verbose: bool, quiet: bool, log_file: Optional[str], env_file: Optional[str]) -> None:
    """Chinese reading assistant.

    Split Chinese text into chapters and sentences, translate chapters into
    Vietnamese and analyse sentences word by word.
    """
    from doc_truyen.log import configure_logging

    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet

    verbosity = 1 if verbose else (-1 if quiet else 0)
    log_path = Path(log_file) if log_file else None
    configure_logging(verbosity=verbosity, log_file=log_path)

    setup_config(Path(env_file) if env_file else None)


# =============================================================================
# Helpers
# =============================================================================


def _load_orchestrator(config: Optional[AppConfig] = None):
    """Orchestrator with workspace state from the configured data directory."""
    from doc_truyen.pipeline.orchestrator import ReaderOrchestrator
    from doc_truyen.storage.store import JsonFileStore

    app_config = config or get_config()
    store = JsonFileStore(app_config.storage.data_dir)
    return ReaderOrchestrator.from_store(store, config=app_config)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        logger.error("file_not_utf8", path=str(path))
        raise SystemExit(1)


def _open_file(orchestrator, path: Path):
    """Reuse the workspace copy of a file if its content is unchanged."""
    text = _read_text(path)
    for file in orchestrator.files.values():
        if file.file_name == path.name and file.original_content == text:
            return file
    return orchestrator.open_document(text, path.name)


def _chapter_index(file, chapter: int) -> int:
    """Convert a 1-based chapter position to a list index."""
    if not 1 <= chapter <= len(file.chapters):
        click.echo(f"Chapter must be between 1 and {len(file.chapters)}")
        raise SystemExit(1)
    return chapter - 1


def _fail(error: DocTruyenError) -> None:
    logger.error("command_failed", error=str(error))
    raise SystemExit(1)


# =============================================================================
# Segment Command
# =============================================================================


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--max-length",
    type=click.IntRange(min=1),
    help="Split chapters longer than this many characters",
)
def segment(file: str, max_length: Optional[int]) -> None:
    """Show how a text file is split into chapters and sentences."""
    from doc_truyen.text.segmenter import ChapterSegmenter

    seg_config = get_config().segmenter
    if max_length:
        seg_config = seg_config.model_copy(update={"max_chapter_length": max_length})

    path = Path(file)
    try:
        chapters = ChapterSegmenter(seg_config).segment(_read_text(path))
    except DocTruyenError as e:
        _fail(e)

    table = Table(show_header=True, header_style="bold blue", title=path.name)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Number", style="green", justify="right")
    table.add_column("Part", style="yellow", justify="center")
    table.add_column("Sentences", justify="right")

    for i, chapter in enumerate(chapters, 1):
        table.add_row(
            str(i),
            chapter.title,
            chapter.display_number or "",
            f"{chapter.part_number}/{chapter.total_parts}",
            str(len(chapter.body_sentences())),
        )

    console.print(table)


# =============================================================================
# Analyze / Translate Commands
# =============================================================================


def _print_analysis(sentence) -> None:
    result = sentence.analysis_result
    console.print(f"[bold]{sentence.original}[/bold]")
    console.print(f"[green]{result.translation}[/green]\n")

    tokens = Table(show_header=True, header_style="bold blue")
    tokens.add_column("Word", style="cyan")
    tokens.add_column("Pinyin")
    tokens.add_column("Hán Việt", style="yellow")
    tokens.add_column("Meaning")
    tokens.add_column("Role", style="magenta")
    for token in result.tokens:
        tokens.add_row(
            token.character,
            token.pinyin,
            token.sino_vietnamese,
            token.vietnamese_meaning,
            token.grammar_role.value,
        )
    console.print(tokens)

    if result.sentence_grammar_explanation:
        console.print(f"\n[dim]{result.sentence_grammar_explanation}[/dim]")
    for term in result.special_terms:
        console.print(f"  • {term.term} ({term.sino_vietnamese}) [{term.category}] {term.explanation}")


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--chapter", "-c", default=1, type=int, help="Chapter position (1-based)")
@click.option("--sentence", "-s", required=True, type=int, help="Sentence number (0 = title)")
def analyze(file: str, chapter: int, sentence: int) -> None:
    """Analyse one sentence word by word."""
    from doc_truyen.models import AnalysisState

    orchestrator = _load_orchestrator()

    async def run():
        doc = _open_file(orchestrator, Path(file))
        c = _chapter_index(doc, chapter)
        current = orchestrator.files[doc.id].chapters[c].sentences
        if not 0 <= sentence < len(current):
            click.echo(f"Sentence must be between 0 and {len(current) - 1}")
            raise SystemExit(1)

        if current[sentence].analysis_state != AnalysisState.DONE:
            orchestrator.analyze(doc.id, c, sentence)
            await orchestrator.queue.join()
        return orchestrator.files[doc.id].chapters[c].sentences[sentence]

    try:
        result = asyncio.run(run())
    except DocTruyenError as e:
        _fail(e)
    finally:
        orchestrator.save()

    if result.analysis_state == AnalysisState.ERROR:
        logger.error("analysis_failed", error=result.analysis_error)
        raise SystemExit(1)
    _print_analysis(result)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--chapter", "-c", default=1, type=int, help="Chapter position (1-based)")
@click.option("--no-analysis", is_flag=True, help="Do not analyse sentences after translating")
@click.option("--retry-errors", is_flag=True, help="Retry sentences whose translation failed")
def translate(file: str, chapter: int, no_analysis: bool, retry_errors: bool) -> None:
    """Translate a chapter in batches, then analyse it sentence by sentence."""
    from doc_truyen.services.events import ReaderEvent

    config = get_config()
    if no_analysis:
        config = config.model_copy(
            update={
                "queue": config.queue.model_copy(update={"chain_analysis_after_translation": False})
            }
        )
    orchestrator = _load_orchestrator(config)

    async def run():
        doc = _open_file(orchestrator, Path(file))
        c = _chapter_index(doc, chapter)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as pbar:
            bars = {
                "translate": pbar.add_task("Translating", total=1.0),
            }
            if not no_analysis:
                bars["analyze"] = pbar.add_task("Analyzing", total=1.0)

            def on_event(event: ReaderEvent) -> None:
                if event.type == "chapter_progress" and event.data.get("chapter_index") == c:
                    bar = bars.get(event.data["kind"])
                    if bar is not None:
                        pbar.update(bar, completed=event.data["progress"])

            sub_id = orchestrator.event_bus.subscribe(on_event)
            try:
                if retry_errors:
                    orchestrator.reset_translation_errors(doc.id, c)
                orchestrator.translate_chapter(doc.id, c)
                await orchestrator.queue.join()
            finally:
                orchestrator.event_bus.unsubscribe(sub_id)

        return doc.id, c

    try:
        file_id, c = asyncio.run(run())
    except DocTruyenError as e:
        _fail(e)
    finally:
        orchestrator.save()

    for error in orchestrator.queue.errors:
        logger.error("task_failed", task=error.description, error=error.message)

    result = orchestrator.files[file_id].chapters[c]
    console.print(f"\n[bold]{result.title}[/bold]")
    for _, s in result.body_sentences():
        console.print(s.translation or f"[dim]{s.original}[/dim]")

    if orchestrator.queue.errors:
        raise SystemExit(1)


# =============================================================================
# Vocabulary Commands
# =============================================================================


@cli.group()
def vocab():
    """Manage the personal vocabulary."""
    pass


@vocab.command("list")
@click.option("--limit", default=50, help="Maximum entries to show")
@click.option("--forced", is_flag=True, help="Only terms with a forced Hán Việt reading")
def vocab_list(limit: int, forced: bool) -> None:
    """Display vocabulary contents."""
    orchestrator = _load_orchestrator()
    items = [i for i in orchestrator.vocabulary.items if i.is_force_sino or not forced]
    if not items:
        click.echo("Vocabulary is empty")
        return

    table = Table(show_header=True, header_style="bold blue", title=f"Vocabulary ({len(items)})")
    table.add_column("Term", style="cyan")
    table.add_column("Hán Việt", style="yellow")
    table.add_column("Translation", style="green")
    table.add_column("Category")
    table.add_column("Forced", justify="center")
    table.add_column("First seen", style="dim")
    for item in items[:limit]:
        loc = item.first_location
        table.add_row(
            item.term,
            item.sino_vietnamese,
            item.vietnamese_translation or "",
            item.category,
            "✓" if item.is_force_sino else "",
            f"{loc.chapter_title} #{loc.sentence_number}",
        )
    console.print(table)

    if len(items) > limit:
        click.echo(f"  ... and {len(items) - limit} more")


@vocab.command("export")
@click.option("--output", "-o", required=True, type=click.Path(), help="Output CSV path")
def vocab_export(output: str) -> None:
    """Export vocabulary to CSV file."""
    orchestrator = _load_orchestrator()
    orchestrator.vocabulary.to_csv(Path(output))
    click.echo(f"Exported {len(orchestrator.vocabulary)} entries to {output}")


@vocab.command("import")
@click.option(
    "--input",
    "-i",
    "input_file",
    required=True,
    type=click.Path(exists=True),
    help="Input CSV file",
)
def vocab_import(input_file: str) -> None:
    """Merge vocabulary from a CSV file. Existing terms are kept."""
    from doc_truyen.vocabulary import VocabularyStore

    orchestrator = _load_orchestrator()
    try:
        imported = VocabularyStore.from_csv(Path(input_file))
    except DocTruyenError as e:
        _fail(e)
    added = orchestrator.vocabulary.merge(imported)
    orchestrator.save()
    click.echo(f"Merged {added} entries (total: {len(orchestrator.vocabulary)})")


@vocab.command("delete")
@click.argument("term")
def vocab_delete(term: str) -> None:
    """Delete a vocabulary term."""
    orchestrator = _load_orchestrator()
    if not orchestrator.vocabulary.delete(term):
        click.echo(f"Term not found: {term}")
        raise SystemExit(1)
    orchestrator.save()
    click.echo(f"Deleted {term}")


@vocab.command("force-sino")
@click.argument("term")
def vocab_force_sino(term: str) -> None:
    """Toggle the forced Hán Việt reading of a term."""
    orchestrator = _load_orchestrator()
    try:
        item = orchestrator.vocabulary.toggle_force_sino(term)
    except DocTruyenError as e:
        _fail(e)
    orchestrator.save()
    state = "on" if item.is_force_sino else "off"
    click.echo(f"Force Hán Việt for {term} ({item.sino_vietnamese}): {state}")


@vocab.command("unify")
def vocab_unify() -> None:
    """Apply forced Hán Việt readings to all existing translations."""
    orchestrator = _load_orchestrator()
    changed = orchestrator.unify_vocabulary()
    orchestrator.save()
    click.echo(f"Updated {changed} sentences")


# =============================================================================
# Backup Commands
# =============================================================================


@cli.group()
def backup():
    """Export or restore the whole workspace."""
    pass


@backup.command("export")
@click.option("--output", "-o", required=True, type=click.Path(), help="Output JSON path")
def backup_export(output: str) -> None:
    """Write settings, vocabulary, caches and files to a JSON backup."""
    from doc_truyen.storage.backup import dumps

    orchestrator = _load_orchestrator()
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(dumps(orchestrator.export_state()), encoding="utf-8")
    click.echo(f"Backup written to {output}")


@backup.command("import")
@click.option(
    "--input",
    "-i",
    "input_file",
    required=True,
    type=click.Path(exists=True),
    help="Backup JSON file",
)
def backup_import(input_file: str) -> None:
    """Replace the workspace with a JSON backup."""
    from doc_truyen.storage.backup import loads

    orchestrator = _load_orchestrator()
    try:
        state = loads(Path(input_file).read_text(encoding="utf-8"))
    except DocTruyenError as e:
        _fail(e)
    orchestrator.import_state(state)
    orchestrator.save()
    click.echo(
        f"Restored {len(orchestrator.files)} files and {len(orchestrator.vocabulary)} terms"
    )


# =============================================================================
# Config / Serve Commands
# =============================================================================


@cli.command()
@click.option("--check", is_flag=True, help="Also test the connection to the analysis endpoint")
def config(check: bool) -> None:
    """Show effective LLM, queue and segmenter configuration."""
    from doc_truyen.analyzer.llm import LLMClient
    from doc_truyen.config import log_config_summary

    log_config_summary()
    if not check:
        return

    result = LLMClient(task="analysis").check_connection()
    if result["success"]:
        console.print(f"[green]✓ {result['message']}[/green]")
    else:
        console.print(f"[red]✗ {result['message']}[/red]")
        raise SystemExit(1)


@cli.command()
@click.option("--port", default=8000, type=int, help="API server port")
@click.option("--host", default="127.0.0.1", help="API server host")
def serve(port: int, host: str) -> None:
    """Run the reader API server."""
    import signal

    import uvicorn

    from doc_truyen.api.server import create_app

    app = create_app(data_dir=get_config().storage.data_dir.resolve())

    click.echo("Đọc Truyện API starting...")
    click.echo(f"   API: http://{host}:{port}/api/docs")
    click.echo("   Press Ctrl+C to stop\n")

    config_uv = uvicorn.Config(app, host=host, port=port, log_level="info", lifespan="on")
    server = uvicorn.Server(config_uv)

    # Replace uvicorn's signal handlers so Ctrl+C shuts down without a traceback
    server.install_signal_handlers = lambda: None  # type: ignore[assignment]

    def _handle_sigint(signum: int, frame: object) -> None:
        server.should_exit = True

    signal.signal(signal.SIGINT, _handle_sigint)

    try:
        server.run()
    except SystemExit:
        pass
    finally:
        click.echo("\nShutting down...")


if __name__ == "__main__":
    cli()
