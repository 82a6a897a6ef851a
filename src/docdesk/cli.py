"""CLI entry point for docdesk."""

import logging
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import DEFAULT_CONFIG, load_config

console = Console()


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@click.group()
@click.option("--config", "-c", "config_path", default=None, help="Path to config file")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """docdesk - a local-first PDF research workspace with hybrid search."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    config = load_config(config_path)
    ctx.obj["config"] = config
    setup_logging("DEBUG" if verbose else config.get("log_level", "INFO"))


def _get_config(ctx) -> dict:
    return ctx.obj["config"]


def _open_db(ctx):
    from .db import WorkspaceDB
    return WorkspaceDB(_get_config(ctx)["db_path"])


def _fmt_ms(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def _report(result) -> bool:
    if result.ok:
        console.print(f"[green]✓ {result.message}[/]")
    else:
        console.print(f"[red]✗ {result.message}[/]")
    return result.ok


@cli.command()
@click.option("--path", default=None, help="Custom workspace path")
def init(path):
    """Create the workspace directories and a starter config."""
    import yaml

    base = Path(path).expanduser().resolve() if path else Path("~/.docdesk").expanduser()
    console.print(f"[bold green]Initializing docdesk at {base}[/]")
    (base / "uploads").mkdir(parents=True, exist_ok=True)

    config_file = base / "config.yaml"
    if not config_file.exists():
        cfg = {k: (dict(v) if isinstance(v, dict) else v) for k, v in DEFAULT_CONFIG.items()}
        cfg["db_path"] = str(base / "docdesk.sqlite")
        cfg["uploads_path"] = str(base / "uploads")
        header = (
            "# Embedding backend: ollama (HTTP) or local (sentence-transformers)\n"
            "# Vector backend: chromadb (HTTP server) or memory (tests only)\n\n"
        )
        config_file.write_text(header + yaml.dump(cfg, default_flow_style=False, sort_keys=False))
        console.print(f"  Created config: {config_file}")

    console.print("[bold green]✓ docdesk initialized![/]")
    console.print("  Start Ollama and Chroma, then run: docdesk add <file.pdf>")


@cli.command()
@click.argument("pdf", type=click.Path(dir_okay=False))
@click.option("--title", default=None, help="Title (defaults to the file name)")
@click.option("--description", default="", help="Markdown description")
@click.option("--tags", default="", help="Comma-separated tags")
@click.pass_context
def add(ctx, pdf, title, description, tags):
    """Upload a PDF: extract, chunk, embed and index it."""
    from .actions import upload_document
    from .ingest.indexer import Indexer

    config = _get_config(ctx)
    db = _open_db(ctx)
    indexer = Indexer.from_config(db, config)

    with console.status(f"Indexing {Path(pdf).name}..."):
        result = upload_document(
            db, indexer, config["uploads_path"],
            file_path=pdf, title=title, description_md=description, tags_csv=tags,
        )
    if _report(result):
        console.print(f"  id: {result.data['document_id']}  chunks: {result.data['chunk_count']}")


@cli.command()
@click.argument("query")
@click.option("--tag", "-t", "tags", multiple=True, help="Only documents with this tag (repeatable, AND)")
@click.option("--n", "-n", "limit", type=int, default=None, help="Number of results (default: search.default_limit)")
@click.pass_context
def search(ctx, query, tags, limit):
    """Hybrid keyword + semantic search."""
    from .actions import search_documents
    from .query.search import HybridSearchEngine

    config = _get_config(ctx)
    if limit is None:
        limit = config.get("search", {}).get("default_limit", 20)
    engine = HybridSearchEngine.from_config(_open_db(ctx), config)
    result = search_documents(engine, query=query, tag_names_csv=",".join(tags), limit=limit)

    if not result.ok:
        console.print(f"[red]{result.message}[/]")
        return
    if not result.data:
        console.print(f"[yellow]{result.message}[/]")
        return

    table = Table(title=f"Results for '{query}'")
    table.add_column("#", style="dim", width=3)
    table.add_column("Title", style="cyan")
    table.add_column("Page", justify="right")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Why")
    table.add_column("Snippet", max_width=60)

    for i, hit in enumerate(result.data, 1):
        table.add_row(
            str(i),
            hit.title,
            str(hit.page) if hit.page is not None else "-",
            f"{hit.score:.1f}",
            "+".join(hit.reasons),
            hit.snippet[:120].replace("\n", " "),
        )
    console.print(table)


@cli.command("list")
@click.pass_context
def list_documents(ctx):
    """List documents, newest first."""
    from .workspace.documents import get_documents_page

    items, all_tags = get_documents_page(_open_db(ctx))
    if not items:
        console.print("[yellow]No documents yet. Add one with 'docdesk add'.[/]")
        return

    table = Table(title="Documents")
    table.add_column("ID", style="dim")
    table.add_column("Title", style="cyan")
    table.add_column("Pages", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Tags")
    table.add_column("Added")
    for item in items:
        doc = item.document
        table.add_row(doc.id, doc.title, str(doc.page_count), str(doc.word_count),
                      ", ".join(item.tags), _fmt_ms(doc.created_at))
    console.print(table)
    if all_tags:
        console.print(f"[dim]Tags: {', '.join(all_tags)}[/]")


@cli.command()
@click.argument("document_id")
@click.pass_context
def show(ctx, document_id):
    """Show a document with its tags, notes and highlights."""
    from rich.markdown import Markdown
    from rich.panel import Panel

    from .workspace.documents import get_document_detail

    detail = get_document_detail(_open_db(ctx), document_id)
    if detail is None:
        console.print(f"[red]Document not found: {document_id}[/]")
        return

    doc = detail.document
    console.print(f"\n[bold]{doc.title}[/] [dim]({doc.source_name}, {doc.page_count} pages)[/]")
    if detail.tags:
        console.print(f"  Tags: {', '.join(detail.tags)}")
    if doc.description_md:
        console.print(Panel(Markdown(doc.description_md), title="Description"))

    for nd in detail.notes:
        title = f"p.{nd.note.page}"
        if nd.tags:
            title += f"  [{', '.join(nd.tags)}]"
        body = f"> {nd.note.quote}\n\n{nd.note.content_md}" if nd.note.quote else nd.note.content_md
        console.print(Panel(Markdown(body or "_empty_"), title=title, subtitle=nd.note.id))
        for linked in nd.linked_documents:
            console.print(f"    → {linked.title} [dim]({linked.id})[/]")

    if detail.highlights:
        console.print("\n[bold]Highlights:[/]")
        for h in detail.highlights:
            console.print(f"  p.{h.page} [{h.color}] {h.text[:80]}")


@cli.command()
@click.argument("document_id")
@click.argument("text")
@click.pass_context
def describe(ctx, document_id, text):
    """Replace a document's markdown description."""
    from .actions import update_document_description

    _report(update_document_description(_open_db(ctx), document_id=document_id, description_md=text))


@cli.command()
@click.argument("document_id")
@click.argument("tags")
@click.pass_context
def tag(ctx, document_id, tags):
    """Replace a document's tags (comma-separated)."""
    from .actions import update_document_tags

    _report(update_document_tags(_open_db(ctx), document_id=document_id, tags_csv=tags))


@cli.command()
@click.argument("document_id")
@click.argument("page", type=int)
@click.argument("content")
@click.option("--quote", default="", help="Quoted source text")
@click.option("--rects", default="[]", help='Selection as JSON, e.g. [{"x":0.1,"y":0.2,"w":0.5,"h":0.05}]')
@click.option("--tags", default="", help="Comma-separated tags")
@click.option("--link", "links", multiple=True, help="Linked document ID (repeatable)")
@click.pass_context
def note(ctx, document_id, page, content, quote, rects, tags, links):
    """Attach a markdown note to a page. doc://<id> mentions become links."""
    from .actions import create_note

    result = create_note(
        _open_db(ctx),
        document_id=document_id, page=page, content_md=content, quote=quote,
        selection_rects=rects, tags_csv=tags, linked_document_ids_csv=",".join(links),
    )
    if _report(result):
        console.print(f"  id: {result.data['note_id']}")


@cli.command("rm-note")
@click.argument("note_id")
@click.pass_context
def rm_note(ctx, note_id):
    """Delete a note."""
    from .actions import delete_note

    _report(delete_note(_open_db(ctx), note_id=note_id))


@cli.command()
@click.argument("document_id")
@click.confirmation_option(prompt="Delete this document and all its notes?")
@click.pass_context
def rm(ctx, document_id):
    """Delete a document with its chunks, vectors, notes and tags."""
    from .actions import delete_document
    from .ingest.indexer import Indexer

    db = _open_db(ctx)
    _report(delete_document(db, Indexer.from_config(db, _get_config(ctx)), document_id))


@cli.command()
@click.pass_context
def status(ctx):
    """Show workspace statistics and backend reachability."""
    from .errors import DocdeskError
    from .storage import get_vector_index
    from .workspace.documents import get_workspace_snapshot

    config = _get_config(ctx)
    snapshot = get_workspace_snapshot(_open_db(ctx))
    console.print("\n[bold]📊 Workspace[/]")
    console.print(f"  Database: {config['db_path']}")
    console.print(f"  Documents: {len(snapshot.documents)}")
    console.print(f"  Recent notes: {len(snapshot.notes)}")

    index = get_vector_index(config)
    try:
        index.health_check()
        console.print(f"  Vector index: [green]reachable[/] ({index.count()} vectors)")
    except DocdeskError as e:
        console.print(f"  Vector index: [red]unreachable[/] [dim]{e}[/]")


if __name__ == "__main__":
    cli()
