"""Command line front end: decode / encode / roundtrip / check conversation files."""

import json
import logging
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from convo.settings import AppCfg, load_settings
from convo.narrative.decoder import decode_document
from convo.narrative.diagnostics import ERROR, validate_graph
from convo.narrative.encoder import encode_graph
from convo.narrative.errors import ConvoError
from convo.narrative.loader import dump_document, load_document_file, save_document_file
from convo.narrative.types import Graph

logger = logging.getLogger(__name__)

custom_theme = Theme(
    {
        "success": "bold green",
        "error": "bold red",
        "info": "bold cyan",
        "warning": "bold yellow",
    },
)

# Documents go to stdout, everything meant for humans to stderr
console: Console = Console(stderr=True, theme=custom_theme)

app = typer.Typer(
    name="convo",
    help="Convert conversation YAML to an editable graph and back.",
    add_completion=False,
    rich_markup_mode="rich",
)


def _settings(ctx: typer.Context) -> AppCfg:
    return ctx.obj["settings"]


def _fail(msg: str) -> NoReturn:
    console.print(f"[error]✖ {escape(msg)}[/error]")
    raise typer.Exit(code=1)


def _load_graph(path: Path, settings: AppCfg) -> Graph:
    try:
        return decode_document(load_document_file(path), settings)
    except (ConvoError, OSError) as e:
        _fail(str(e))


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log per-node details"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Path to a settings YAML file",
    ),
):
    """Conversation graph codec."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = load_settings(config_file)
    except (ValueError, OSError) as e:
        _fail(f"Could not read settings: {e}")


@app.command()
def decode(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Conversation YAML file"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write graph JSON here instead of stdout"),
):
    """Decode a conversation into graph JSON (nodes + edges)."""
    graph = _load_graph(path, _settings(ctx))
    text = json.dumps(graph.to_dict(), indent=2, ensure_ascii=False)
    if out:
        out.write_text(text + "\n", encoding="utf-8")
        console.print(f"[success]✔ {len(graph.nodes)} nodes, {len(graph.edges)} edges -> {escape(str(out))}[/success]")
    else:
        typer.echo(text)


@app.command()
def encode(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Graph JSON produced by 'decode' or the editor"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write YAML here instead of stdout"),
):
    """Encode graph JSON back into conversation YAML."""
    try:
        graph = Graph.from_dict(json.loads(path.read_text(encoding="utf-8")))
    except (ValueError, KeyError, OSError) as e:
        _fail(f"Could not read graph {path}: {e}")
    result = encode_graph(graph, _settings(ctx))
    for e in result.dangling:
        console.print(f"[warning]! {escape(e.source)}/{escape(e.source_option)} -> missing node "
                      f"'{escape(e.target)}' (no goto written)[/warning]")
    if out:
        save_document_file(out, result.document)
        console.print(f"[success]✔ Wrote {escape(str(out))}[/success]")
    else:
        typer.echo(dump_document(result.document), nl=False)


@app.command()
def roundtrip(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Conversation YAML file"),
):
    """Decode and re-encode a conversation and report what would change on save."""
    settings = _settings(ctx)
    try:
        original = load_document_file(path)
        graph = decode_document(original, settings)
    except (ConvoError, OSError) as e:
        _fail(str(e))
    first = encode_graph(graph, settings).document
    second = encode_graph(decode_document(first, settings), settings).document

    changed = [k for k in first if original.get(k) != first[k]]
    changed += [k for k in original if k not in first]
    for key in changed:
        console.print(f"[info]ℹ Section '{escape(str(key))}' is normalised on save[/info]")
    before = [str(k) for k in original]
    if [k for k in before if k in first] != [k for k in first if k in before]:
        console.print("[info]ℹ Section order changes on save[/info]")

    if first != second:
        _fail("Encoding is not stable: a second save would change the document again")
    console.print(f"[success]✔ {escape(str(path))} round-trips ({len(graph.nodes)} nodes)[/success]")


@app.command()
def check(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Conversation YAML file"),
    start: Optional[str] = typer.Option(None, "--start", help="Entry node (defaults to the first node)"),
):
    """List unresolved connections, unreachable nodes and other problems."""
    graph = _load_graph(path, _settings(ctx))
    issues = validate_graph(graph, start)
    if not issues:
        console.print("[success]✔ No issues found[/success]")
        return

    table = Table(title=f"Issues in {path.name}")
    table.add_column("Level")
    table.add_column("Node", style="cyan")
    table.add_column("Message")
    for issue in issues:
        style = "error" if issue.level == ERROR else "warning"
        table.add_row(f"[{style}]{issue.level}[/{style}]", escape(issue.node_id or "-"), escape(issue.message))
    console.print(table)

    if any(i.level == ERROR for i in issues):
        raise typer.Exit(code=1)


def main() -> None:
    app()
