"""CLI entrypoint for docstage."""

import logging
import sys
from pathlib import Path

import click

from . import __version__
from .config import StorageConfig, discover_config, load_config
from .revision import Author


def _setup_logging(verbose: bool) -> None:
    from rich.console import Console
    from rich.logging import RichHandler

    handler = RichHandler(console=Console(stderr=True), show_path=False)
    root = logging.getLogger("docstage")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.propagate = False


def _author(name: str, email: str) -> Author:
    return Author(name=name, email=email)


author_options = [
    click.option("--author", "author_name", default="docstage", show_default=True, help="Author name"),
    click.option("--email", "author_email", default="", help="Author email"),
    click.option("--message", "-m", default="", help="Revision message"),
]


def with_author(func):
    for option in reversed(author_options):
        func = option(func)
    return func


@click.group()
@click.version_option(__version__, prog_name="docstage")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Path to a docstage.toml (defaults to ./docstage.toml if present)",
)
@click.option(
    "--storage",
    "-s",
    "storage_path",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Storage directory (overrides the config file)",
)
@click.option("--verbose", is_flag=True, help="Log store operations")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, storage_path: Path | None, verbose: bool) -> None:
    """docstage - versioned documents with a publishing pipeline.

    Save drafts, promote them between states and back up full histories.
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path) if config_path else discover_config(Path.cwd())
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))

    if storage_path is not None:
        config = config.with_storage_path(storage_path)
    ctx.obj["config"] = config


def _config(ctx: click.Context) -> StorageConfig:
    return ctx.obj["config"]


@cli.command()
@click.argument("content", type=click.File("r"), default="-")
@click.option("--type", "doc_type", default=None, help="Document type")
@click.option("--id", "doc_id", default=None, help="Document id (default: random)")
@with_author
@click.pass_context
def new(
    ctx: click.Context,
    content,
    doc_type: str | None,
    doc_id: str | None,
    author_name: str,
    author_email: str,
    message: str,
) -> None:
    """Create a document from a JSON file (or stdin) and save it as a draft.

    Prints the new document id and revision.
    """
    from .commands.documents import run_new

    exit_code = run_new(
        _config(ctx),
        content.read(),
        _author(author_name, author_email),
        doc_type=doc_type,
        doc_id=doc_id,
        message=message,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("doc_id")
@click.argument("content", type=click.File("r"), default="-")
@click.option("--state", default=None, help="State to save into (default: the draft state)")
@with_author
@click.pass_context
def save(
    ctx: click.Context,
    doc_id: str,
    content,
    state: str | None,
    author_name: str,
    author_email: str,
    message: str,
) -> None:
    """Save new JSON content for a document.

    Examples:

        docstage save 3f2a... body.json -m "Fix typo"

        docstage save 3f2a... hotfix.json --state published
    """
    from .commands.documents import run_save

    exit_code = run_save(
        _config(ctx),
        doc_id,
        content.read(),
        _author(author_name, author_email),
        state=state,
        message=message,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("doc_id")
@click.argument("from_state")
@click.argument("to_state")
@with_author
@click.pass_context
def promote(
    ctx: click.Context,
    doc_id: str,
    from_state: str,
    to_state: str,
    author_name: str,
    author_email: str,
    message: str,
) -> None:
    """Promote the latest revision of FROM_STATE into TO_STATE.

    Examples:

        docstage promote 3f2a... master published -m "Go live"
    """
    from .commands.documents import run_promote

    exit_code = run_promote(
        _config(ctx),
        doc_id,
        from_state,
        to_state,
        _author(author_name, author_email),
        message=message,
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("doc_id")
@click.option("--state", default=None, help="State to list (default: the draft state)")
@click.option("--json", "output_json", is_flag=True, help="Output revisions as JSON")
@click.pass_context
def history(ctx: click.Context, doc_id: str, state: str | None, output_json: bool) -> None:
    """List a state's revisions, newest first."""
    from .commands.documents import run_history

    sys.exit(run_history(_config(ctx), doc_id, state=state, output_json=output_json))


@cli.command()
@click.argument("doc_id")
@click.option("--rev", default=None, help="Revision oid or state name (default: the draft state)")
@click.pass_context
def show(ctx: click.Context, doc_id: str, rev: str | None) -> None:
    """Print a document's content as JSON."""
    from .commands.documents import run_show

    sys.exit(run_show(_config(ctx), doc_id, rev=rev))


@cli.command()
@click.argument("doc_id")
@click.argument("state")
@click.option("--rev", default=None, help="Revision oid or state name to check (default: the draft state)")
@click.pass_context
def promoted(ctx: click.Context, doc_id: str, state: str, rev: str | None) -> None:
    """Check whether a revision was promoted to STATE.

    Exits 0 if it was, 1 if it was not, 2 on error.
    """
    from .commands.documents import run_promoted

    sys.exit(run_promoted(_config(ctx), doc_id, state, rev=rev))


@cli.command("list")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def list_documents(ctx: click.Context, output_json: bool) -> None:
    """List stored documents and their types."""
    from .commands.documents import run_list

    sys.exit(run_list(_config(ctx), output_json=output_json))


@cli.command()
@click.argument("doc_ids", nargs=-1)
@click.option(
    "--out",
    type=click.File("w"),
    default="-",
    help="Output file path (default: stdout)",
)
@click.pass_context
def dump(ctx: click.Context, doc_ids: tuple[str, ...], out) -> None:
    """Dump documents with full history (default: all documents)."""
    from .commands.transfer import run_dump

    sys.exit(run_dump(_config(ctx), doc_ids, out))


@cli.command()
@click.argument("source", type=click.File("r"), default="-")
@click.pass_context
def load(ctx: click.Context, source) -> None:
    """Restore documents from a dump file (or stdin)."""
    from .commands.transfer import run_load

    sys.exit(run_load(_config(ctx), source))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
