"""The commit, abort, stale and sort-listing commands."""

from __future__ import annotations

import click

from ..committer import CopyCommitter
from ..delete import list_missing
from ..listing import sort_listing
from ._helpers import (
    main,
    _build_context,
    _context_options,
    _make_fs,
    _require,
    _status,
)


@main.command()
@_context_options
@click.pass_context
def commit(ctx, config_path, bulk_delete_size, **params):
    """Commit a finished copy job.

    Reassembles chunked files, re-applies directory attributes, then
    deletes stale target entries (--delete-missing) or promotes the work
    path (--atomic).  The meta folder is removed whatever the outcome.

    \b
    Example:
      distcommit commit --listing meta/fileList.jsonl --work out/.work \\
          --final out/data --meta meta --atomic
    """
    cctx = _build_context(config_path, params)
    _require(cctx, "listing_path", "target_work_path")
    if cctx.delete_missing or cctx.atomic_commit:
        _require(cctx, "target_final_path")
    fs = _make_fs(bulk_delete_size)

    committer = CopyCommitter(fs, progress=lambda msg: _status(ctx, msg))
    try:
        report = committer.commit_job(cctx)
    except OSError as exc:
        raise click.ClickException(f"Commit failed: {exc}")

    for w in report.warnings:
        click.echo(f"WARNING: {w.path}: {w.error}", err=True)
    click.echo(report.status)
    _status(ctx, report.summary())


@main.command()
@_context_options
@click.option("--state", default="failed", show_default=True,
              help="Final job state recorded in the log.")
@click.pass_context
def abort(ctx, config_path, bulk_delete_size, state, **params):
    """Abort a copy job: remove per-attempt temp files and the meta folder."""
    cctx = _build_context(config_path, params)
    committer = CopyCommitter(_make_fs(bulk_delete_size))
    committer.abort_job(cctx, state)
    _status(ctx, f"Aborted ({state})")


@main.command()
@_context_options
@click.pass_context
def stale(ctx, config_path, bulk_delete_size, **params):
    """List target entries that --delete-missing would remove.

    Nothing is deleted and the meta folder is left alone.
    """
    cctx = _build_context(config_path, params)
    _require(cctx, "listing_path", "target_final_path")
    try:
        entries = list_missing(_make_fs(bulk_delete_size), cctx)
    except OSError as exc:
        raise click.ClickException(str(exc))
    for entry in entries:
        click.echo(entry.relative_path)
    _status(ctx, f"{len(entries)} stale entries")


@main.command("sort-listing")
@click.argument("listing", type=click.Path(exists=True))
@click.option("-o", "--output", type=click.Path(), default=None,
              help="Output file (default: <listing>_sorted.jsonl).")
@click.pass_context
def sort_listing_cmd(ctx, listing, output):
    """Sort a listing file by key."""
    try:
        out = sort_listing(listing, output)
    except OSError as exc:
        raise click.ClickException(str(exc))
    _status(ctx, f"Sorted {listing} -> {out}")
    click.echo(out)
