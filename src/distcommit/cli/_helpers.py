"""Shared helpers, option decorators, and the main CLI group."""

from __future__ import annotations

import json
import logging

import click

from ..context import (
    OPT_ATOMIC_COPY,
    OPT_DELETE_MISSING,
    OPT_IGNORE_FAILURES,
    OPT_JOB_ID,
    OPT_LISTING_FILE_PATH,
    OPT_META_FOLDER,
    OPT_OVERWRITE,
    OPT_PRESERVE_RAW_XATTRS,
    OPT_PRESERVE_STATUS,
    OPT_SYNC_FOLDERS,
    OPT_TARGET_FINAL_PATH,
    OPT_TARGET_PATH_EXISTS,
    OPT_TARGET_WORK_PATH,
    CommitContext,
)
from ..fs import LocalFS

# click parameter name -> commit option name
_PARAM_OPTIONS = {
    "listing": OPT_LISTING_FILE_PATH,
    "work": OPT_TARGET_WORK_PATH,
    "final": OPT_TARGET_FINAL_PATH,
    "meta": OPT_META_FOLDER,
    "job_id": OPT_JOB_ID,
    "preserve": OPT_PRESERVE_STATUS,
    "preserve_raw_xattrs": OPT_PRESERVE_RAW_XATTRS,
    "sync_folders": OPT_SYNC_FOLDERS,
    "overwrite": OPT_OVERWRITE,
    "target_path_exists": OPT_TARGET_PATH_EXISTS,
    "ignore_failures": OPT_IGNORE_FAILURES,
    "delete_missing": OPT_DELETE_MISSING,
    "atomic": OPT_ATOMIC_COPY,
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _status(ctx, msg):
    """Emit a status message to stderr when verbose mode (-v) is on."""
    if ctx.obj.get("verbose"):
        click.echo(msg, err=True)


def _load_config(path: str | None) -> dict:
    """Read a JSON object of commit options from *path*."""
    if path is None:
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as exc:
        raise click.ClickException(f"Cannot read config {path}: {exc}")
    if not isinstance(data, dict):
        raise click.ClickException(f"Config {path} must hold a JSON object")
    return data


def _build_context(config_path: str | None, params: dict) -> CommitContext:
    """Merge the config file with explicit flags into a CommitContext.

    Flags left unset (``None``) do not override config file values.
    """
    options = _load_config(config_path)
    for param, opt in _PARAM_OPTIONS.items():
        value = params.get(param)
        if value is not None:
            options[opt] = value
    try:
        return CommitContext.from_options(options)
    except ValueError as exc:
        raise click.ClickException(str(exc))


def _require(ctx: CommitContext, *attrs: str) -> None:
    """Fail with a clear message if any of *attrs* is empty on *ctx*."""
    names = {
        "listing_path": "--listing", "target_work_path": "--work",
        "target_final_path": "--final", "meta_folder": "--meta",
    }
    missing = [names.get(a, a) for a in attrs if not getattr(ctx, a)]
    if missing:
        raise click.ClickException(f"Missing required option(s): {', '.join(missing)}")


def _make_fs(bulk_delete_size: int) -> LocalFS:
    if bulk_delete_size < 0:
        raise click.ClickException("--bulk-delete-size must not be negative")
    return LocalFS(bulk_delete_page_size=bulk_delete_size)


def _flag(name: str, text: str):
    env = "DISTCOMMIT_" + name.upper().replace("-", "_")
    return click.option(f"--{name}/--no-{name}", default=None, envvar=env,
                        help=f"{text} (or set {env}).")


def _context_options(f):
    """Shared commit-context options for all commands."""
    f = click.option("--bulk-delete-size", type=int, default=0, show_default=True,
                     envvar="DISTCOMMIT_BULK_DELETE_SIZE",
                     help="Paths per bulk delete call; 0 deletes one at a time.")(f)
    f = _flag("atomic", "Promote the work path to the final path by rename")(f)
    f = _flag("delete-missing", "Delete target entries missing from the source")(f)
    f = _flag("ignore-failures", "Downgrade listing and concat failures to warnings")(f)
    f = _flag("target-path-exists", "The target path existed before the copy")(f)
    f = _flag("overwrite", "The copy overwrote an existing target")(f)
    f = _flag("sync-folders", "The copy was a folder sync")(f)
    f = _flag("preserve-raw-xattrs", "Preserve raw.* extended attributes")(f)
    f = click.option("--preserve", default=None, envvar="DISTCOMMIT_PRESERVE_STATUS",
                     help="Directory attributes to preserve, e.g. 'ugpt'.")(f)
    f = click.option("--job-id", default=None, envvar="DISTCOMMIT_JOB_ID",
                     help="Job id, used to find per-attempt temp files.")(f)
    f = click.option("--meta", type=click.Path(), default=None,
                     envvar="DISTCOMMIT_META_FOLDER",
                     help="Meta folder, removed when the commit ends.")(f)
    f = click.option("--final", type=click.Path(), default=None,
                     envvar="DISTCOMMIT_TARGET_FINAL_PATH",
                     help="Final target path.")(f)
    f = click.option("--work", type=click.Path(), default=None,
                     envvar="DISTCOMMIT_TARGET_WORK_PATH",
                     help="Target work path the workers wrote into.")(f)
    f = click.option("--listing", type=click.Path(), default=None,
                     envvar="DISTCOMMIT_LISTING_FILE_PATH",
                     help="Source listing file.")(f)
    f = click.option("--config", "config_path", type=click.Path(exists=True),
                     default=None, envvar="DISTCOMMIT_CONFIG",
                     help="JSON file of commit options; flags override it.")(f)
    return f


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose output on stderr.")
@click.pass_context
def main(ctx, verbose):
    """distcommit: commit the staged output of a distributed copy.

    \b
    Commands:
      commit        Reassemble chunks, delete stale entries or promote
      abort         Remove temp files and the meta folder
      stale         List target entries missing from the source
      sort-listing  Sort a listing file by key

    \b
    Every option can also come from a JSON --config file or from a
    DISTCOMMIT_* environment variable.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
