"""
compose-py — command-line interface for the contract composition toolchain.

Commands:
  check FILE      Validate a contract module; print every diagnostic as
                  `file:line:col: CODE message`. Exit 1 on errors.
  compile FILE    Validate and write, for the module's contract and each
                  entry component:
                    <name>.artifact.json     canonical artifact JSON
                    <name>.artifact.<fmt>    binary artifact (cbor | msgpack)
                    <name>_msg.py            generated message module
  inspect FILE    Decode an artifact (.json / .cbor / .msgpack) and print its
                  routes.

Global options:
  --verbose / -v  Debug logging (otherwise COMPOSE_PY_LOG_LEVEL)
  --version       Print the version and exit

Examples:
  compose-py check compose_py/examples/bank/contract.py
  compose-py compile compose_py/examples/bank/contract.py --out build/ --format msgpack
  compose-py inspect build/bank.artifact.cbor --json
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..canonical import atomic_write_bytes, atomic_write_text, ensure_dir
from ..compiler import build, compile_file
from ..compiler.emit import render_module
from ..compiler.encode import EXTENSIONS, encode_artifact, format_code
from ..compiler.names import snake
from ..compiler.synth import Artifact, artifact_to_json
from ..config import ARTIFACT_FORMATS, load_config
from ..errors import ArtifactError, CompileErrors
from ..runtime.entry import load_artifact
from ..version import __version__

log = logging.getLogger("compose_py.cli")

app = typer.Typer(
    name="compose-py",
    help="Compose independently written contract components into one contract.",
    no_args_is_help=True,
    add_completion=False,
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"compose-py {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    version: Optional[bool] = typer.Option(
        None, "--version", callback=_version_callback, is_eager=True, help="Print the version and exit"
    ),
) -> None:
    """compose-py — validate, compile and inspect composed contracts."""
    level = logging.DEBUG if verbose else getattr(logging, load_config().log_level, logging.WARNING)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _compile_or_exit(file: Path, as_json: bool = False):
    try:
        return compile_file(file)
    except CompileErrors as errs:
        if as_json:
            typer.echo(json.dumps(errs.to_dict(), indent=2, sort_keys=True))
        else:
            for d in errs.diagnostics:
                typer.echo(str(d))
            typer.echo(f"{len(errs)} error(s)", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# check
# ---------------------------------------------------------------------------


@app.command("check")
def check(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Contract module (.py)"),
    as_json: bool = typer.Option(False, "--json", help="Machine-readable output"),
) -> None:
    """Validate FILE and report every diagnostic."""
    program = _compile_or_exit(file, as_json)
    names: List[str] = []
    if program.contract is not None:
        names.append(program.contract.name)
    names.extend(c.name for c in program.components if c.entry)
    if as_json:
        typer.echo(json.dumps({"ok": True, "diagnostics": [], "contracts": names}, indent=2, sort_keys=True))
    else:
        typer.echo(f"{file}: ok ({', '.join(names) or 'no contract'})")


# ---------------------------------------------------------------------------
# compile
# ---------------------------------------------------------------------------


def _write_artifact(artifact: Artifact, out: Path, fmt: str, module: bool) -> List[Path]:
    stem = snake(artifact.name)
    written = [
        atomic_write_text(out / f"{stem}.artifact.json", artifact_to_json(artifact) + "\n"),
        atomic_write_bytes(out / f"{stem}.artifact.{EXTENSIONS[format_code(fmt)]}", encode_artifact(artifact, fmt)),
    ]
    if module:
        written.append(atomic_write_text(out / f"{stem}_msg.py", render_module(artifact)))
    return written


@app.command("compile")
def compile_cmd(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Contract module (.py)"),
    out: Path = typer.Option(Path("build"), "--out", "-o", help="Output directory"),
    fmt: Optional[str] = typer.Option(None, "--format", "-f", help=f"Binary artifact format ({' | '.join(ARTIFACT_FORMATS)})"),
    module: bool = typer.Option(True, "--module/--no-module", help="Also write the generated Python module"),
) -> None:
    """Compile FILE into artifacts (and generated modules) under --out."""
    fmt = (fmt or load_config().artifact_format).lower()
    if fmt not in ARTIFACT_FORMATS:
        raise typer.BadParameter(f"expected one of {', '.join(ARTIFACT_FORMATS)}", param_hint="--format")
    program = _compile_or_exit(file)
    artifacts = build(program)
    if not artifacts:
        typer.echo(f"{file}: nothing to compile (no contract or entry component)", err=True)
        raise typer.Exit(code=1)
    ensure_dir(out)
    for artifact in artifacts:
        for path in _write_artifact(artifact, out, fmt, module):
            typer.echo(f"wrote {path}")
        log.info("compiled %s digest=%s", artifact.name, artifact.digest)


# ---------------------------------------------------------------------------
# inspect
# ---------------------------------------------------------------------------


def _render(artifact: Artifact) -> None:
    meta = (
        f"[b]{artifact.name}[/b]  error: {artifact.error}  entry: {artifact.entry}\n"
        f"digest: {artifact.digest}"
    )
    console.print(Panel(meta, title="Artifact", expand=False))

    t = Table(title="Routes", box=box.SIMPLE)
    t.add_column("Kind")
    t.add_column("Key")
    t.add_column("Variant")
    t.add_column("Handler")
    t.add_column("Fields")
    t.add_column("Target")
    for r in artifact.routes:
        fields = ", ".join(f"{f}: {ty}" for f, ty in r.fields)
        t.add_row(r.kind.value, r.key, r.variant, f"{r.component}.{r.method}", fields, r.target)
    console.print(t)

    if artifact.guards:
        g = Table(title="Execute guards", box=box.SIMPLE)
        g.add_column("#", justify="right")
        g.add_column("Guard")
        g.add_column("Target")
        for i, guard in enumerate(artifact.guards):
            g.add_row(str(i), f"{guard.component}.{guard.method}", guard.target)
        console.print(g)


@app.command("inspect")
def inspect(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Artifact (.json/.cbor/.msgpack)"),
    as_json: bool = typer.Option(False, "--json", help="Print the canonical artifact JSON"),
) -> None:
    """Decode an artifact and print its routing table."""
    try:
        artifact = load_artifact(file.read_bytes())
    except ArtifactError as exc:
        typer.echo(f"{file}: {exc}", err=True)
        raise typer.Exit(code=2)
    if as_json:
        typer.echo(artifact_to_json(artifact))
    else:
        _render(artifact)


def main() -> None:
    """Entry point for the compose-py CLI."""
    app()


if __name__ == "__main__":
    main()
