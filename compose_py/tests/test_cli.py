from __future__ import annotations

import json
import textwrap
from pathlib import Path

import typer.testing

from compose_py.cli.main import app
from compose_py.compiler.encode import sniff_format

runner = typer.testing.CliRunner()

BROKEN = textwrap.dedent(
    """
    from compose_py.dsl import component, execute
    from compose_py.runtime import Response

    @component
    class A:
        @execute
        def add(self, x: int) -> Response:
            return Response()

        @execute
        def add(ctx) -> int:
            return 1
    """
)


def _write(tmp_path: Path, name: str, text: str) -> Path:
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def test_help_and_version() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "check" in result.output and "compile" in result.output

    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("compose-py ")


def test_check_clean_module(bank_path: Path) -> None:
    result = runner.invoke(app, ["check", str(bank_path)])
    assert result.exit_code == 0, result.output
    assert "ok (Bank)" in result.output


def test_check_reports_every_diagnostic(tmp_path: Path) -> None:
    path = _write(tmp_path, "broken.py", BROKEN)
    result = runner.invoke(app, ["check", str(path)])
    assert result.exit_code == 1
    lines = [ln for ln in result.output.splitlines() if ": CP" in ln]
    assert [ln.split(": ")[1].split()[0] for ln in lines] == ["CP110", "CP111", "CP122"]
    assert lines[0].startswith(f"{path}:8:")


def test_check_json(tmp_path: Path) -> None:
    path = _write(tmp_path, "broken.py", BROKEN)
    result = runner.invoke(app, ["check", "--json", str(path)])
    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["ok"] is False
    assert [d["code"] for d in payload["diagnostics"]] == ["CP110", "CP111", "CP122"]


def test_compile_writes_artifacts_and_module(bank_path: Path, tmp_path: Path) -> None:
    out = tmp_path / "build"
    result = runner.invoke(app, ["compile", str(bank_path), "--out", str(out), "--format", "msgpack"])
    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in out.iterdir()) == [
        "bank.artifact.json",
        "bank.artifact.msgpack",
        "bank_msg.py",
    ]
    art = json.loads((out / "bank.artifact.json").read_text(encoding="utf-8"))
    assert art["name"] == "Bank" and art["digest"].startswith("0x")
    assert sniff_format((out / "bank.artifact.msgpack").read_bytes()) == "msgpack"
    compile((out / "bank_msg.py").read_text(encoding="utf-8"), "bank_msg.py", "exec")


def test_compile_without_module(bank_path: Path, tmp_path: Path) -> None:
    result = runner.invoke(app, ["compile", str(bank_path), "-o", str(tmp_path), "--no-module"])
    assert result.exit_code == 0, result.output
    assert sorted(p.name for p in tmp_path.iterdir()) == ["bank.artifact.cbor", "bank.artifact.json"]


def test_compile_refuses_broken_module(tmp_path: Path) -> None:
    path = _write(tmp_path, "broken.py", BROKEN)
    out = tmp_path / "build"
    result = runner.invoke(app, ["compile", str(path), "--out", str(out)])
    assert result.exit_code == 1
    assert not out.exists()


def test_compile_rejects_unknown_format(bank_path: Path, tmp_path: Path) -> None:
    result = runner.invoke(app, ["compile", str(bank_path), "--out", str(tmp_path), "--format", "yaml"])
    assert result.exit_code != 0
    assert list(tmp_path.iterdir()) == []


def test_inspect_binary_and_json(bank_path: Path, tmp_path: Path) -> None:
    runner.invoke(app, ["compile", str(bank_path), "--out", str(tmp_path), "--no-module"])
    result = runner.invoke(app, ["inspect", str(tmp_path / "bank.artifact.cbor")])
    assert result.exit_code == 0, result.output
    assert "Bank" in result.output and "Routes" in result.output

    result = runner.invoke(app, ["inspect", "--json", str(tmp_path / "bank.artifact.cbor")])
    assert result.exit_code == 0
    assert json.loads(result.stdout) == json.loads((tmp_path / "bank.artifact.json").read_text(encoding="utf-8"))


def test_inspect_rejects_garbage(tmp_path: Path) -> None:
    path = tmp_path / "junk.cbor"
    path.write_bytes(b"\x00\x01\x02")
    result = runner.invoke(app, ["inspect", str(path)])
    assert result.exit_code == 2
