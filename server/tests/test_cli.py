import json
from pathlib import Path

import pytest

from statekit import run

COUNTER = """const Counter = createClass(() => {
  let count = 0
  const increment = () => { count++ }
  return { count, increment }
})
"""


def _run(argv) -> int:
    with pytest.raises(SystemExit) as excinfo:
        run.main(argv)
    return excinfo.value.code


def test_transform_prints_result(tmp_path: Path, capsys) -> None:
    source = tmp_path / "counter.ts"
    source.write_text(COUNTER, encoding="utf-8")

    assert _run(["transform", str(source)]) == 0

    out = capsys.readouterr().out
    assert out.startswith("import { $atom } from 'statekit/runtime'\n")
    assert "count.value++" in out


def test_transform_options_and_map(tmp_path: Path, capsys) -> None:
    source = tmp_path / "counter.ts"
    source.write_text(COUNTER, encoding="utf-8")

    code = _run(
        [
            "transform",
            str(source),
            "--debug",
            "--runtime-path",
            "@acme/runtime",
            "--map",
            "--cache-dir",
            str(tmp_path),
        ]
    )

    assert code == 0
    out = capsys.readouterr().out
    assert out.startswith("import { $atomDEV } from '@acme/runtime'\n")
    source_map = json.loads((tmp_path / "counter.ts.map").read_text(encoding="utf-8"))
    assert source_map["version"] == 3
    assert list((tmp_path / ".statekit-cache").glob("*.json"))


def test_transform_unchanged_prints_original(tmp_path: Path, capsys) -> None:
    source = tmp_path / "plain.ts"
    source.write_text("export const a = 1\n", encoding="utf-8")

    assert _run(["transform", str(source)]) == 0

    assert capsys.readouterr().out == "export const a = 1\n"


def test_transform_reports_syntax_errors(tmp_path: Path, capsys) -> None:
    source = tmp_path / "bad.ts"
    source.write_text("createClass(() => 1)\n", encoding="utf-8")

    assert _run(["transform", str(source)]) == 1

    assert "curly braces" in capsys.readouterr().err


def test_transform_missing_file(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        run.main(["transform", str(tmp_path / "missing.ts")])

    assert "File does not exist" in str(excinfo.value.code)


def test_serve_runs_uvicorn(monkeypatch) -> None:
    calls = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(run.uvicorn, "run", fake_run)

    assert _run(["serve", "--port", "9000"]) == 0
    assert calls["app"] == "statekit.main:app"
    assert calls["port"] == 9000
