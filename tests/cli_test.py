import json

from typer.testing import CliRunner

from page_segmenter.cli import app

runner = CliRunner()


def _pages(tmp_path):
    path = tmp_path / "pages.json"
    pages = [{"id": 1, "content": "## A\nx"}, {"id": 2, "content": "## B"}]
    path.write_text(json.dumps(pages, ensure_ascii=False), encoding="utf-8")
    return path


def _options(tmp_path, body):
    path = tmp_path / "segmenter.yaml"
    path.write_text(body, encoding="utf-8")
    return path


def test_segment_writes_jsonl_to_stdout(tmp_path):
    opts = _options(tmp_path, "rules:\n  - lineStartsWith: ['## ']\n")
    result = runner.invoke(app, ["segment", str(_pages(tmp_path)), "--options", str(opts)])
    assert result.exit_code == 0
    rows = [json.loads(line) for line in result.stdout.splitlines() if line.startswith("{")]
    assert rows == [{"content": "## A\nx", "from": 1}, {"content": "## B", "from": 2}]


def test_segment_cli_limits_override_options(tmp_path):
    opts = _options(tmp_path, "breakpoints: ['']\n")
    out = tmp_path / "out.jsonl"
    args = ["segment", str(_pages(tmp_path)), "--options", str(opts), "--max-pages", "0"]
    result = runner.invoke(app, [*args, "--out", str(out)])
    assert result.exit_code == 0
    rows = [json.loads(line) for line in out.read_text(encoding="utf-8").splitlines()]
    assert [(r["content"], r["from"]) for r in rows] == [("## A\nx", 1), ("## B", 2)]


def test_segment_reports_bad_input(tmp_path):
    path = tmp_path / "pages.json"
    path.write_text("not json", encoding="utf-8")
    result = runner.invoke(app, ["segment", str(path)])
    assert result.exit_code == 1


def test_segment_missing_file(tmp_path):
    result = runner.invoke(app, ["segment", str(tmp_path / "absent.json")])
    assert result.exit_code != 0


def test_validate_ok(tmp_path):
    opts = _options(tmp_path, "rules:\n  - lineStartsWith: ['{{bab}} ']\n")
    result = runner.invoke(app, ["validate", str(opts)])
    assert result.exit_code == 0
    assert "validate: OK" in result.stdout


def test_validate_reports_issues(tmp_path):
    opts = _options(tmp_path, "rules:\n  - lineStartsWith: ['raqms ']\n")
    result = runner.invoke(app, ["validate", str(opts)])
    assert result.exit_code == 1
    assert 'Rule 1, lineStartsWith: Missing {{}} around token "raqms"' in result.stdout


def test_tokens_lists_patterns():
    result = runner.invoke(app, ["tokens"])
    assert result.exit_code == 0
    assert json.loads(result.stdout)["bab"] == "باب"
