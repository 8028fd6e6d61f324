import json

import pytest
from typer.testing import CliRunner

from brenner.cli import app
from brenner.lib import paths

runner = CliRunner()


@pytest.fixture
def thread_file(brenner_home, full_thread):
    path = brenner_home / "thread.json"
    path.write_text(json.dumps(full_thread.to_dict()))
    return path


def _json(args):
    result = runner.invoke(app, ["--json", *args])
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


def test_help_without_command(brenner_home):
    result = runner.invoke(app)
    assert result.exit_code == 0
    assert "status" in result.stdout


def test_status(thread_file):
    data = _json(["status", str(thread_file)])
    assert data["phase"] == "compiling"
    assert data["all_roles_responded"]

    result = runner.invoke(app, ["status", str(thread_file), "--summary"])
    assert result.stdout.strip() == "3/3 roles responded | Phase: compiling"


def test_deltas(thread_file):
    rows = _json(["deltas", str(thread_file)])
    assert [r["message_id"] for r in rows] == [2, 3, 4]
    assert all(r["valid"] for r in rows)


def test_merge_compile_flow(brenner_home, thread_file):
    merged = _json(["merge", str(thread_file)])
    assert merged["version"] == 1
    assert merged["rejected"] == []
    artifact_path = paths.artifact_file(brenner_home, "RS20251230")
    assert merged["artifact"] == str(artifact_path)
    assert artifact_path.exists()

    again = runner.invoke(app, ["merge", str(thread_file)])
    assert again.exit_code == 0
    assert "No changes (v1)" in again.stdout

    compiled = runner.invoke(app, ["compile", str(thread_file), "--as", "Operator"])
    assert compiled.exit_code == 0, compiled.output
    assert "COMPILED: RS20251230 v1" in compiled.stdout

    repeat = runner.invoke(app, ["compile", str(thread_file), "--as", "Operator"])
    assert repeat.exit_code == 0, repeat.output
    assert "already posted" in repeat.output
    subjects = [m["subject"] for m in json.loads(thread_file.read_text())["messages"]]
    assert subjects.count("COMPILED: RS20251230 v1") == 1

    status = _json(["status", str(thread_file)])
    assert status["phase"] == "complete"
    assert status["latest_artifact"]["sender"] == "Operator"
    assert json.loads(artifact_path.read_text())["metadata"]["status"] == "compiled"


def test_merge_reports_rejections(brenner_home, thread_file):
    data = json.loads(thread_file.read_text())
    data["messages"].append(
        {
            "id": 5,
            "from": "Critic",
            "to": [],
            "subject": "DELTA: bad",
            "body": '```delta\n{"operation": "DELETE", "section": "hypothesis_slate", "target_id": "H9", "rationale": "gone"}\n```',
            "created_ts": "2025-12-30T10:05:00Z",
        }
    )
    thread_file.write_text(json.dumps(data))

    merged = _json(["merge", str(thread_file)])
    assert [r["reason"] for r in merged["rejected"]] == ["target_not_found"]


def test_compile_without_artifact_fails(thread_file):
    result = runner.invoke(app, ["compile", str(thread_file), "--as", "Operator"])
    assert result.exit_code == 1


def test_anomaly_lifecycle(brenner_home):
    added = _json(["anomaly", "add", "RS20251230", "Division is asymmetric", "-d", "Contradicts H1", "-H", "H1", "--anchor", "§42"])
    anomaly_id = added["id"]
    assert anomaly_id == "X-RS20251230-001"

    listed = _json(["anomaly", "list", "--status", "active"])
    assert [a["id"] for a in listed] == [anomaly_id]

    resolved = _json(["anomaly", "resolve", anomaly_id, "--by", "H2"])
    assert resolved["quarantineStatus"] == "resolved"

    again = runner.invoke(app, ["anomaly", "resolve", anomaly_id, "--by", "H2"])
    assert again.exit_code == 1

    stats = _json(["anomaly", "stats"])
    assert stats["by_status"]["resolved"] == 1

    index = _json(["anomaly", "reindex"])
    assert [e["id"] for e in index["entries"]] == [anomaly_id]

    assert runner.invoke(app, ["anomaly", "delete", anomaly_id]).exit_code == 0
    assert runner.invoke(app, ["anomaly", "show", anomaly_id]).exit_code == 1


def test_anomaly_add_invalid(brenner_home):
    result = runner.invoke(app, ["anomaly", "add", "RS1", "obs", "-H", "P1"])
    assert result.exit_code == 1


def test_cite(brenner_home):
    data = _json(["cite", "§129-127", "see §5", "--base-url", "https://brenner.example/"])
    assert [c["section"] for c in data] == [5, 127, 128, 129]
    assert data[0]["href"] == "https://brenner.example/corpus/transcript#section-5"


def test_init_writes_config_and_research_tree(brenner_home, tmp_path, monkeypatch):
    (tmp_path / "home" / "config.yaml").unlink()
    monkeypatch.chdir(tmp_path)

    data = _json(["init"])
    assert data["created"] is True
    assert (tmp_path / "home" / "config.yaml").exists()
    assert paths.anomalies_dir(tmp_path).is_dir()
    assert paths.artifacts_dir(tmp_path).is_dir()

    again = _json(["init"])
    assert again["created"] is False
