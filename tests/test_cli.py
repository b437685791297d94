from __future__ import annotations

import json

import pytest

from agentflow.cli import load_provider, main
from agentflow.models import EchoModelProvider

MANIFEST = {
    "query": "What is the weather in Oslo?",
    "workflow": {
        "name": "weather",
        "starting_agent": "forecaster",
        "agents": [
            {
                "name": "forecaster",
                "instructions": "Answer weather questions.",
                "tools": [{"type": "function", "name": "get_weather"}],
            }
        ],
    },
}


def write_manifest(tmp_path, data):
    path = tmp_path / "manifest.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_main_runs_manifest_and_prints_summary(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("AGENTFLOW_MANIFEST", raising=False)
    path = write_manifest(tmp_path, MANIFEST)

    code = main([str(path), "--stdout", "--provider", "agentflow.models:EchoModelProvider"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Workflow weather completed." in out
    assert "Final output: What is the weather in Oslo?" in out
    assert "forecaster" in out


def test_main_reads_manifest_path_from_env(tmp_path, capsys, monkeypatch):
    path = write_manifest(tmp_path, {**MANIFEST, "callback": {"mode": "stdout"}})
    monkeypatch.setenv("AGENTFLOW_MANIFEST", str(path))

    assert main([]) == 0
    assert "Final output: What is the weather in Oslo?" in capsys.readouterr().out


def test_main_reports_missing_manifest(tmp_path, capsys, monkeypatch):
    monkeypatch.delenv("AGENTFLOW_MANIFEST", raising=False)

    assert main([]) == 1
    assert "manifest path required" in capsys.readouterr().err

    assert main([str(tmp_path / "absent.json")]) == 1
    assert "workflow manifest runner:" in capsys.readouterr().err


def test_main_reports_invalid_manifest(tmp_path, capsys):
    data = {
        **MANIFEST,
        "callback": {"mode": "stdout"},
        "workflow": {**MANIFEST["workflow"], "starting_agent": "ghost"},
    }
    path = write_manifest(tmp_path, data)

    assert main([str(path)]) == 1
    assert "ghost" in capsys.readouterr().err


def test_load_provider_accepts_instances_and_factories(monkeypatch):
    provider = EchoModelProvider(prefix="x")
    monkeypatch.setattr("agentflow.models.SHARED_TEST_PROVIDER", provider, raising=False)

    assert load_provider("agentflow.models:SHARED_TEST_PROVIDER") is provider
    assert isinstance(load_provider("agentflow.models:EchoModelProvider"), EchoModelProvider)


@pytest.mark.parametrize(
    "ref, error",
    [
        ("no_colon", ValueError),
        ("json:JSONDecoder", ValueError),
        ("agentflow.models:Missing", AttributeError),
    ],
)
def test_load_provider_errors(ref, error):
    with pytest.raises(error):
        load_provider(ref)
