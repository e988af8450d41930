"""Tests for the voice-proxy CLI."""
from __future__ import annotations

import json

import pytest
import yaml

from voice_proxy.cli import main

from conftest import COMMENT_ID, VOICES, comment_rows


def json_line(output: str) -> dict:
    for line in output.splitlines():
        if line.startswith("{"):
            return json.loads(line)
    raise AssertionError(f"no JSON line in output: {output!r}")


@pytest.fixture
def settings_file(tmp_path):
    fixtures = tmp_path / "fixtures.yaml"
    fixtures.write_text(yaml.safe_dump({"comments": comment_rows()}), encoding="utf-8")
    raw = {
        "provider": {"mock_mode": True, "mock_delay_min_s": 0.0, "mock_delay_max_s": 0.0},
        "voices": dict(VOICES),
        "chunking": {"max_chars": 40},
        "pacing": {"between_calls_s": 0.0, "between_subjects_s": 0.0},
        "store": {"backend": "memory", "fixtures": str(fixtures)},
        "storage": {"backend": "local", "base_dir": str(tmp_path / "storage")},
    }
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump(raw), encoding="utf-8")
    return str(path)


class TestChunk:

    def test_dry_run(self, settings_file, capsys):
        code = main(["--settings", settings_file, "chunk", "--text", "One. Two. Three.", "--max-chars", "10", "--json"])
        out = capsys.readouterr().out
        payload = json_line(out)

        assert code == 0
        assert payload["dry_run"] is True
        assert payload["count"] == 2
        assert [c["text"] for c in payload["chunks"]] == ["One. Two.", "Three."]
        assert "DRY_RUN_OK" in out

    def test_default_bound_from_settings(self, settings_file, capsys):
        main(["--settings", settings_file, "chunk", "Short text.", "--json"])
        assert json_line(capsys.readouterr().out)["max_chars"] == 40

    def test_from_file(self, settings_file, tmp_path, capsys):
        source = tmp_path / "article.txt"
        source.write_text("First. Second.", encoding="utf-8")
        main(["--settings", settings_file, "chunk", "--file", str(source), "--json"])
        assert json_line(capsys.readouterr().out)["count"] == 1

    def test_requires_text(self, settings_file):
        with pytest.raises(SystemExit):
            main(["--settings", settings_file, "chunk"])


class TestSynth:

    def test_mock_synth(self, settings_file, capsys):
        code = main(["--settings", settings_file, "synth", "--text", "Hello.", "--speaker", "wuenda", "--json"])
        out = capsys.readouterr().out
        payload = json_line(out)

        assert code == 0
        assert payload["ok"] is True
        assert payload["mockMode"] is True
        assert "CLI_OK" in out

    def test_unknown_speaker_fails(self, settings_file, capsys):
        code = main(["--settings", settings_file, "synth", "Hello.", "--speaker", "elon", "--json"])
        payload = json_line(capsys.readouterr().out)

        assert code == 1
        assert payload["error"] == "UNKNOWN_SPEAKER"


class TestSpeakersAndWarmup:

    def test_speakers(self, settings_file, capsys):
        assert main(["--settings", settings_file, "speakers", "--json"]) == 0
        payload = json_line(capsys.readouterr().out)
        assert [s["voiceId"] for s in payload["speakers"]] == ["voice-ng", "voice-paul", "voice-li", "voice-sam"]

    def test_warmup(self, settings_file, capsys):
        assert main(["--settings", settings_file, "warmup", "--limit", "1", "--json"]) == 0
        out = capsys.readouterr().out
        payload = json_line(out)

        assert [r["commentId"] for r in payload["results"]] == [COMMENT_ID]
        assert "CLI_OK" in out


def test_command_required():
    with pytest.raises(SystemExit):
        main([])
