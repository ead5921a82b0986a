"""Tests for CLI commands: help, grade, queue, context, reading, profile, targets, coverage, evaluate, config."""

import json
import logging

import pytest
from typer.testing import CliRunner

from studyloop.interface.cli import app

runner = CliRunner()

AT = "2026-02-27T12:00:00"


@pytest.fixture
def snapshot_file(tmp_path, mock_home):
    data = {
        "cards": [
            {"id": "due", "en": "due card", "ja": "期限", "created_at": "2026-02-01T00:00:00Z"},
            {"id": "later", "en": "later card", "ja": "期限前", "created_at": "2026-02-02T00:00:00Z"},
            {"id": "new", "en": "new card", "ja": "未", "created_at": "2026-02-26T00:00:00Z"},
        ],
        "reviews": [
            {
                "flashcard_id": "due",
                "quality": 2,
                "repetition": 0,
                "interval_days": 1,
                "ease_factor": 2.3,
                "reviewed_at": "2026-02-19T00:00:00Z",
                "next_review_at": "2026-02-20T00:00:00Z",
            },
            {
                "flashcard_id": "later",
                "quality": 4,
                "repetition": 2,
                "interval_days": 6,
                "ease_factor": 2.5,
                "reviewed_at": "2026-02-27T00:00:00Z",
                "next_review_at": "2026-03-05T00:00:00Z",
            },
        ],
        "chatMessages": [
            {"mode": "ask", "role": "user", "content": "What is 'in charge of'?",
             "createdAt": "2026-02-26T10:00:00Z", "threadId": "a1"},
            {"mode": "translate", "role": "user", "content": "責任者です",
             "createdAt": "2026-02-26T11:00:00Z", "threadId": "t1"},
            {"mode": "translate", "role": "assistant", "content": "I am in charge.",
             "createdAt": "2026-02-26T11:00:05Z", "threadId": "t1"},
        ],
        "contextRows": [
            {"role": "user", "content": "hello"},
            {"role": "assistant", "content": "hi there"},
        ],
        "signals": [
            {"signal_key": "articles", "weight": 0.9},
            {"signal_key": "prepositions", "weight": 0.4},
        ],
    }
    path = tmp_path / "snapshot.json"
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return path


# --- Help ---


def test_cli_help():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "studyloop" in result.stdout
    assert "queue" in result.stdout
    assert "reading" in result.stdout


# --- Grade ---


def test_grade_remembered_continues_schedule(snapshot_file):
    result = runner.invoke(app, ["grade", str(snapshot_file), "later", "--remembered", "--at", AT])

    assert result.exit_code == 0, result.output
    record = json.loads(result.stdout)
    assert record["card_id"] == "later"
    assert record["quality"] == 4
    assert record["repetition"] == 3
    assert record["interval_days"] == 15
    assert record["next_review_at"].startswith("2026-03-14T12:00:00")


@pytest.mark.parametrize("at", ["2026-02-27T21:00:00+09:00", "2026-02-27T12:00:00Z"])
def test_grade_accepts_offset_reference_time(snapshot_file, at):
    result = runner.invoke(app, ["grade", str(snapshot_file), "later", "--remembered", "--at", at])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)["reviewed_at"].startswith("2026-02-27T12:00:00")


def test_grade_verbosity_enables_debug_logging(snapshot_file):
    root = logging.getLogger()
    level = root.level
    try:
        result = runner.invoke(
            app, ["-vv", "grade", str(snapshot_file), "later", "--remembered", "--at", AT]
        )

        assert result.exit_code == 0, result.output
        assert root.level == logging.DEBUG
    finally:
        root.setLevel(level)


def test_grade_forgot(snapshot_file):
    result = runner.invoke(app, ["grade", str(snapshot_file), "later", "--forgot", "--at", AT])

    record = json.loads(result.stdout)
    assert record["quality"] == 2
    assert record["repetition"] == 0
    assert record["interval_days"] == 1


def test_grade_quality_is_clamped(snapshot_file):
    result = runner.invoke(app, ["grade", str(snapshot_file), "new", "-q", "9", "--at", AT])

    record = json.loads(result.stdout)
    assert record["quality"] == 5
    assert record["repetition"] == 1


def test_grade_requires_exactly_one_grade(snapshot_file):
    result = runner.invoke(
        app, ["grade", str(snapshot_file), "new", "--remembered", "--forgot"]
    )
    assert result.exit_code == 1

    result = runner.invoke(app, ["grade", str(snapshot_file), "new"])
    assert result.exit_code == 1


def test_grade_unknown_card(snapshot_file):
    result = runner.invoke(app, ["grade", str(snapshot_file), "ghost", "--remembered"])

    assert result.exit_code == 1


# --- Queue ---


def test_queue_command(snapshot_file):
    result = runner.invoke(app, ["queue", str(snapshot_file), "--at", AT])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert [item["card_id"] for item in data["queue"]] == ["new", "due"]
    assert data["total"] == 2
    assert data["next_due_at"].startswith("2026-03-05T00:00:00")


def test_queue_respects_max_queue_option(snapshot_file):
    result = runner.invoke(app, ["queue", str(snapshot_file), "--at", AT, "--max-queue", "1"])

    data = json.loads(result.stdout)
    assert [item["card_id"] for item in data["queue"]] == ["new"]
    assert data["total"] == 1


def test_queue_with_offset_reference_time(snapshot_file):
    result = runner.invoke(app, ["queue", str(snapshot_file), "--at", "2026-02-27T12:00:00+09:00"])

    assert result.exit_code == 0, result.output
    assert [item["card_id"] for item in json.loads(result.stdout)["queue"]] == ["new", "due"]


def test_queue_reads_max_queue_from_env(snapshot_file, monkeypatch):
    monkeypatch.setenv("STUDYLOOP_MAX_QUEUE", "1")

    result = runner.invoke(app, ["queue", str(snapshot_file), "--at", AT])

    assert json.loads(result.stdout)["total"] == 1


def test_queue_missing_file(tmp_path, mock_home):
    result = runner.invoke(app, ["queue", str(tmp_path / "nope.json")])

    assert result.exit_code == 1


def test_queue_invalid_snapshot(tmp_path, mock_home):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"reviews": [{"card_id": "c1", "quality": "great"}]}))

    result = runner.invoke(app, ["queue", str(path)])

    assert result.exit_code == 1


# --- Context ---


def test_context_command(snapshot_file):
    result = runner.invoke(app, ["context", str(snapshot_file), "how are you?"])

    assert result.exit_code == 0, result.output
    turns = json.loads(result.stdout)
    assert turns == [
        {"speaker": "learner", "text": "hello"},
        {"speaker": "tutor", "text": "hi there"},
        {"speaker": "learner", "text": "how are you?"},
    ]


def test_context_budget_option(snapshot_file):
    result = runner.invoke(
        app, ["context", str(snapshot_file), "how are you?", "--max-total-chars", "15"]
    )

    turns = json.loads(result.stdout)
    assert all(len(turn["text"]) <= 5 for turn in turns)


# --- Reading ---


def test_reading_command(snapshot_file):
    result = runner.invoke(app, ["reading", str(snapshot_file)])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["used_review_targets"] == ["due card", "new card"]
    assert data["used_new_targets"] == ["責任者です"]
    assert data["stats"]["dialogue_count"] == 1
    assert data["stats"]["translation_pair_count"] == 1
    assert data["stats"]["flashcard_pair_count"] == 2


def test_reading_max_chars(snapshot_file):
    result = runner.invoke(app, ["reading", str(snapshot_file), "--max-chars", "0"])

    data = json.loads(result.stdout)
    assert data["turns"] == []
    assert data["stats"]["trimmed_count"] == 4


# --- Profile / Targets ---


def test_profile_command(snapshot_file):
    result = runner.invoke(app, ["profile", str(snapshot_file), "--at", AT, "--lookback-days", "30"])

    assert result.exit_code == 0, result.output
    profile = json.loads(result.stdout)
    assert profile["review_targets"] == ["due card", "new card"]
    assert profile["new_candidates"] == ["later card"]
    assert profile["grammar_targets"] == ["articles", "prepositions"]


def test_profile_from_precomputed_stats(tmp_path, mock_home):
    path = tmp_path / "stats.json"
    path.write_text(
        json.dumps(
            {
                "flashcardStats": [
                    {"en": "weak one", "nextReviewAt": None, "wrongRate7d": 0.5,
                     "createdAt": "2026-01-01T00:00:00Z"},
                ]
            }
        )
    )

    result = runner.invoke(app, ["profile", str(path), "--at", AT])

    assert json.loads(result.stdout)["review_targets"] == ["weak one"]


def test_targets_command(snapshot_file):
    result = runner.invoke(app, ["targets", str(snapshot_file), "--at", AT, "--lookback-days", "30"])

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data["review"] == ["due card"]
    assert data["fresh"] == ["later card"]


# --- Coverage / Evaluate ---


def test_coverage_command():
    result = runner.invoke(
        app, ["coverage", "-r", "Present Perfect", "-r", "articles", "-u", "present perfect"]
    )

    assert result.exit_code == 0
    assert json.loads(result.stdout) == {"coverage": 0.5}


def test_coverage_vacuous():
    result = runner.invoke(app, ["coverage"])

    assert json.loads(result.stdout) == {"coverage": 1.0}


def test_evaluate_command(tmp_path, mock_home):
    passage = tmp_path / "today.txt"
    previous = tmp_path / "yesterday.txt"
    passage.write_text("the quick brown fox")
    previous.write_text("the quick brown fox")

    result = runner.invoke(
        app,
        ["evaluate", str(passage), "-r", "fox", "-u", "fox", "--previous", str(previous)],
    )

    assert result.exit_code == 0, result.output
    data = json.loads(result.stdout)
    assert data == {"coverage": 1.0, "similarity": 1.0, "accepted": False}


# --- Config ---


def test_config_show(mock_home, monkeypatch):
    monkeypatch.setenv("STUDYLOOP_READING_MAX_CHARS", "1000")

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    data = json.loads(result.stdout)
    assert data["reading_max_chars"] == 1000
    assert data["max_queue"] == 50
