"""Unit tests for roundtable/question_file.py."""

import textwrap
from pathlib import Path

from roundtable.question_file import parse_question_file, split_agents


def test_parse_question_file_no_frontmatter(tmp_path: Path) -> None:
    f = tmp_path / "question.md"
    f.write_text("Should AI replace teachers?\n", encoding="utf-8")
    question, metadata = parse_question_file(f)
    assert question == "Should AI replace teachers?"
    assert metadata == {}


def test_parse_question_file_with_frontmatter(tmp_path: Path) -> None:
    f = tmp_path / "question.md"
    f.write_text(
        textwrap.dedent("""\
            ---
            agents: analyst,skeptic
            max_rounds: 3
            validator: validator
            ---
            Should AI replace teachers?
        """),
        encoding="utf-8",
    )
    question, metadata = parse_question_file(f)
    assert question == "Should AI replace teachers?"
    assert metadata["agents"] == "analyst,skeptic"
    assert metadata["max_rounds"] == 3
    assert metadata["validator"] == "validator"


def test_split_agents() -> None:
    assert split_agents("analyst, skeptic,") == ["analyst", "skeptic"]
    assert split_agents(["analyst", " pragmatist "]) == ["analyst", "pragmatist"]
    assert split_agents(None) == []
    assert split_agents("") == []
