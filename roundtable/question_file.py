"""Read a debate question from a markdown file with optional YAML frontmatter."""

from pathlib import Path

import frontmatter


def parse_question_file(file_path: Path) -> tuple[str, dict]:
    """Parse a markdown question file.

    Returns:
        (question, metadata) where metadata may hold agents (str, comma
        separated), max_rounds (int) and validator (str). If there is no
        frontmatter, metadata is {}.
    """
    post = frontmatter.load(str(file_path))
    return post.content.strip(), dict(post.metadata)


def split_agents(value: str | list | None) -> list[str]:
    """Normalize an agent list given as 'a,b' or a YAML list."""
    if not value:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(v).strip() for v in value if str(v).strip()]
