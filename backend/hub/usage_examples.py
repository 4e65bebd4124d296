"""
Usage example extraction from README markdown.

Picks fenced code blocks that show how to run the image (docker run,
docker pull, docker compose, or a compose file) and labels each with the
nearest preceding heading.
"""

import re
from typing import Dict, List, Optional

MAX_EXAMPLES = 10
MAX_DESCRIPTION_LENGTH = 200

_FENCE_PATTERN = re.compile(
    r'^(?P<fence>`{3,}|~{3,})[ \t]*(?P<lang>[\w+-]*)[^\n]*\n(?P<code>.*?)^(?P=fence)[ \t]*$',
    re.MULTILINE | re.DOTALL,
)
_HEADING_PATTERN = re.compile(r'^#{1,6}[ \t]+(?P<title>.+?)[ \t#]*$', re.MULTILINE)

_DOCKER_COMMAND_PATTERN = re.compile(r'\bdocker(?:-compose|\s+compose)?\s+(?:run|pull|create|exec|up|build|service)\b')
_COMPOSE_PATTERN = re.compile(r'^\s*services\s*:', re.MULTILINE)


def _classify(code: str) -> Optional[str]:
    """Return 'compose', 'shell', or None if the block is not a usage example."""
    if _COMPOSE_PATTERN.search(code):
        return "compose"
    if _DOCKER_COMMAND_PATTERN.search(code):
        return "shell"
    return None


def _preceding_heading(readme: str, position: int) -> Optional[str]:
    title = None
    for match in _HEADING_PATTERN.finditer(readme, 0, position):
        title = match.group("title").strip()
    return title


def _preceding_paragraph(readme: str, position: int) -> Optional[str]:
    """Last non-empty, non-heading line of prose right before the block."""
    before = readme[:position].rstrip().splitlines()
    for line in reversed(before[-5:]):
        text = line.strip()
        if not text:
            continue
        if text.startswith(("#", "```", "~~~", "|")):
            return None
        if len(text) > MAX_DESCRIPTION_LENGTH:
            text = text[:MAX_DESCRIPTION_LENGTH - 3].rstrip() + "..."
        return text
    return None


def extract_usage_examples(readme: Optional[str], limit: int = MAX_EXAMPLES) -> List[Dict[str, Optional[str]]]:
    """
    Extract runnable examples from a README.

    Args:
        readme: Markdown text (None or empty yields no examples)
        limit: Maximum number of examples returned

    Returns:
        List of dicts with keys: title, description, code, language

    Example:
        >>> extract_usage_examples("## Run\\n```bash\\ndocker run -d nginx\\n```\\n")
        [{'title': 'Run', 'description': None, 'code': 'docker run -d nginx', 'language': 'bash'}]
    """
    if not readme:
        return []

    examples: List[Dict[str, Optional[str]]] = []
    seen = set()

    for match in _FENCE_PATTERN.finditer(readme):
        lang = match.group("lang").lower()
        code = match.group("code").strip()
        if not code or code in seen:
            continue

        kind = _classify(code)
        if kind is None:
            continue
        seen.add(code)

        title = _preceding_heading(readme, match.start())
        if not title:
            title = "Docker Compose" if kind == "compose" else "Docker Command"

        examples.append({
            "title": title,
            "description": _preceding_paragraph(readme, match.start()),
            "code": code,
            "language": lang or ("yaml" if kind == "compose" else "bash"),
        })
        if len(examples) >= limit:
            break

    return examples
