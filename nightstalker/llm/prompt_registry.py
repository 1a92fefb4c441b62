"""
Prompt Registry - Versioned storyteller prompt templates.

Each template lives in {prompt_id}_v{n}.txt, e.g. story_v0.txt. Leading
'# key: value' lines are metadata (the response schema name, notes) and are
stripped before the template is sent to the model.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

HEADER_PATTERN = re.compile(r'^#\s*(\w+):\s*(.+)$')
PROMPTS_DIR = Path(__file__).parent.parent / "prompts"


@dataclass
class PromptTemplate:
    id: str
    version: str
    template: str
    schema_name: str
    metadata: dict = field(default_factory=dict)


def split_header(raw: str) -> tuple[dict, str]:
    """Separate leading '#' lines from the body; returns (metadata, body)."""
    lines = raw.splitlines()
    metadata = {}
    body_start = len(lines)
    for number, line in enumerate(lines):
        if not line.startswith('#'):
            body_start = number
            break
        header = HEADER_PATTERN.match(line)
        if header:
            metadata[header.group(1).lower()] = header.group(2).strip()
    body = '\n'.join(lines[body_start:]).lstrip('\n')
    return metadata, body


class PromptRegistry:
    """Finds prompt files by id and version and keeps the ones it has read."""

    def __init__(self, prompts_dir: Optional[Path] = None):
        self.prompts_dir = Path(prompts_dir) if prompts_dir else PROMPTS_DIR
        self._loaded: dict[tuple[str, str], PromptTemplate] = {}

    def get_prompt(self, prompt_id: str, version: Optional[str] = None) -> PromptTemplate:
        """
        Template for prompt_id at version ('v0', 'v1', ...), newest when omitted.

        Raises FileNotFoundError when the prompt or version does not exist.
        """
        version = version or self.latest_version(prompt_id)
        key = (prompt_id, version)
        if key not in self._loaded:
            self._loaded[key] = self._read(prompt_id, version)
        return self._loaded[key]

    def latest_version(self, prompt_id: str) -> str:
        versions = self.list_versions(prompt_id)
        if not versions:
            raise FileNotFoundError(f"No '{prompt_id}' prompts in {self.prompts_dir}")
        return versions[-1]

    def list_versions(self, prompt_id: str) -> list[str]:
        """Available versions, oldest first, ordered by number."""
        name_pattern = re.compile(rf"^{re.escape(prompt_id)}_v(\d+)\.txt$")
        numbers = sorted(
            int(found.group(1))
            for found in (name_pattern.match(p.name) for p in self.prompts_dir.glob("*.txt"))
            if found
        )
        return [f"v{n}" for n in numbers]

    def _read(self, prompt_id: str, version: str) -> PromptTemplate:
        path = self.prompts_dir / f"{prompt_id}_{version}.txt"
        if not path.is_file():
            raise FileNotFoundError(f"Prompt not found: {path}")
        metadata, body = split_header(path.read_text())
        return PromptTemplate(
            id=prompt_id,
            version=version,
            template=body,
            schema_name=metadata.get("schema", f"{prompt_id}_response"),
            metadata=metadata,
        )

    def clear_cache(self) -> None:
        self._loaded.clear()
