"""Prompt templates shipped with the package as YAML files under prompts/."""

import yaml
from pathlib import Path

PROMPTS_DIR = Path(__file__).parent / "prompts"


def load_prompt(name: str) -> str:
    """Returns the `content` template of prompts/<name>.yaml."""
    path = PROMPTS_DIR / f"{name}.yaml"
    if not path.exists():
        raise FileNotFoundError(f"Prompt {name} not found in {PROMPTS_DIR}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    content = data.get("content")
    if not content:
        raise ValueError(f"Prompt {name} has no content")
    return content
