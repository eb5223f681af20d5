"""Prompt configuration loaded from the YAML files beside this module."""
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

PROMPTS_DIR = Path(__file__).parent / "data"


@lru_cache
def load_prompt_file(name: str) -> dict[str, Any]:
    with open(PROMPTS_DIR / f"{name}.yaml", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def predefined_themes() -> list[str]:
    """Themes the analysis prompt asks the model to choose from (advisory)."""
    return list(load_prompt_file("analysis")["themes"])


def analysis_system_prompt(language: str) -> str:
    config = load_prompt_file("analysis")
    themes = "\n".join(f"{i}. {theme}" for i, theme in enumerate(config["themes"], start=1))
    return config["system"].format(themes=themes, language=language)


def tool_config(tool: str) -> dict[str, Any]:
    return load_prompt_file("tools")[tool]
