"""Configuration management for etrans."""
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional


CONFIG_PATH = Path.home() / ".etrans" / "config.json"

PROVIDER_TYPES = ("openai", "claude", "gemini", "deepseek", "ollama", "nltranslator", "custom")
GENERATE_MODES = ("bilingual", "monolingual")

DEFAULTS = {
    "provider": "openai",
    "api_url": "https://api.openai.com/v1",
    "model": "gpt-3.5-turbo",
    "temperature": 0.3,
    "max_tokens": None,
    "target_lang": "en",
    "mode": "bilingual",
    "instruction": "",
    "cache_dir": str(Path.home() / ".etrans" / "cache"),
}


@dataclass
class ProviderConfig:
    """Provider family plus the settings used to reach it."""

    type: str = "openai"
    api_key: str = ""
    api_url: str = DEFAULTS["api_url"]
    model: str = DEFAULTS["model"]
    temperature: float = 0.3
    max_tokens: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)


def _read_saved() -> Dict[str, Any]:
    """Return the saved settings, or {} when the file is missing, unreadable or not a JSON object."""
    try:
        saved = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return saved if isinstance(saved, dict) else {}


def load_config() -> Dict[str, Any]:
    """Load saved configuration layered over DEFAULTS."""
    return {**DEFAULTS, **_read_saved()}


def save_config(config: Dict[str, Any]):
    """Save configuration to disk."""
    CONFIG_PATH.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_PATH.write_text(json.dumps(config, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")


def provider_config_from(config: Dict[str, Any], **overrides) -> ProviderConfig:
    """Build a ProviderConfig from a loaded config dict.

    Non-None keyword overrides (api_key, api_url, model, provider) win over the
    saved values. The API key falls back to ETRANS_API_KEY, then OPENAI_API_KEY.
    """
    merged = dict(config)
    merged.update({k: v for k, v in overrides.items() if v is not None})

    api_key = merged.get("api_key") or os.getenv("ETRANS_API_KEY") or os.getenv("OPENAI_API_KEY") or ""
    return ProviderConfig(
        type=merged.get("provider") or DEFAULTS["provider"],
        api_key=api_key,
        api_url=merged.get("api_url") or DEFAULTS["api_url"],
        model=merged.get("model") or DEFAULTS["model"],
        temperature=float(merged.get("temperature", 0.3)),
        max_tokens=merged.get("max_tokens"),
        extra=dict(merged.get("extra") or {}),
    )


def run_setup():
    """Interactive setup wizard."""
    from rich.console import Console
    from rich.prompt import Prompt

    console = Console()
    current = load_config()

    console.print("\n[bold cyan]etrans Setup[/bold cyan]\n")
    console.print("Current values shown as defaults. Press Enter to keep them.\n")

    provider = Prompt.ask(
        "Provider",
        choices=list(PROVIDER_TYPES),
        default=current["provider"],
    )

    api_url = Prompt.ask(
        "API base URL (…/chat/completions is appended)",
        default=current["api_url"],
    )

    model = Prompt.ask(
        "Model",
        default=current["model"],
    )

    api_key_input = Prompt.ask(
        "API key (leave empty to use ETRANS_API_KEY / OPENAI_API_KEY)",
        default=current.get("api_key") or "",
        password=True,
    )

    target_lang = Prompt.ask(
        "Target language",
        default=current["target_lang"],
    )

    mode = Prompt.ask(
        "Output mode",
        choices=list(GENERATE_MODES),
        default=current["mode"],
    )

    instruction = Prompt.ask(
        "Extra instruction for the translator (optional)",
        default=current.get("instruction") or "",
    )

    new_config = {
        "provider": provider,
        "api_url": api_url,
        "model": model,
        "temperature": current.get("temperature", 0.3),
        "max_tokens": current.get("max_tokens"),
        "target_lang": target_lang,
        "mode": mode,
        "instruction": instruction,
        "cache_dir": current["cache_dir"],
    }
    if api_key_input:
        new_config["api_key"] = api_key_input
    save_config(new_config)

    console.print(f"\n[green]Configuration saved:[/green] {CONFIG_PATH}")
    console.print()
    for k, v in new_config.items():
        if k == "api_key":
            v = "********"
        console.print(f"  {k}: {v}")
    console.print()
