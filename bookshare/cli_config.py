"""
CLI Configuration Manager for the Bookshare CLI
Keeps the API address and the session token between runs
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from rich.console import Console

from bookshare.config import settings

console = Console()


class CLIConfig:
    """Manages CLI configuration and the stored session."""

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = Path(config_dir or settings.cli_config_dir)
        self.config_file = self.config_dir / "config.json"
        self.config: Dict[str, Any] = {}
        self.load_config()

    def load_config(self) -> None:
        """Load configuration from file or create default."""
        if self.config_file.exists():
            try:
                with open(self.config_file, "r", encoding="utf-8") as f:
                    self.config = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                console.print(f"[yellow]⚠️  Could not load config: {e}[/]")
                self.create_default_config()
        else:
            self.create_default_config()

    def create_default_config(self) -> None:
        self.config = {
            "api_url": settings.client_api_url,
            "token": None,
            "user": None,
            "preferences": {
                "sort": "newest",
                "page_size": settings.feed_page_size,
            },
        }

    def save_config(self) -> None:
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w", encoding="utf-8") as f:
                json.dump(self.config, f, indent=2, ensure_ascii=False)
        except OSError as e:
            console.print(f"[red]❌ Could not save config: {e}[/]")

    @property
    def api_url(self) -> str:
        return self.config.get("api_url") or settings.client_api_url

    @property
    def token(self) -> Optional[str]:
        return self.config.get("token")

    def get_preference(self, key: str, default: Any = None) -> Any:
        return self.config.get("preferences", {}).get(key, default)

    def set_session(self, token: Optional[str], user: Optional[Dict[str, Any]]) -> None:
        self.config["token"] = token
        self.config["user"] = user
        self.save_config()

    def clear_session(self) -> None:
        self.set_session(None, None)
