import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from .ai.llm import ProviderIdentity

logger = logging.getLogger(__name__)


def config_dir() -> Path:
    """The per-user directory holding config.json and the credential store."""
    override = os.getenv("SHELLAI_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".config" / "shellai"


def write_json_atomic(path: Path, data: Dict, mode: int = 0o600):
    """Replace `path` with `data` as a whole, creating its directory if needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
    os.replace(tmp_path, path)


def _default_config() -> Dict:
    return {"isInitialSetup": True, "providerConfigs": {}}


class ConfigManager:
    """Reads and writes the default provider and per-provider default models."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else config_dir() / "config.json"

    def _read(self) -> Dict:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return _default_config()
        except (OSError, ValueError) as e:
            logger.warning("Error reading or parsing %s, using defaults: %s", self.path, e)
            return _default_config()

        if not isinstance(data, dict):
            return _default_config()
        if not isinstance(data.get("providerConfigs"), dict):
            data["providerConfigs"] = {}
        return data

    def _write(self, data: Dict):
        write_json_atomic(self.path, data, mode=0o644)

    def is_first_run(self) -> bool:
        return bool(self._read().get("isInitialSetup", True))

    def complete_initial_setup(self):
        data = self._read()
        data["isInitialSetup"] = False
        self._write(data)

    def get_default_provider(self) -> Optional[ProviderIdentity]:
        value = self._read().get("defaultProvider")
        try:
            return ProviderIdentity(value) if value else None
        except ValueError:
            logger.warning("Ignoring unknown default provider %r in %s", value, self.path)
            return None

    def set_default_provider(self, provider: ProviderIdentity):
        data = self._read()
        data["defaultProvider"] = ProviderIdentity(provider).value
        self._write(data)

    def get_default_model(self, provider: ProviderIdentity) -> Optional[str]:
        provider_config = self._read()["providerConfigs"].get(ProviderIdentity(provider).value)
        if not isinstance(provider_config, dict):
            return None
        return provider_config.get("defaultModel") or None

    def set_default_model(self, provider: ProviderIdentity, model: str):
        data = self._read()
        provider_config = data["providerConfigs"].setdefault(ProviderIdentity(provider).value, {})
        provider_config["defaultModel"] = model
        self._write(data)
