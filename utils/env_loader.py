import os
from pathlib import Path
from typing import Dict, Optional


def parse_env_file(env_path: str) -> Dict[str, str]:
    env_file = Path(env_path)
    if not env_file.exists():
        return {}

    values: Dict[str, str] = {}
    for raw_line in env_file.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'").strip('"')
        if key:
            values[key] = value
    return values


def load_environments(env_path: Optional[str] = None, override: bool = False) -> None:
    """Copy ``.env`` entries into ``os.environ``; existing variables win unless ``override``."""
    path = env_path or os.getenv("ADAPTER_ENV_FILE", ".env")
    for key, value in parse_env_file(path).items():
        if override or key not in os.environ:
            os.environ[key] = value
