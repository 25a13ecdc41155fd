"""Root conftest: points settings at the test environment before anything imports them."""
from __future__ import annotations

import os
from pathlib import Path

ENV_FILE = Path(__file__).resolve().parent / ".env.test"


def _read_env_file(path: Path) -> dict[str, str]:
    values: dict[str, str] = {}
    if not path.exists():
        return values
    for raw in path.read_text().splitlines():
        line = raw.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        values[key.strip()] = value.strip().strip('"')
    return values


for _key, _value in _read_env_file(ENV_FILE).items():
    os.environ.setdefault(_key, _value)

# the API under test never runs the outbox worker itself
os.environ["OUTBOX_RUN_IN_APP"] = "false"
