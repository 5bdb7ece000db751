"""Runtime configuration, read once from the environment."""

import os
from pathlib import Path


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


# Storage
DB_PATH = Path(
    os.getenv("NODEFLOW_DB_PATH")
    or Path(__file__).resolve().parent.parent / "nodeflow.db"
)

# Engine
NODE_DELAY_SECONDS = float(os.getenv("NODEFLOW_NODE_DELAY_SECONDS", "0.5"))
HTTP_TIMEOUT_SECONDS = float(os.getenv("NODEFLOW_HTTP_TIMEOUT_SECONDS", "30"))
EVALUATION_TIMEOUT_SECONDS = float(os.getenv("NODEFLOW_EVALUATION_TIMEOUT_SECONDS", "2"))

# Condition nodes follow only the connection wired to the matching "true"/"false" port
CONDITIONAL_BRANCHING = _env_bool("NODEFLOW_CONDITIONAL_BRANCHING", "false")

# Seed the sample workflow into an empty store on startup
SEED_SAMPLE = _env_bool("NODEFLOW_SEED_SAMPLE", "true")

# Server binding, used by uvicorn
API_HOST = os.getenv("API_HOST", "0.0.0.0")
API_PORT = int(os.getenv("API_PORT", "8000"))
