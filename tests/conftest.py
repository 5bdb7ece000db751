import os
import tempfile
from pathlib import Path

# Point the store at a throwaway database and drop the simulated node delay
# before nodeflow.config reads the environment.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="nodeflow-tests-"))
os.environ.setdefault("NODEFLOW_DB_PATH", str(_TMP_DIR / "nodeflow.db"))
os.environ.setdefault("NODEFLOW_NODE_DELAY_SECONDS", "0")
os.environ.setdefault("NODEFLOW_SEED_SAMPLE", "true")

import pytest  # noqa: E402

from nodeflow.engine.context import EngineSettings, ExecutionContext  # noqa: E402


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings(node_delay_seconds=0, evaluation_timeout_seconds=2)


@pytest.fixture
def context(settings: EngineSettings) -> ExecutionContext:
    return ExecutionContext(settings=settings)
