import os

import pytest

# Set required environment variables BEFORE imports
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from handlers.store import TaskStore  # noqa: E402
from sample_events import FakeLambdaContext  # noqa: E402
from task_service.app import build_pipeline  # noqa: E402
from task_service.runtime.deps import Config, create_deps  # noqa: E402


@pytest.fixture
def lambda_context():
    return FakeLambdaContext()


@pytest.fixture
def config():
    return Config()


@pytest.fixture
def store():
    return TaskStore(seed=True)


@pytest.fixture
def deps(config, store):
    return create_deps(config=config, store=store)


@pytest.fixture
def pipeline(deps):
    return build_pipeline(deps)
