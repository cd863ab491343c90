import os

# Settings are read at import time, so these must be set before any
# orgmirror module is imported.
os.environ.setdefault("GITHUB_WEBHOOK_SECRET", "test_webhook_secret")
os.environ.setdefault("OM_API_KEY", "test_api_key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DRIVER", "console")
os.environ.setdefault("LLM", "litellm")
os.environ.setdefault("GEMINI_API_KEY", "dummy-key-for-testing")

import pytest  # noqa: E402
from unittest.mock import MagicMock, patch  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel, create_engine  # noqa: E402

import orgmirror.models  # noqa: E402,F401
from orgmirror.integrations.github.github import GitHub, InstallationContext  # noqa: E402
from orgmirror.llms.llm_factory import llm  # noqa: E402
from orgmirror.llms.llm_interface import LLMInterface  # noqa: E402
from orgmirror.services.analyzer import PullRequestAnalyzer  # noqa: E402
from orgmirror.services.mirror_store import MirrorStore  # noqa: E402
from orgmirror.services.reconciler import Reconciler  # noqa: E402


@pytest.fixture(autouse=True)
def mock_llm_providers():
    """
    Runs for every test so that no real LLM client is ever created: both
    provider classes are patched where the factory looks them up and the
    factory's cached instance is dropped before and after the test.
    """
    llm.cache_clear()
    with patch("orgmirror.llms.llm_factory.LiteLLMProvider", autospec=True) as litellm_cls, patch(
        "orgmirror.llms.llm_factory.Gemini", autospec=True
    ):
        litellm_cls.return_value.complete.return_value = "{}"
        yield litellm_cls
    llm.cache_clear()


@pytest.fixture
def engine():
    """A fresh in-memory SQLite database per test."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture
def store(engine):
    return MirrorStore(engine)


@pytest.fixture
def fake_llm():
    return MagicMock(spec=LLMInterface)


@pytest.fixture
def analyzer(fake_llm):
    return PullRequestAnalyzer(llm_provider=fake_llm)


@pytest.fixture
def github():
    gateway = MagicMock(spec=GitHub)
    gateway.bot_login = "orgmirror[bot]"
    gateway.get_pull_request_template.return_value = None
    return gateway


@pytest.fixture
def ctx(github):
    return InstallationContext(installation_id=1, owner="acme", github=github)


@pytest.fixture
def notifier():
    return MagicMock(return_value=True)


@pytest.fixture
def reconciler(store, analyzer, notifier):
    return Reconciler(
        store,
        analyzer,
        review_comments=True,
        rewrite_description=True,
        batch_size=3,
        batch_delay=0,
        settle_seconds=0,
        notifier=notifier,
        sleep=lambda seconds: None,
    )
