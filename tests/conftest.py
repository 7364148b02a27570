"""Shared test fixtures."""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quickpay.engine.inputs import TerminalPrompter
from quickpay.models.payment import Base


class ScriptedTerminal:
    """Feeds canned answers to a TerminalPrompter and captures everything it writes."""

    def __init__(self, answers=(), secrets=()):
        self.answers = list(answers)
        self.secrets = list(secrets)
        self.prompts: list[str] = []
        self.secret_prompts: list[str] = []
        self.output: list[str] = []

    def read(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)

    def read_secret(self, prompt: str) -> str:
        self.secret_prompts.append(prompt)
        if not self.secrets:
            raise EOFError
        return self.secrets.pop(0)

    def write(self, text: str) -> None:
        self.output.append(text)

    @property
    def prompter(self) -> TerminalPrompter:
        return TerminalPrompter(read=self.read, read_secret=self.read_secret, write=self.write)


@pytest.fixture
def terminal():
    """Factory: terminal(*answers, secrets=[...]) -> ScriptedTerminal."""

    def make(*answers, secrets=()):
        return ScriptedTerminal(answers, secrets)

    return make


@pytest_asyncio.fixture
async def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def no_sleep(monkeypatch):
    """Make retry backoff and status polling return immediately."""
    sleeps: list[float] = []

    async def fake_sleep(delay):
        sleeps.append(delay)

    monkeypatch.setattr("quickpay.engine.retry.asyncio.sleep", fake_sleep)
    monkeypatch.setattr("quickpay.engine.orchestrator.asyncio.sleep", fake_sleep)
    return sleeps
