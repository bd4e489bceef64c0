import os
import re
import tempfile

_DB_DIR = tempfile.mkdtemp(prefix="vapeshop-tests-")

# must be in place before anything from vapeshop is imported
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["JWT_SECRET"] = "test-secret-key-for-jwt-signing-only"
os.environ["TELEGRAM_BOT_TOKEN"] = "123456:TEST-BOT-TOKEN"
os.environ["DB_CREATE_ALL"] = "false"
os.environ["CODE_CLEANUP_INTERVAL_SECONDS"] = "3600"

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from vapeshop.auth.dependencies import get_notifier
from vapeshop.db.connection import async_engine, async_session
from vapeshop.db.schema import create_all_tables, drop_all_tables
from vapeshop.main import app
from vapeshop.user.repository import UserDirectory

url_prefix = "/api/v1"

CODE_RE = re.compile(r"Ваш код: (\d{6})")


class FakeNotifier:
    """Records outgoing messages instead of calling the Telegram Bot API."""

    def __init__(self, result=True, raises=None):
        self.result = result
        self.raises = raises
        self.sent = []
        self.bot_token = "123456:TEST-BOT-TOKEN"

    @property
    def configured(self):
        return True

    async def send(self, chat_id, text):
        self.sent.append((chat_id, text))
        if self.raises is not None:
            raise self.raises
        return self.result

    async def send_welcome(self, chat_id, first_name):
        return await self.send(chat_id, f"welcome {first_name}")

    async def get_bot_info(self):
        return {"id": 123456, "username": "medusa_test_bot", "first_name": "Medusa"}

    async def get_profile_photo(self, telegram_id):
        return None

    async def download_file(self, file_path):
        return None

    async def aclose(self):
        pass

    def last_code(self):
        for _, text in reversed(self.sent):
            m = CODE_RE.search(text)
            if m:
                return m.group(1)
        return None


@pytest.fixture(autouse=True)
async def fresh_db():
    await drop_all_tables()
    await create_all_tables()
    yield
    await drop_all_tables()
    # pooled connections belong to this test's event loop
    await async_engine.dispose()


@pytest.fixture
async def db_session():

    async with async_session() as session:
        yield session


@pytest.fixture
def session_maker():
    return async_session


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
async def ac_client(notifier):
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        async with LifespanManager(app):
            async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
                yield ac
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def notifier_factory():
    return FakeNotifier


@pytest.fixture
def make_user(session_maker):
    async def _make(**fields):
        async with session_maker() as session:
            return await UserDirectory(session).create(**fields)

    return _make
