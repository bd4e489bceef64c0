import logging
from datetime import datetime, timedelta, timezone
import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from vapeshop.auth.repository import PhoneCodeStore
from vapeshop.auth.services import PhoneAuthError, PhoneAuthService
from vapeshop.schema.full_schema import PhoneAuthCode
from vapeshop.user.repository import UserDirectory

PHONE = "79991234567"
T0 = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, at):
        self.at = at

    def __call__(self):
        return self.at


def build_service(session, notifier, clock=None):
    return PhoneAuthService(PhoneCodeStore(session), UserDirectory(session), notifier,
                            code_ttl_minutes=10, clock=clock or FixedClock(T0))


async def count_codes(session_maker, **filters):
    async with session_maker() as session:
        stmt = select(func.count()).select_from(PhoneAuthCode)
        for name, value in filters.items():
            stmt = stmt.where(getattr(PhoneAuthCode, name) == value)
        res = await session.execute(stmt)
        return res.scalar_one()


@pytest.fixture
async def user(make_user):
    return await make_user(phone="+7 (999) 123-45-67", telegram_id=424242, first_name="Ivan")


async def test_request_then_verify_end_to_end(user, db_session, notifier):
    service = build_service(db_session, notifier)

    result = await service.request_code("+7 999 123 45 67")
    assert result.ok
    assert result.expires_in == 10
    assert result.error is None

    assert len(notifier.sent) == 1
    chat_id, text = notifier.sent[0]
    assert chat_id == 424242
    assert "10 минут" in text
    code = notifier.last_code()
    assert code is not None and len(code) == 6

    verified = await service.verify_code("8 (999) 123-45-67", code)
    assert verified.ok
    assert verified.user.id == user.id
    assert verified.user.last_login is not None

    again = await service.verify_code("+7 999 123 45 67", code)
    assert not again.ok
    assert again.error is PhoneAuthError.INVALID_OR_EXPIRED_CODE


async def test_unknown_phone_creates_nothing_and_sends_nothing(db_session, notifier, session_maker):
    service = build_service(db_session, notifier)

    result = await service.request_code("+7 900 000 00 00")

    assert not result.ok
    assert result.error is PhoneAuthError.USER_NOT_FOUND
    assert notifier.sent == []
    assert await count_codes(session_maker) == 0


async def test_user_without_messaging_channel(make_user, db_session, notifier, session_maker):
    await make_user(phone="89995554433")
    service = build_service(db_session, notifier)

    result = await service.request_code("89995554433")

    assert result.error is PhoneAuthError.NO_MESSAGING_CHANNEL
    assert notifier.sent == []
    assert await count_codes(session_maker) == 0


async def test_delivery_failure_removes_the_code(user, db_session, notifier_factory, session_maker):
    notifier = notifier_factory(result=False)
    service = build_service(db_session, notifier)

    result = await service.request_code(PHONE)

    assert result.error is PhoneAuthError.DELIVERY_FAILED
    code = notifier.last_code()
    assert code is not None
    assert await count_codes(session_maker) == 0

    verified = await service.verify_code(PHONE, code)
    assert verified.error is PhoneAuthError.INVALID_OR_EXPIRED_CODE


async def test_notifier_exception_is_a_delivery_failure(user, db_session, notifier_factory, session_maker):
    notifier = notifier_factory(raises=RuntimeError("telegram exploded"))
    service = build_service(db_session, notifier)

    result = await service.request_code(PHONE)

    assert result.error is PhoneAuthError.DELIVERY_FAILED
    assert await count_codes(session_maker) == 0


async def test_code_valid_just_before_expiry(user, session_maker, notifier):
    async with session_maker() as session:
        assert (await build_service(session, notifier, FixedClock(T0)).request_code(PHONE)).ok
    code = notifier.last_code()

    async with session_maker() as session:
        late = build_service(session, notifier, FixedClock(T0 + timedelta(minutes=9, seconds=59)))
        result = await late.verify_code(PHONE, code)

    assert result.ok


async def test_code_rejected_at_expiry(user, session_maker, notifier):
    async with session_maker() as session:
        assert (await build_service(session, notifier, FixedClock(T0)).request_code(PHONE)).ok
    code = notifier.last_code()

    async with session_maker() as session:
        at_expiry = build_service(session, notifier, FixedClock(T0 + timedelta(minutes=10)))
        result = await at_expiry.verify_code(PHONE, code)

    assert result.error is PhoneAuthError.INVALID_OR_EXPIRED_CODE


async def test_wrong_code_is_rejected(user, db_session, notifier):
    service = build_service(db_session, notifier)
    assert (await service.request_code(PHONE)).ok
    code = notifier.last_code()
    wrong = "100000" if code != "100000" else "100001"

    result = await service.verify_code(PHONE, wrong)

    assert result.error is PhoneAuthError.INVALID_OR_EXPIRED_CODE


async def test_code_is_bound_to_its_phone(user, make_user, db_session, notifier):
    await make_user(phone="79990001122", telegram_id=777)
    service = build_service(db_session, notifier)
    assert (await service.request_code(PHONE)).ok
    code = notifier.last_code()

    result = await service.verify_code("79990001122", code)

    assert result.error is PhoneAuthError.INVALID_OR_EXPIRED_CODE


async def test_only_one_of_two_interleaved_verifications_wins(user, session_maker, notifier):
    async with session_maker() as session:
        assert (await build_service(session, notifier).request_code(PHONE)).ok
    code = notifier.last_code()

    async with session_maker() as first, session_maker() as second:
        store_a, store_b = PhoneCodeStore(first), PhoneCodeStore(second)

        record_a = await store_a.find_valid(PHONE, code, T0)
        record_b = await store_b.find_valid(PHONE, code, T0)
        assert record_a is not None and record_b is not None
        assert record_a.id == record_b.id

        won_a = await store_a.mark_used(record_a, T0)
        won_b = await store_b.mark_used(record_b, T0)

    assert [won_a, won_b].count(True) == 1
    assert await count_codes(session_maker, used=True) == 1


async def test_previous_unexpired_code_stays_valid(user, db_session, notifier):
    service = build_service(db_session, notifier)
    assert (await service.request_code(PHONE)).ok
    first = notifier.last_code()
    assert (await service.request_code(PHONE)).ok
    second = notifier.last_code()

    assert (await service.verify_code(PHONE, first)).ok
    if second != first:
        assert (await service.verify_code(PHONE, second)).ok


async def test_request_clears_stale_codes_for_the_phone(user, db_session, notifier, session_maker):
    store = PhoneCodeStore(db_session)
    await store.create(PHONE, "111111", T0 - timedelta(minutes=1))
    await store.create("79990001122", "222222", T0 - timedelta(minutes=1))

    assert (await build_service(db_session, notifier).request_code(PHONE)).ok

    assert await count_codes(session_maker, phone=PHONE) == 1
    # other phones are left to the periodic sweep
    assert await count_codes(session_maker, phone="79990001122") == 1


class BrokenStore:
    async def _fail(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    create = find_valid = mark_used = delete_expired_or_used = delete_unused = _fail


async def test_storage_failure_on_request(user, db_session, notifier):
    service = PhoneAuthService(BrokenStore(), UserDirectory(db_session), notifier, clock=FixedClock(T0))

    result = await service.request_code(PHONE)

    assert result.error is PhoneAuthError.STORAGE_ERROR
    assert notifier.sent == []


async def test_storage_failure_on_verify(user, db_session, notifier):
    service = PhoneAuthService(BrokenStore(), UserDirectory(db_session), notifier, clock=FixedClock(T0))

    result = await service.verify_code(PHONE, "123456")

    assert result.error is PhoneAuthError.STORAGE_ERROR


async def test_code_never_logged(user, db_session, notifier, caplog):
    caplog.set_level(logging.DEBUG, logger="vapeshop")
    service = build_service(db_session, notifier)

    assert (await service.request_code(PHONE)).ok
    code = notifier.last_code()
    assert (await service.verify_code(PHONE, code)).ok

    assert caplog.records
    for record in caplog.records:
        assert code not in record.getMessage()
        assert getattr(record, "code", None) is None


class LastLoginFailingDirectory(UserDirectory):
    """Directory whose last_login write hits a database error at commit time."""

    async def touch_last_login(self, user, at):
        async def broken_commit():
            raise OperationalError("UPDATE users", {}, Exception("disk I/O error"))

        self.session.commit = broken_commit
        try:
            await super().touch_last_login(user, at)
        finally:
            del self.session.commit


async def test_last_login_failure_still_logs_in(user, db_session, notifier, session_maker):
    service = PhoneAuthService(PhoneCodeStore(db_session), LastLoginFailingDirectory(db_session), notifier,
                               code_ttl_minutes=10, clock=FixedClock(T0))
    assert (await service.request_code(PHONE)).ok
    code = notifier.last_code()

    result = await service.verify_code(PHONE, code)

    assert result.ok
    assert result.user.id == user.id
    assert result.user.first_name == "Ivan"
    assert result.user.last_login is None
    assert await count_codes(session_maker, used=True) == 1

    again = await service.verify_code(PHONE, code)
    assert again.error is PhoneAuthError.INVALID_OR_EXPIRED_CODE


async def test_undelivered_code_leaves_an_identical_earlier_code(user, db_session, notifier_factory,
                                                                 session_maker, monkeypatch):
    await PhoneCodeStore(db_session).create(PHONE, "555555", T0 + timedelta(minutes=5))
    monkeypatch.setattr("vapeshop.auth.services.generate_code", lambda: "555555")
    service = build_service(db_session, notifier_factory(result=False))

    result = await service.request_code(PHONE)

    assert result.error is PhoneAuthError.DELIVERY_FAILED
    assert await count_codes(session_maker, code="555555") == 1
    assert (await service.verify_code(PHONE, "555555")).ok
