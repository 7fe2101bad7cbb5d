import os

os.environ.setdefault("ENV", "dev")
os.environ.setdefault("PAYMENT_GATEWAY", "fake")

from datetime import timedelta
from typing import Optional

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from storefront.common.utils import now
from storefront.db.connection import build_engine
from storefront.db.dependencies import get_session
from storefront.main import create_app
from tests.helpers import RecordingNotifier
from storefront.payments.fake_gateway import FakePaymentGateway
from storefront.schema.full_schema import DiscountType, Product, PromoCode

@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway():
    return FakePaymentGateway()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(session_factory, gateway, notifier):
    app = create_app(payment_gateway=gateway, notifier=notifier)

    async def _session_override():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    return app


@pytest.fixture
async def ac_client(app):
    async with LifespanManager(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac


@pytest.fixture
def make_product(session_factory):
    async def _make(name: str, price: int, stock_qty: int, is_active: bool = True) -> int:
        async with session_factory() as session:
            product = Product(name=name, price=price, stock_qty=stock_qty, is_active=is_active)
            session.add(product)
            await session.commit()
            return product.id
    return _make


@pytest.fixture
def make_promo(session_factory):
    async def _make(code: str, discount_type: DiscountType, discount_value: int, *, min_order_value=None,
                    max_uses=None, usage_count: int = 0, is_active: bool = True,
                    starts_in: Optional[timedelta] = None, expires_in: Optional[timedelta] = None) -> int:
        async with session_factory() as session:
            promo = PromoCode(
                code=code,
                discount_type=discount_type.value,
                discount_value=discount_value,
                min_order_value=min_order_value,
                max_uses=max_uses,
                usage_count=usage_count,
                is_active=is_active,
                starts_at=now() + starts_in if starts_in is not None else None,
                expires_at=now() + expires_in if expires_in is not None else None,
            )
            session.add(promo)
            await session.commit()
            return promo.id
    return _make


@pytest.fixture
def db_scalar(session_factory):
    async def _scalar(stmt):
        async with session_factory() as session:
            return (await session.execute(stmt)).scalar_one_or_none()
    return _scalar
