import itertools
from datetime import UTC, datetime, timedelta

import pytest_asyncio
from sqlalchemy import func, select

from app.database.database import build_engine, build_session_factory
from app.database.models import (
    Base,
    Node,
    Subscription,
    SubscriptionPlan,
    SubscriptionStatus,
    User,
)


_counter = itertools.count(1)


@pytest_asyncio.fixture
async def engine(tmp_path):
    """File-backed SQLite so that concurrent sessions get separate connections."""
    engine = build_engine(f'sqlite+aiosqlite:///{tmp_path / "billing.sqlite"}', echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_session_factory(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def make_user(session_factory):
    async def _make(*, balance_kopeks: int = 0, status: str = 'active') -> int:
        n = next(_counter)
        async with session_factory() as session:
            user = User(
                email=f'user{n}@example.com',
                username=f'user{n}',
                balance_kopeks=balance_kopeks,
                status=status,
            )
            session.add(user)
            await session.commit()
            return user.id

    return _make


@pytest_asyncio.fixture
async def make_plan(session_factory):
    async def _make(
        *,
        price_kopeks: int = 4990,
        traffic_limit_bytes: int = 200 * 1024**3,
        duration_days: int = 30,
        is_active: bool = True,
        name: str = 'Standard',
    ) -> int:
        async with session_factory() as session:
            plan = SubscriptionPlan(
                name=name,
                price_kopeks=price_kopeks,
                traffic_limit_bytes=traffic_limit_bytes,
                duration_days=duration_days,
                features=['all-nodes'],
                is_active=is_active,
            )
            session.add(plan)
            await session.commit()
            return plan.id

    return _make


@pytest_asyncio.fixture
async def make_node(session_factory):
    async def _make(
        *,
        name: str | None = None,
        location: str = 'Frankfurt',
        protocol: str = 'vless',
        is_active: bool = True,
    ) -> int:
        async with session_factory() as session:
            node = Node(
                name=name or f'node-{next(_counter)}',
                location=location,
                protocol=protocol,
                server_address='10.0.0.1',
                server_port=443,
                is_active=is_active,
            )
            session.add(node)
            await session.commit()
            return node.id

    return _make


@pytest_asyncio.fixture
async def make_subscription(session_factory):
    async def _make(
        user_id: int,
        *,
        plan_id: int | None = None,
        price_kopeks: int = 4990,
        traffic_limit_bytes: int = 1000,
        traffic_used_bytes: int = 0,
        status: str = SubscriptionStatus.ACTIVE.value,
        expired_at: datetime | None = None,
    ) -> int:
        now = datetime.now(UTC)
        async with session_factory() as session:
            subscription = Subscription(
                user_id=user_id,
                plan_id=plan_id,
                name='Standard',
                price_kopeks=price_kopeks,
                duration_days=30,
                traffic_limit_bytes=traffic_limit_bytes,
                traffic_used_bytes=traffic_used_bytes,
                status=status,
                started_at=now,
                expired_at=expired_at or now + timedelta(days=30),
                created_at=now,
            )
            session.add(subscription)
            await session.commit()
            return subscription.id

    return _make


@pytest_asyncio.fixture
async def fetch(session_factory):
    """Load a row through a fresh session, bypassing any identity map in the test."""

    async def _fetch(model, pk):
        async with session_factory() as session:
            return await session.get(model, pk)

    return _fetch


@pytest_asyncio.fixture
async def count_rows(session_factory):
    async def _count(model, **filters) -> int:
        query = select(func.count()).select_from(model)
        for column, value in filters.items():
            query = query.where(getattr(model, column) == value)
        async with session_factory() as session:
            return int((await session.execute(query)).scalar())

    return _count


@pytest_asyncio.fixture
async def load_all(session_factory):
    async def _load(model, **filters) -> list:
        query = select(model)
        for column, value in filters.items():
            query = query.where(getattr(model, column) == value)
        async with session_factory() as session:
            return list((await session.execute(query.order_by(model.id))).scalars().all())

    return _load

