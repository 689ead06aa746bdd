"""Shared test fixtures."""
from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.core.security import create_access_token
from app.database import Base, get_db
from app.models.lead import InboundLead, PredictionLead, PredictionList, Webhook
from app.models.order import Order, OrderSource
from app.models.product import Product
from app.models.user import User, UserRole
from app.services.stock_ledger_service import StockLedgerService


@pytest.fixture
async def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(session_factory):
    """Session used by service-level tests and fixture factories."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def client(session_factory):
    """HTTP client against the app with get_db routed to the test database.

    Each request gets its own session, like production.
    """
    from app.main import app

    async def _get_test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _get_test_db
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


# ==================== FACTORIES ====================

@pytest.fixture
def make_user(db_session):
    """Factory fixture: a committed user holding the given roles."""
    counter = {"n": 0}

    async def _make(*roles, full_name=None, is_active=True):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=f"user{n}@callcenter.test",
            full_name=full_name or f"User {n}",
            is_active=is_active,
            user_roles=[UserRole(role=r) for r in roles],
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}
    return _headers


@pytest.fixture
def make_product(db_session):
    """Factory fixture: a product whose opening stock goes through the ledger."""

    async def _make(stock=0, name="Argan Oil 100ml", price="25.00"):
        product = Product(name=name, price=Decimal(price), stock_quantity=0)
        db_session.add(product)
        await db_session.flush()
        if stock:
            await StockLedgerService(db_session).restock(product.id, stock, notes="opening stock")
        await db_session.commit()
        return product

    return _make


@pytest.fixture
def make_order(db_session):
    """Factory fixture: an order row written directly, bypassing the engine."""
    counter = {"n": 0}

    async def _make(status="pending", complete=True, product=None, quantity=1, **fields):
        counter["n"] += 1
        values = dict(
            display_id=f"TST-{counter['n']:05d}",
            product_id=product.id if product else None,
            product_name=product.name if product else "Free text product",
            quantity=quantity,
            price=Decimal("25.00"),
            customer_name="Amina Benali" if complete else "",
            customer_phone="0612345678" if complete else "",
            customer_city="Casablanca" if complete else None,
            customer_address="12 Rue des Fleurs" if complete else None,
            status=status,
            source_type=OrderSource.MANUAL.value,
        )
        values.update(fields)
        order = Order(**values)
        db_session.add(order)
        await db_session.commit()
        return order

    return _make


@pytest.fixture
def make_inbound_order(db_session, make_order):
    """Factory fixture: an inbound lead and its paired order."""

    async def _make(status="pending", lead_status="pending", **fields):
        lead = InboundLead(name="Youssef", phone="0700000000", status=lead_status)
        db_session.add(lead)
        await db_session.flush()
        order = await make_order(
            status=status,
            source_type=OrderSource.INBOUND_LEAD.value,
            inbound_lead_id=lead.id,
            **fields,
        )
        return lead, order

    return _make


@pytest.fixture
def make_prediction_list(db_session):
    """Factory fixture: a prediction list with n leads."""

    async def _make(n=1, **lead_fields):
        prediction_list = PredictionList(name="October campaign", total_records=n)
        db_session.add(prediction_list)
        await db_session.flush()
        leads = []
        for i in range(n):
            values = dict(
                list_id=prediction_list.id,
                name=f"Lead {i + 1}",
                telephone=f"06000000{i:02d}",
                address="5 Avenue Hassan II",
                city="Rabat",
                product="Argan Oil 100ml",
                quantity=1,
                price=Decimal("25.00"),
            )
            values.update(lead_fields)
            lead = PredictionLead(**values)
            db_session.add(lead)
            leads.append(lead)
        await db_session.commit()
        return prediction_list, leads

    return _make


@pytest.fixture
def make_webhook(db_session):
    async def _make(slug="summer-promo", product_name="Argan Oil 100ml", status="active"):
        webhook = Webhook(slug=slug, product_name=product_name, status=status)
        db_session.add(webhook)
        await db_session.commit()
        return webhook

    return _make
