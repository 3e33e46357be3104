"""Shared test fixtures for the storefront test suite.

Uses an in-memory SQLite database with StaticPool so all sessions share the
same connection (committed data is visible across sessions). Chain access
goes through in-memory fakes registered for ``CHAIN_ID``.
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from storefront.blockchain.registry import get_chain_registry
from storefront.database import Base, get_db
from storefront.main import app
from storefront.models import *  # noqa: ensure all models are loaded for create_all
from storefront.tests.fakes import CHAIN_ID, OWNER_WALLET, FakeChain


# ---------------------------------------------------------------------------
# In-memory SQLite test engine (shared via StaticPool)
# ---------------------------------------------------------------------------

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)
TestSession = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@event.listens_for(test_engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA busy_timeout=5000")
    cursor.close()


# ---------------------------------------------------------------------------
# Auto-use: create/drop tables for every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after. Also clear global state."""
    from storefront.blockchain import registry
    from storefront.services.chain_sync_service import reset_scope_locks

    reset_scope_locks()
    registry._registry = None

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Chain fakes
# ---------------------------------------------------------------------------

@pytest.fixture
def chain():
    """Fake reader and contract clients registered for CHAIN_ID."""
    return FakeChain()


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def db():
    """Yield a fresh AsyncSession for direct service-layer tests."""
    async with TestSession() as session:
        yield session


@pytest.fixture
def fresh():
    """Load an entity in a new session, bypassing ``db``'s identity map."""
    async def _load(model, entity_id: str):
        async with TestSession() as session:
            return await session.get(model, entity_id)
    return _load


@pytest.fixture
async def client(chain):
    """httpx AsyncClient wired to the FastAPI app with test DB and fake chain."""
    import httpx

    async def _override_get_db():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_chain_registry] = lambda: chain.registry

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

def _new_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def tx_hash():
    """Return a callable building a well-formed 32-byte hash from an int."""
    def _build(n: int) -> str:
        return "0x" + format(n, "064x")
    return _build


@pytest.fixture
def auth_header():
    """Return a callable that builds an Authorization header from a JWT."""
    def _build(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}
    return _build


@pytest.fixture
def make_user(db: AsyncSession):
    """Factory fixture: create a User and return (user, jwt_token)."""
    from storefront.core.auth import create_access_token
    from storefront.models.user import User

    async def _make(username: str = None):
        username = username or f"user-{_new_id()[:8]}"
        user = User(id=_new_id(), username=username, name=username.title())
        db.add(user)
        await db.commit()
        await db.refresh(user)
        token = create_access_token(user.id, user.username)
        return user, token

    return _make


@pytest.fixture
def make_network(db: AsyncSession):
    """Factory fixture: Network + NetworkMarketplace with one payment token.

    Returns the NetworkMarketplace; ``network`` and ``tokens`` are loaded.
    """
    from storefront.models.network import Network, NetworkMarketplace, NetworkMarketplaceToken

    async def _make(
        chain_id: int = CHAIN_ID,
        commission_rate: int = 3,
        symbol: str = "tBNB",
        decimals: int = 18,
        token_address: str = None,
        contract_address: str = "0x" + "a1" * 20,
    ):
        network = (
            await db.execute(select(Network).where(Network.chain_id == chain_id))
        ).scalar_one_or_none()
        if network is None:
            network = Network(id=_new_id(), chain_id=chain_id, title=f"Chain {chain_id}")
            db.add(network)
        network_id = network.id

        network_marketplace = NetworkMarketplace(
            id=_new_id(),
            network_id=network_id,
            smart_contract_address=contract_address,
            commission_rate=commission_rate,
        )
        db.add(network_marketplace)
        db.add(
            NetworkMarketplaceToken(
                id=_new_id(),
                network_marketplace_id=network_marketplace.id,
                smart_contract_address=token_address,
                symbol=symbol,
                decimals=decimals,
            )
        )
        await db.commit()
        return await db.get(NetworkMarketplace, network_marketplace.id, populate_existing=True)

    return _make


@pytest.fixture
def make_seller_marketplace(db: AsyncSession):
    """Factory fixture: SellerMarketplace with every network token, confirmed by default."""
    from storefront.models.seller_marketplace import (
        SellerMarketplace,
        SellerMarketplaceToken,
        SellerMarketplaceTransaction,
    )

    async def _make(
        seller_id: str,
        network_marketplace,
        *,
        confirmed: bool = True,
        smart_contract_address: str = "0x" + "b2" * 20,
        owner_wallet_address: str = OWNER_WALLET,
        tx_hash: str = None,
    ):
        now = datetime.now(timezone.utc)
        marketplace = SellerMarketplace(
            id=_new_id(),
            seller_id=seller_id,
            network_id=network_marketplace.network_id,
            network_marketplace_id=network_marketplace.id,
            smart_contract_address=smart_contract_address if confirmed else "",
            owner_wallet_address=owner_wallet_address if confirmed else "",
            pending_at=now if confirmed else None,
            confirmed_at=now if confirmed else None,
        )
        db.add(marketplace)
        for token in network_marketplace.tokens:
            db.add(
                SellerMarketplaceToken(
                    id=_new_id(),
                    seller_marketplace_id=marketplace.id,
                    network_marketplace_token_id=token.id,
                )
            )
        if confirmed:
            db.add(
                SellerMarketplaceTransaction(
                    seller_id=seller_id,
                    seller_marketplace_id=marketplace.id,
                    network_id=network_marketplace.network_id,
                    hash=tx_hash or "0x" + _new_id().replace("-", "").ljust(64, "f"),
                    sender_address=owner_wallet_address,
                    gas=21000,
                    transaction_fee="0.000021",
                    confirmed_at=now,
                )
            )
        await db.commit()
        return await db.get(SellerMarketplace, marketplace.id, populate_existing=True)

    return _make


@pytest.fixture
def make_category(db: AsyncSession):
    """Factory fixture: ProductCategory with a unique slug."""
    from storefront.models.product import ProductCategory

    async def _make(title: str = "E-books"):
        category = ProductCategory(id=_new_id(), slug=f"category-{_new_id()[:8]}", title=title)
        db.add(category)
        await db.commit()
        return category

    return _make


@pytest.fixture
def make_product(db: AsyncSession, make_category):
    """Factory fixture: Product priced in the marketplace's first token."""
    from storefront.models.product import Product

    async def _make(
        seller_marketplace,
        price: str = "1.0",
        content: str = "secret",
        published: bool = True,
        *,
        title: str = "Test product",
        category=None,
    ):
        category = category or await make_category()
        marketplace_token = seller_marketplace.tokens[0]
        network_token = marketplace_token.network_marketplace_token
        product = Product(
            id=_new_id(),
            seller_id=seller_marketplace.seller_id,
            seller_marketplace_token_id=marketplace_token.id,
            category_id=category.id,
            slug=f"test-product-{_new_id()[:8]}",
            title=title,
            content=content,
            price=price,
            price_decimals=network_token.decimals,
            price_formatted=f"{price} {network_token.symbol}",
            published_at=datetime.now(timezone.utc) if published else None,
        )
        db.add(product)
        await db.commit()
        return await db.get(Product, product.id, populate_existing=True)

    return _make


@pytest.fixture
def make_order(db: AsyncSession):
    """Factory fixture: ProductOrder in draft, optionally with one unresolved payment."""
    from storefront.models.product_order import ProductOrder, ProductOrderTransaction

    async def _make(buyer_id: str, product, *, tx_hash: str = None, **fields):
        seller_marketplace = product.seller_marketplace_token.seller_marketplace
        order = ProductOrder(
            id=_new_id(),
            buyer_id=buyer_id,
            product_id=product.id,
            seller_id=product.seller_id,
            seller_marketplace_id=seller_marketplace.id,
            seller_marketplace_token_id=product.seller_marketplace_token_id,
            price=product.price,
            price_decimals=product.price_decimals,
            price_formatted=product.price_formatted,
            seller_wallet_address=seller_marketplace.owner_wallet_address,
            **fields,
        )
        if tx_hash is not None:
            order.pending_at = order.pending_at or datetime.now(timezone.utc)
        db.add(order)
        if tx_hash is not None:
            db.add(
                ProductOrderTransaction(
                    product_order_id=order.id,
                    network_id=seller_marketplace.network_id,
                    hash=tx_hash,
                )
            )
        await db.commit()
        return await db.get(ProductOrder, order.id, populate_existing=True)

    return _make


@pytest.fixture
def make_sale(db: AsyncSession, make_user, make_order):
    """Factory fixture: a confirmed order of ``product`` with its ProductSale."""
    from storefront.models.product_order import ProductOrderTransaction, ProductSale

    async def _make(product, seller_income: str = "0.97", platform_income: str = "0.03"):
        buyer, _ = await make_user()
        now = datetime.now(timezone.utc)
        order = await make_order(buyer.id, product, pending_at=now, confirmed_at=now)
        seller_marketplace = order.seller_marketplace
        transaction = ProductOrderTransaction(
            id=_new_id(),
            product_order_id=order.id,
            network_id=seller_marketplace.network_id,
            hash="0x" + _new_id().replace("-", "").ljust(64, "e"),
            gas=21000,
            transaction_fee="0.000021",
            confirmed_at=now,
        )
        db.add(transaction)
        sale = ProductSale(
            id=_new_id(),
            seller_id=product.seller_id,
            product_id=product.id,
            product_order_transaction_id=transaction.id,
            seller_marketplace_id=seller_marketplace.id,
            seller_marketplace_token_id=order.seller_marketplace_token_id,
            seller_income=seller_income,
            seller_income_formatted=f"{seller_income} tBNB",
            platform_income=platform_income,
            platform_income_formatted=f"{platform_income} tBNB",
            decimals=product.price_decimals,
        )
        db.add(sale)
        await db.commit()
        return sale

    return _make


@pytest.fixture
def make_payout(db: AsyncSession):
    """Factory fixture: SellerPayout for the marketplace's first token."""
    from storefront.models.seller_payout import SellerPayout, SellerPayoutTransaction

    async def _make(seller_marketplace, amount: str = "0.97", *, tx_hash: str = None, **fields):
        marketplace_token = seller_marketplace.tokens[0]
        network_token = marketplace_token.network_marketplace_token
        payout = SellerPayout(
            id=_new_id(),
            seller_id=seller_marketplace.seller_id,
            seller_marketplace_id=seller_marketplace.id,
            seller_marketplace_token_id=marketplace_token.id,
            amount=amount,
            decimals=network_token.decimals,
            amount_formatted=f"{amount} {network_token.symbol}",
            **fields,
        )
        if tx_hash is not None:
            payout.pending_at = payout.pending_at or datetime.now(timezone.utc)
        db.add(payout)
        if tx_hash is not None:
            db.add(
                SellerPayoutTransaction(
                    seller_payout_id=payout.id,
                    network_id=seller_marketplace.network_id,
                    hash=tx_hash,
                )
            )
        await db.commit()
        return await db.get(SellerPayout, payout.id, populate_existing=True)

    return _make
