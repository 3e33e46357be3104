"""Seller marketplace use cases: draft, activation transaction, status."""

import uuid

import pytest

from storefront.core.exceptions import (
    MarketplaceAlreadyExists,
    MarketplaceDoesNotExist,
    MarketplaceMustHaveTokens,
    MarketplaceWasConfirmed,
    NetworkMarketplaceDoesNotExist,
    PendingMarketplaceHasPendingTransaction,
    SellerMarketplaceDoesNotHaveOwnerWalletAddress,
    TransactionHashAlreadyExists,
    UseCaseValidationError,
    UserDoesNotExist,
)
from storefront.services import marketplace_service
from storefront.services.status_service import OwnerStatus

HASH = "0x" + "12" * 32


async def test_create_draft_copies_network_tokens(db, make_user, make_network):
    seller, _ = await make_user()
    network_marketplace = await make_network()

    marketplace = await marketplace_service.create_draft_marketplace(db, seller.id, network_marketplace.id)

    assert marketplace.seller_id == seller.id
    assert marketplace.network_id == network_marketplace.network_id
    assert marketplace.smart_contract_address == ""
    assert [t.network_marketplace_token_id for t in marketplace.tokens] == [
        t.id for t in network_marketplace.tokens
    ]
    status = await marketplace_service.get_marketplace_status(db, seller.id, marketplace.id)
    assert status is OwnerStatus.DRAFT


async def test_create_draft_returns_the_existing_draft(db, make_user, make_network):
    seller, _ = await make_user()
    network_marketplace = await make_network()

    first = await marketplace_service.create_draft_marketplace(db, seller.id, network_marketplace.id)
    second = await marketplace_service.create_draft_marketplace(db, seller.id, network_marketplace.id)

    assert first.id == second.id


async def test_create_draft_rejects_when_marketplace_is_already_active(
    db, make_user, make_network, make_seller_marketplace
):
    seller, _ = await make_user()
    network_marketplace = await make_network()
    await make_seller_marketplace(seller.id, network_marketplace)

    with pytest.raises(MarketplaceAlreadyExists):
        await marketplace_service.create_draft_marketplace(db, seller.id, network_marketplace.id)


async def test_create_draft_for_unknown_network_marketplace(db, make_user):
    seller, _ = await make_user()
    with pytest.raises(NetworkMarketplaceDoesNotExist):
        await marketplace_service.create_draft_marketplace(db, seller.id, str(uuid.uuid4()))


async def test_create_draft_for_unknown_user(db, make_network):
    network_marketplace = await make_network()
    with pytest.raises(UserDoesNotExist):
        await marketplace_service.create_draft_marketplace(db, str(uuid.uuid4()), network_marketplace.id)


async def test_add_transaction_moves_draft_to_awaiting_confirmation(db, make_user, make_network):
    seller, _ = await make_user()
    marketplace = await marketplace_service.create_draft_marketplace(db, seller.id, (await make_network()).id)

    transaction = await marketplace_service.add_marketplace_transaction(
        db, seller.id, marketplace.id, "  " + HASH.upper().replace("0X", "0x") + " "
    )

    assert transaction.hash == HASH
    status = await marketplace_service.get_marketplace_status(db, seller.id, marketplace.id)
    assert status is OwnerStatus.AWAITING_CONFIRMATION


async def test_add_transaction_while_one_is_in_flight(db, make_user, make_network):
    seller, _ = await make_user()
    marketplace = await marketplace_service.create_draft_marketplace(db, seller.id, (await make_network()).id)
    await marketplace_service.add_marketplace_transaction(db, seller.id, marketplace.id, HASH)

    with pytest.raises(PendingMarketplaceHasPendingTransaction):
        await marketplace_service.add_marketplace_transaction(db, seller.id, marketplace.id, "0x" + "34" * 32)


async def test_add_transaction_to_confirmed_marketplace(db, make_user, make_network, make_seller_marketplace):
    seller, _ = await make_user()
    marketplace = await make_seller_marketplace(seller.id, await make_network())

    with pytest.raises(MarketplaceWasConfirmed):
        await marketplace_service.add_marketplace_transaction(db, seller.id, marketplace.id, HASH)


async def test_add_transaction_reusing_a_hash(db, make_user, make_network):
    seller, _ = await make_user()
    other, _ = await make_user()
    network_marketplace = await make_network()
    mine = await marketplace_service.create_draft_marketplace(db, seller.id, network_marketplace.id)
    theirs = await marketplace_service.create_draft_marketplace(db, other.id, network_marketplace.id)
    await marketplace_service.add_marketplace_transaction(db, seller.id, mine.id, HASH)
    other_id, theirs_id = other.id, theirs.id

    with pytest.raises(TransactionHashAlreadyExists):
        await marketplace_service.add_marketplace_transaction(db, other_id, theirs_id, HASH)

    status = await marketplace_service.get_marketplace_status(db, other_id, theirs_id)
    assert status is OwnerStatus.DRAFT


async def test_add_transaction_rejects_non_hex_hash(db, make_user, make_network):
    seller, _ = await make_user()
    marketplace = await marketplace_service.create_draft_marketplace(db, seller.id, (await make_network()).id)

    with pytest.raises(UseCaseValidationError) as exc_info:
        await marketplace_service.add_marketplace_transaction(db, seller.id, marketplace.id, "hello")
    assert exc_info.value.errors == ["transaction_hash: Must be a hexadecimal value and start with 0x"]


async def test_marketplace_of_another_seller_is_invisible(db, make_user, make_network):
    seller, _ = await make_user()
    stranger, _ = await make_user()
    marketplace = await marketplace_service.create_draft_marketplace(db, seller.id, (await make_network()).id)

    with pytest.raises(MarketplaceDoesNotExist):
        await marketplace_service.get_marketplace_status(db, stranger.id, marketplace.id)


# ---------------------------------------------------------------------------
# Listings
# ---------------------------------------------------------------------------

async def test_get_marketplaces(db, make_user, make_network, make_seller_marketplace):
    seller, _ = await make_user()
    network_marketplace = await make_network(commission_rate=5)
    confirmed = await make_seller_marketplace(seller.id, network_marketplace)
    draft = await marketplace_service.create_draft_marketplace(db, seller.id, (await make_network()).id)

    marketplaces = await marketplace_service.get_marketplaces(db, seller.id)

    by_id = {marketplace.id: marketplace for marketplace in marketplaces}
    assert set(by_id) == {confirmed.id, draft.id}
    assert by_id[confirmed.id].status == "confirmed"
    assert by_id[confirmed.id].network_title == "Chain 97"
    assert by_id[confirmed.id].commission_rate == 5
    assert by_id[confirmed.id].smart_contract_address == confirmed.smart_contract_address
    assert by_id[confirmed.id].tokens == ("tBNB",)
    assert by_id[draft.id].status == "draft"
    assert by_id[draft.id].smart_contract_address is None
    assert by_id[draft.id].owner_wallet_address is None


async def test_confirmed_marketplace_without_owner_wallet(db, make_user, make_network, make_seller_marketplace):
    seller, _ = await make_user()
    await make_seller_marketplace(seller.id, await make_network(), owner_wallet_address="")

    with pytest.raises(SellerMarketplaceDoesNotHaveOwnerWalletAddress):
        await marketplace_service.get_marketplaces(db, seller.id)


async def test_marketplace_without_tokens(db, make_user, make_network, make_seller_marketplace):
    seller, _ = await make_user()
    marketplace = await make_seller_marketplace(seller.id, await make_network())
    for token in marketplace.tokens:
        await db.delete(token)
    await db.commit()

    with pytest.raises(MarketplaceMustHaveTokens):
        await marketplace_service.get_marketplaces(db, seller.id)


async def test_get_marketplace_tokens_skips_unconfirmed(db, make_user, make_network, make_seller_marketplace):
    seller, _ = await make_user()
    confirmed = await make_seller_marketplace(seller.id, await make_network(symbol="USDT", decimals=6))
    await make_seller_marketplace(seller.id, await make_network(), confirmed=False)

    tokens = await marketplace_service.get_marketplace_tokens(db, seller.id)

    assert [(token.id, token.display_name) for token in tokens] == [
        (confirmed.tokens[0].id, "Chain 97 - USDT")
    ]
