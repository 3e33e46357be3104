"""Error taxonomy shared by every use case and reconciler.

Each error carries an ``ErrorKind``; the HTTP layer maps the kind to a
status code exactly once, in ``install_error_handlers``.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

from fastapi import HTTPException, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    CLIENT = "client"
    CONFLICT = "conflict"
    INTERNAL = "internal"
    VALIDATION = "validation"


_STATUS_BY_KIND = {
    ErrorKind.CLIENT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorKind.VALIDATION: 422,
}


class StorefrontError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL
    message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ClientError(StorefrontError):
    """The caller asked for something the business rules do not allow."""

    kind = ErrorKind.CLIENT


class ConflictError(ClientError):
    """Valid request, but the entity is in the wrong state for it."""

    kind = ErrorKind.CONFLICT


class InternalServerError(StorefrontError):
    """Persisted or on-chain state that should be unreachable was observed."""

    kind = ErrorKind.INTERNAL


class UseCaseValidationError(ClientError):
    kind = ErrorKind.VALIDATION

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class UnauthorizedError(HTTPException):
    def __init__(self, detail: str = "Invalid or missing authentication"):
        super().__init__(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


class UserDoesNotExist(ClientError):
    message = "User does not exist"


class NetworkDoesNotExist(ClientError):
    message = "Network does not exist"


class BlockchainClientDoesNotExist(InternalServerError):
    def __init__(self, network_chain_id: int):
        super().__init__(
            f"Blockchain client for network chain id {network_chain_id} does not exist"
        )


class BlockchainMarketplaceClientDoesNotExist(InternalServerError):
    def __init__(self, network_chain_id: int):
        super().__init__(
            f"Blockchain marketplace client for network chain id {network_chain_id} does not exist"
        )


class BlockchainSellerMarketplaceClientDoesNotExist(InternalServerError):
    def __init__(self, network_chain_id: int):
        super().__init__(
            "Blockchain seller marketplace client for network chain id "
            f"{network_chain_id} does not exist"
        )


class TransactionHashAlreadyExists(ConflictError):
    message = "Transaction hash was already submitted"


# -- status invariants ------------------------------------------------------
# Raised when persisted timestamps and the transaction history disagree.
# ``owner`` is "marketplace", "order" or "payout".


class StatusInvariantError(InternalServerError):
    template = "{owner} is in an inconsistent state"

    def __init__(self, owner: str):
        self.owner = owner
        super().__init__(self.template.format(owner=owner))


class DraftOwnerMustNotHaveTransactions(StatusInvariantError):
    template = "Draft {owner} must not have transactions"


class PendingOwnerMustHaveTransactions(StatusInvariantError):
    template = "Pending {owner} must have transactions"


class PendingOwnerMustNotHaveConfirmedTransactions(StatusInvariantError):
    template = "Pending {owner} must not have confirmed transactions"


class PendingOwnerHasSeveralUnresolvedTransactions(StatusInvariantError):
    template = "Pending {owner} has more than one unresolved transaction"


class ConfirmedOwnerDoesNotHaveConfirmedTransaction(StatusInvariantError):
    template = "Confirmed {owner} does not have exactly one confirmed transaction"


class CancelledOwnerMustNotHaveConfirmedTransactions(StatusInvariantError):
    template = "Cancelled {owner} must not have confirmed transactions"


class CancelledOwnerMustNotHavePendingTransactions(StatusInvariantError):
    template = "Cancelled {owner} must not have pending transactions"


class RefundedOwnerDoesNotHaveConfirmedTransaction(StatusInvariantError):
    template = "Refunded {owner} does not have exactly one confirmed transaction"


class OwnerHasConflictingTerminalStates(StatusInvariantError):
    template = "The {owner} is marked with more than one terminal state"


# -- reconciliation ---------------------------------------------------------


class NetworkMarketplaceDoesNotExist(ClientError):
    message = "Network marketplace does not exist"


class InvalidNetworkMarketplaceSmartContractAddress(InternalServerError):
    message = "Invalid network marketplace smart contract address"


class InvalidSellerMarketplaceSmartContractAddress(InternalServerError):
    message = "Invalid seller marketplace smart contract address"


class UnableToGetSellerMarketplaceFromBlockchainMarketplace(InternalServerError):
    message = "Unable to get seller marketplace from blockchain marketplace"


class SellerMarketplaceSmartContractAddressIsNotUnique(InternalServerError):
    def __init__(self, smart_contract_address: str):
        super().__init__(
            f"Seller marketplace smart contract address is not unique: {smart_contract_address}"
        )


class UnableToGetProductOrderFromSellerMarketplace(InternalServerError):
    message = "Unable to get product order from the smart contract"


class BlockchainProductOrderPaymentMethodMismatch(InternalServerError):
    def __init__(self, blockchain_payment_contract: str, expected_payment_contract: str):
        super().__init__(
            "Blockchain payment method mismatch. "
            f"Expected {expected_payment_contract}, got {blockchain_payment_contract}"
        )


class BlockchainProductOrderPriceMismatch(InternalServerError):
    def __init__(self, blockchain_price: int, expected_price: int):
        super().__init__(
            f"Blockchain price mismatch. Expected {expected_price}, got {blockchain_price}"
        )


class BlockchainPayoutOwnerWalletAddressMismatch(InternalServerError):
    def __init__(self, sender_address: str, owner_wallet_address: str):
        super().__init__(
            "Blockchain payout sender mismatch. "
            f"Expected {owner_wallet_address}, got {sender_address}"
        )


class ConfirmedTransactionDoesNotHaveGas(InternalServerError):
    message = "Confirmed transaction does not have gas"


class ConfirmedTransactionDoesNotHaveTransactionFee(InternalServerError):
    message = "Confirmed transaction does not have transaction fee"


# -- seller marketplaces ----------------------------------------------------


class MarketplaceDoesNotExist(ClientError):
    message = "Marketplace does not exist"


class NetworkMarketplaceDoesNotHaveTokens(InternalServerError):
    message = "Network marketplace does not have tokens"


class MarketplaceAlreadyExists(ConflictError):
    message = "Marketplace for this network marketplace already exists"


class MarketplaceWasConfirmed(ConflictError):
    message = "Marketplace is already confirmed"


class PendingMarketplaceHasPendingTransaction(ConflictError):
    message = "Marketplace has a pending transaction"


class MarketplaceMustHaveTokens(InternalServerError):
    message = "Marketplace must have tokens"


# -- products ---------------------------------------------------------------


class TokenDoesNotExist(ClientError):
    message = "Token does not exist"


class InvalidProductPrice(ClientError):
    message = "Invalid product price"


class ProductPriceMustBePositive(ClientError):
    message = "Product price must be positive"


class ProductCategoryDoesNotExist(ClientError):
    message = "Product category does not exist"


class ProductSlugIsAlreadyTaken(ConflictError):
    message = "Product slug is already taken"


# -- orders -----------------------------------------------------------------


class ProductDoesNotExist(ClientError):
    message = "Product does not exist"


class ProductDoesNotHaveContent(InternalServerError):
    message = "Product does not have a content"


class SellerMarketplaceIsNotConfirmed(InternalServerError):
    message = "Seller marketplace is not confirmed"


class SellerMarketplaceDoesNotHaveSmartContractAddress(InternalServerError):
    message = "Seller marketplace does not have a smart contract address"


class SellerMarketplaceDoesNotHaveOwnerWalletAddress(InternalServerError):
    message = "Seller marketplace does not have an owner wallet address"


class UnpaidOrderExists(ConflictError):
    message = "Unpaid order exists. Please pay or cancel the order"


class OrderDoesNotExist(ClientError):
    message = "Order does not exist"


class OrderTransactionDoesNotExist(ClientError):
    message = "Order transaction does not exist"


class OrderWasConfirmed(ConflictError):
    message = "Order was confirmed"


class OrderWasCancelled(ConflictError):
    message = "Order was cancelled"


class OrderWasRefunded(ConflictError):
    message = "Order was refunded"


class PendingOrderHasPendingTransaction(ConflictError):
    message = "Pending order has pending transaction"


class ProductOrderCannotBeCancelled(ConflictError):
    message = "Order cannot be cancelled"


# -- payouts ----------------------------------------------------------------


class UserMarketplaceDoesNotExist(ClientError):
    message = "User marketplace does not exist"


class UserMarketplaceTokenDoesNotExist(ClientError):
    message = "User marketplace token does not exist"


class PendingPayoutExists(ConflictError):
    message = "Pending payout exists"


class AvailableTokenBalanceIsNegative(ClientError):
    message = "Available token balance is negative"


class NothingToRequest(ClientError):
    message = "Nothing to request"


class PayoutDoesNotExist(ClientError):
    message = "Payout does not exist"


class PayoutTransactionDoesNotExist(ClientError):
    message = "Payout transaction does not exist"


class PayoutWasConfirmed(ConflictError):
    message = "Payout was confirmed"


class PayoutWasCancelled(ConflictError):
    message = "Payout was cancelled"


class PendingPayoutHasPendingTransaction(ConflictError):
    message = "Pending payout has pending transaction"


class PayoutCannotBeCancelled(ConflictError):
    message = "Payout cannot be cancelled"


def error_response(exc: StorefrontError) -> JSONResponse:
    """Render the error envelope for *exc*."""
    body: dict = {"success": False}
    if isinstance(exc, UseCaseValidationError):
        body["errors"] = exc.errors
    else:
        body["message"] = exc.message
    return JSONResponse(status_code=_STATUS_BY_KIND[exc.kind], content=body)


def install_error_handlers(app: "FastAPI") -> None:
    @app.exception_handler(StorefrontError)
    async def _handle_storefront_error(request: "Request", exc: StorefrontError) -> JSONResponse:
        if exc.kind is ErrorKind.INTERNAL:
            logger.error(
                "Internal error on %s %s: %s",
                request.method,
                request.url.path,
                exc.message,
                exc_info=exc,
            )
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def _handle_request_validation(request: "Request", exc: RequestValidationError) -> JSONResponse:
        errors = [
            f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
            for error in exc.errors()
        ]
        return error_response(UseCaseValidationError(errors))
