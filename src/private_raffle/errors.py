"""
Exception taxonomy for raffle transactions.

Every error aborts the whole transaction it was raised in; the engine
undoes the changes it recorded before re-raising.
"""

from __future__ import annotations


class RaffleError(RuntimeError):
    """Base class for every rejected raffle operation."""


# Configuration errors (rejected at creation)


class ConfigurationError(RaffleError):
    pass


class InvalidDepth(ConfigurationError):
    pass


class InvalidDuration(ConfigurationError):
    pass


class InvalidPrize(ConfigurationError):
    pass


class InvalidTicketPrice(ConfigurationError):
    pass


# State-precondition errors


class StateError(RaffleError):
    pass


class RaffleNotFound(StateError):
    pass


class RaffleNotActive(StateError):
    pass


class RaffleEnded(StateError):
    pass


class RaffleNotEnded(StateError):
    pass


class RaffleNotClosed(StateError):
    pass


class NoParticipants(StateError):
    pass


class DrawAlreadyRequested(StateError):
    pass


class AlreadyInitialized(StateError):
    pass


class NotInitialized(StateError):
    pass


class TreeFull(StateError):
    pass


# Integrity errors (forged or stale claims)


class IntegrityError(RaffleError):
    pass


class InvalidPublicInputs(IntegrityError):
    pass


class RaffleIdMismatch(IntegrityError):
    pass


class RootMismatch(IntegrityError):
    pass


class WinnerIndexMismatch(IntegrityError):
    pass


class RecipientBindingMismatch(IntegrityError):
    pass


class InvalidProof(IntegrityError):
    pass


# Replay errors


class ReplayError(RaffleError):
    pass


class CommitmentAlreadyUsed(ReplayError):
    pass


class NullifierAlreadyUsed(ReplayError):
    pass


# Value transfer errors


class TransferError(RaffleError):
    pass


class IncorrectPayment(TransferError):
    pass


class InsufficientFunds(TransferError):
    pass


class FeeExceedsPrize(TransferError):
    pass


class TransferFailed(TransferError):
    pass


# Access errors


class AccessError(RaffleError):
    pass


class NotOwner(AccessError):
    pass


class NotOracle(AccessError):
    pass


class ReentrantCall(AccessError):
    pass
