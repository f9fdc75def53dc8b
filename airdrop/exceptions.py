"""
Airdrop Prover - Exceptions

Errors fall in four families: integrity failures of the published data,
missing entries, policy violations and internal inconsistencies.
"""


class AirdropError(Exception):
    """Base exception for all redemption errors."""
    pass


# Integrity

class IntegrityError(AirdropError):
    """Published data failed validation."""
    pass


class ChecksumError(IntegrityError):
    """An artifact's digest does not match its pinned checksum."""

    def __init__(self, artifact: str):
        self.artifact = artifact
        super().__init__(f"Invalid checksum: {artifact}")


class FormatError(IntegrityError):
    """An artifact's binary layout is malformed."""
    pass


class LeafCountError(IntegrityError):
    """An artifact holds a different number of leaves than the network expects."""

    def __init__(self, artifact: str, expected: int, actual: int):
        self.artifact = artifact
        self.expected = expected
        self.actual = actual
        super().__init__(f"Leaf count mismatch in {artifact}: expected {expected}, found {actual}")


class RootMismatchError(IntegrityError):
    """A rebuilt tree root differs from the pinned root."""
    pass


# Not found

class NotFoundError(AirdropError):
    """No eligible entry exists for the given key or address."""
    pass


class LeafNotFoundError(NotFoundError):
    """A key hash is absent from the main tree or faucet list."""

    def __init__(self, lookup: str, target: bytes):
        self.lookup = lookup
        self.target = target
        super().__init__(f"Could not find leaf {target.hex()} in {lookup}.")


class NonceNotFoundError(NotFoundError):
    """No record in a nonce bucket decrypts under the candidate secret."""

    def __init__(self, bucket: int):
        self.bucket = bucket
        super().__init__(f"Could not find nonce in bucket {bucket}.")


class AddressNotFoundError(NotFoundError):
    """An address has no row in the proof mapping."""
    pass


# Policy

class PolicyError(AirdropError):
    """A redemption request breaks a redemption rule."""
    pass


class FeeExceedsValueError(PolicyError):
    """The requested fee is larger than the entry's value."""

    def __init__(self, fee: int, value: int):
        self.fee = fee
        self.value = value
        super().__init__(f"Fee exceeds value! (fee={fee}, value={value})")


# Inconsistency

class InconsistencyError(AirdropError):
    """Internal state contradicts itself."""
    pass


class ProofVerificationError(InconsistencyError):
    """A freshly assembled proof failed its own verification."""
    pass
