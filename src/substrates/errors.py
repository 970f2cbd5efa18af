# substrates/errors.py
from __future__ import annotations


class SubstrateError(Exception):
    """
    Base class for construction failures.

    `context` holds the offending values (spec fields, numbers) so that
    callers can report exactly what was rejected.
    """

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        return f"{self.message} ({ctx})"


class InvalidLattice(SubstrateError, ValueError):
    """Non-positive spacing, gamma outside (0, 180) or a degenerate extent."""


class NonClosingLattice(SubstrateError, ValueError):
    """Wrapping the lattice around a cylinder leaves a seam."""


class EmptyVolume(SubstrateError, ValueError):
    """No residue survived trimming."""


class UnknownResidueCode(SubstrateError, KeyError):
    pass


class UnknownComponent(SubstrateError, KeyError):
    pass


class BlockLoadFailure(SubstrateError):
    """Pre-built block is missing, unreadable or has no usable box."""
