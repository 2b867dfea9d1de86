"""
Coordinator exception hierarchy.

Only structural or protocol misuse raises. Invalid voter input is never an
exception; it is dropped and reported through batch verdicts.
"""


class AMACIError(Exception):
    """Base exception for coordinator errors"""
    pass


class PhaseError(AMACIError):
    """Operation attempted in the wrong round phase"""
    pass


class CommitmentMismatchError(AMACIError):
    """A batch does not chain onto the previously recorded commitment"""
    pass
