"""
Keytoken Exceptions

Recoverable failures raised by collaborators are converted into failed
results at the workflow boundary. ContractViolation and its subclasses
are never caught.
"""


class ResolutionError(Exception):
    """Base exception for key resolution failures."""
    pass


class SourceLookupFailure(ResolutionError):
    """A lookup source could not produce a key."""
    pass


class OperationFailure(ResolutionError):
    """Base exception for crypto collaborator failures."""
    pass


class ImportFailure(OperationFailure):
    """Key import into the local store failed."""
    pass


class PromoteFailure(OperationFailure):
    """Binding the key to the security token failed."""
    pass


class TokenResetFailure(OperationFailure):
    """Resetting the security token failed."""
    pass


class ContractViolation(ResolutionError):
    """A collaborator broke its contract. Fatal."""
    pass


class UnknownSourceError(ContractViolation):
    """No lookup source is registered for the requested id."""
    pass


class ClassificationError(ContractViolation):
    """A successful lookup carried neither key data nor a master key id."""
    pass


class IllegalTransition(ContractViolation):
    """The workflow attempted a state change outside its transition table."""
    pass
