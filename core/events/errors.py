"""
Tally Commit Bus — Errors
===========================
Registration errors for commit subscribers. Dispatch itself never
raises: a committed entry stays committed whatever listeners do.
"""


class CommitBusError(Exception):
    """Base error for commit bus registration."""
    pass


class InvalidOperationTypeFormat(CommitBusError):
    """Operation type does not follow engine.domain.action format."""

    def __init__(self, operation_type: str):
        self.operation_type = operation_type
        super().__init__(
            f"Operation type '{operation_type}' does not follow "
            f"engine.domain.action format."
        )


class DuplicateSubscriberError(CommitBusError):
    """Same handler already registered for this operation type."""

    def __init__(self, operation_type: str, handler_name: str):
        self.operation_type = operation_type
        self.handler_name = handler_name
        super().__init__(
            f"Handler '{handler_name}' already registered "
            f"for operation type '{operation_type}'."
        )
