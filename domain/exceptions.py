"""Custom domain exceptions for the exploration graph engine."""


class ExplorationError(Exception):
    """Base class for all exploration engine exceptions."""

    def __init__(self, message: str, context: dict | None = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class DuplicateIdError(ExplorationError):
    """Raised when a node or edge id collides with an existing one."""

    def __init__(self, kind: str, item_id: str):
        super().__init__(
            f"Duplicate {kind} id: '{item_id}'",
            context={"kind": kind, "id": item_id},
        )


class NodeNotFoundError(ExplorationError):
    """Raised when an operation references a node that is not in the graph."""

    def __init__(self, node_id: str):
        super().__init__(
            f"Node not found: '{node_id}'",
            context={"node_id": node_id},
        )


class InvalidStateError(ExplorationError):
    """Raised when a mutation would violate the graph's structural rules."""

    def __init__(self, state_field: str, expected: str, actual: str):
        super().__init__(
            f"Invalid state for '{state_field}': expected {expected}, got {actual}",
            context={"field": state_field, "expected": expected, "actual": actual},
        )


class ValidationError(ExplorationError):
    """Raised when an imported payload is malformed. Nothing is applied."""

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message, context={"errors": list(errors or [])})
        self.errors = list(errors or [])


class ExpansionFailure(ExplorationError):
    """Raised (and reported to listeners) when the query service fails a node expansion."""

    def __init__(self, node_id: str, original_error: Exception):
        super().__init__(
            f"Expansion of node '{node_id}' failed: {str(original_error)}",
            context={"node_id": node_id, "original_error": str(original_error)},
        )
        self.node_id = node_id
        self.original_error = original_error


class AdapterError(ExplorationError):
    """Raised when an adapter fails to communicate with external service."""

    def __init__(self, adapter_name: str, operation: str, original_error: Exception):
        super().__init__(
            f"Adapter '{adapter_name}' failed during '{operation}': {str(original_error)}",
            context={
                "adapter": adapter_name,
                "operation": operation,
                "original_error": str(original_error),
            },
        )
        self.original_error = original_error
