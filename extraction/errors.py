"""Exception types raised by the extraction engine."""


class ExtractionError(Exception):
    """Base class for extraction-engine errors."""


class UnknownSchemaError(ExtractionError, KeyError):
    """Raised when a column reference does not match any registry entry."""

    def __init__(self, ref):
        self.ref = ref
        super().__init__(f"Unknown column schema: {ref!r}")

    def __str__(self) -> str:
        return self.args[0]
