"""Exceptions raised by the layer services.

None of these escape the public parsing and adjustment entry points; they
are caught there and turned into warnings.
"""


class UnknownLayerIdError(KeyError):
    """A referenced layer id is not present in the catalog."""

    def __init__(self, layer_id: str):
        super().__init__(layer_id)
        self.layer_id = layer_id

    def __str__(self) -> str:
        return f"No such layer: {self.layer_id}"


class MalformedPermalinkError(ValueError):
    """A layers permalink value cannot be tokenized."""
