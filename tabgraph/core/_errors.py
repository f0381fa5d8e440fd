class TabGraphError(ValueError):
    """Precondition violation raised by a graph mutator before anything is changed.

    Parameters
    --
    fcn_name : str
        Name of the public function that rejected the call.
    reason : str
        Human-readable description of the violated precondition.

    """

    def __init__(self, fcn_name: str, reason: str):
        self.fcn_name = fcn_name
        self.reason = reason
        super().__init__(f"`{fcn_name}()`: {reason}")


class InvalidGraphError(TabGraphError):
    """The graph failed structural validation."""


class EmptyGraphError(TabGraphError):
    """The graph has no vertices (or no edges, for edge targets)."""


class MultipleTargetsError(TabGraphError):
    """More than one target id was given to a single-target operation."""


class UnknownVertexError(TabGraphError, KeyError):
    """The given vertex id is not in the graph."""

    # KeyError.__str__ would quote the message
    __str__ = ValueError.__str__


class UnknownEdgeError(TabGraphError, KeyError):
    """The given edge id is not in the graph."""

    __str__ = ValueError.__str__


class DuplicateTableIdError(KeyError):
    """A table id (or table owner) is already present in the store."""


class IdentifierCollisionError(RuntimeError):
    """Re-minting could not find a free identifier within the retry bound."""
