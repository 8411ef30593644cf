"""
Error taxonomy for the vectorization pipeline.

Only some of these ever reach a caller. The orchestrator recovers from
embedding failures with placeholder vectors, logs entity-linking failures,
and turns storage failures into failed results.
"""


class VectorizationError(Exception):
    """Base class for all pipeline errors."""


class InsufficientTextError(VectorizationError):
    """Raised when a CFD does not carry enough text to embed."""

    def __init__(self, event_id: str):
        super().__init__(f"Insufficient text for embedding: eventId={event_id}")
        self.event_id = event_id


class EmbeddingServiceError(VectorizationError):
    """Raised when the embedding service rejects a request or returns nothing."""


class StorageError(VectorizationError):
    """Raised when the vector store cannot be read or written."""


class GraphStoreError(VectorizationError):
    """Raised when the graph store cannot be reached."""


class PolicyError(VectorizationError):
    """Raised when an embedding policy file cannot be loaded."""
