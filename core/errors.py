"""Error taxonomy for the contract analysis pipeline.

Every error carries a ``code`` naming its failure kind so that the HTTP layer
and the document store can record it verbatim (e.g. ``Failed(EmptyDocument)``).
"""


class ContractAnalysisError(Exception):
    """Base class for all analysis pipeline failures."""

    code = "AnalysisError"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)
        self.message = message or self.code


class EmptyDocumentError(ContractAnalysisError):
    """Contract text is empty or whitespace-only."""

    code = "EmptyDocument"


class ClassificationError(ContractAnalysisError):
    """The language-model capability failed or returned an invalid judgement."""

    code = "ClassificationFailure"

    def __init__(self, message: str = "", position: int | None = None) -> None:
        super().__init__(message)
        self.position = position


class EmbeddingError(ContractAnalysisError):
    """The embedding capability failed."""

    code = "EmbeddingFailure"


class DimensionMismatchError(ContractAnalysisError, ValueError):
    """A vector's length does not match the index dimensionality."""

    code = "DimensionMismatch"

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(f"Expected vector of dimension {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidQueryError(ContractAnalysisError, ValueError):
    """A similarity query was malformed (e.g. k <= 0)."""

    code = "InvalidQuery"


class EmptyAnalysisError(ContractAnalysisError):
    """Aggregation was asked to analyse a document with zero segmented clauses."""

    code = "EmptyAnalysis"


class AnalysisCancelledError(ContractAnalysisError):
    """The pipeline run was cancelled."""

    code = "Cancelled"


class UpstreamTimeoutError(ContractAnalysisError):
    """An external capability call timed out after all retries."""

    code = "UpstreamTimeout"


class ClassificationTimeoutError(UpstreamTimeoutError, ClassificationError):
    """Classification call timed out after retry exhaustion."""

    code = "UpstreamTimeout"


class EmbeddingTimeoutError(UpstreamTimeoutError, EmbeddingError):
    """Embedding call timed out after retry exhaustion."""

    code = "UpstreamTimeout"


class InvalidTransitionError(ContractAnalysisError):
    """Illegal pipeline state transition."""

    code = "InvalidTransition"
