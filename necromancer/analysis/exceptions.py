class AnalysisError(Exception):
    """Raised when an analysis run fails."""


class AnalysisNetworkError(AnalysisError):
    """Raised when the AI provider call fails due to network/infrastructure issues."""


class FindingsParseError(AnalysisError):
    """Raised when the analysis output cannot be parsed as a findings array."""
