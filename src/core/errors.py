"""Exception hierarchy for the search pipeline.

ProviderUnavailable and MalformedModelOutput are recovered inside the parser and
scorer by their deterministic fallbacks. The remaining errors reach the caller.
"""


class SearchError(Exception):
    """Base class for every error raised by the search core."""


class ProviderUnavailable(SearchError):
    """The language-model provider timed out, errored, or could not be reached."""


class MalformedModelOutput(SearchError):
    """The provider answered, but not with JSON of the expected shape."""


class JobStoreError(SearchError):
    """The job store query failed."""


class RefinementFailure(SearchError):
    """A conversational refinement could not be completed; previous results stand."""


class TranscriptionFailure(SearchError):
    """Audio could not be turned into a text query."""
