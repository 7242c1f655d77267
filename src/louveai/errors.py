"""Exception types raised by the repertory engine."""


class LouveAIError(Exception):
    """Base class for all LouveAI errors."""

    pass


class InvalidConfig(LouveAIError):
    """Generator configuration cannot produce a request (e.g. all quotas are zero)."""

    pass


class MalformedCandidate(LouveAIError):
    """Model response failed to parse or is missing required fields."""

    pass


class ExternalCallFailure(LouveAIError):
    """The generative model call failed (network, auth, provider error)."""

    pass


class NotFound(LouveAIError):
    """A song or repertory id is not present where it was expected."""

    pass


class IncompleteSchedule(LouveAIError):
    """Finalize was attempted without a service name or scheduled date."""

    pass


class GenerationInProgress(LouveAIError):
    """A generation is already outstanding for the current draft."""

    pass


class ImmutableRepertory(LouveAIError):
    """An approved repertory was mutated outside the re-edit flow."""

    pass
