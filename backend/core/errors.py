class ElectionCoreError(Exception):
    """Base for every failure the core reports to its callers."""
    code = "error"
    default_message = "election core error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ElectionCoreError):
    code = "validation"
    default_message = "invalid input"

    def __init__(self, message=None, fields=None):
        super().__init__(message)
        self.fields = fields or {}


class NotFoundError(ElectionCoreError):
    code = "not_found"
    default_message = "not found"


class PhaseError(ElectionCoreError):
    code = "phase"
    default_message = "operation not allowed in the current election phase"


class ElectionHasVotesError(PhaseError):
    code = "election_has_votes"
    default_message = "election has recorded votes and cannot be deleted"


class IneligibleError(ElectionCoreError):
    code = "ineligible"
    default_message = "not eligible for this election"


class InvalidCandidateError(ElectionCoreError):
    code = "invalid_candidate"
    default_message = "candidate is not approved for this election"


class AlreadyVotedError(ElectionCoreError):
    code = "already_voted"
    default_message = "already voted in this election"


class AuthorizationError(ElectionCoreError):
    code = "forbidden"
    default_message = "not allowed"


class DuplicateError(ElectionCoreError):
    code = "duplicate"
    default_message = "an active application already exists"
