"""Exception taxonomy for the governor core.

Validation errors are caller mistakes, authorization errors reject the caller's
identity, protocol-integrity errors reject a callback that does not match the
live request. Every one of them aborts the call before anything is written.
"""


class GovernorError(Exception):
    code = "governor_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)


class ValidationError(GovernorError, ValueError):
    code = "validation_error"


class DuplicateVote(ValidationError):
    code = "duplicate_vote"


class VotingClosed(ValidationError):
    code = "voting_closed"


class InvalidStateForDecryption(ValidationError):
    code = "invalid_state_for_decryption"


class NotSuccessful(ValidationError):
    code = "not_successful"


class TallyNotDecrypted(ValidationError):
    code = "tally_not_decrypted"


class TallyNotAvailable(ValidationError):
    code = "tally_not_available"


class AuthorizationError(GovernorError, PermissionError):
    code = "authorization_error"


class NotAuthorizedRevealer(AuthorizationError):
    code = "not_authorized_revealer"


class NotOracle(AuthorizationError):
    code = "not_oracle"


class NotAuthenticated(AuthorizationError):
    code = "not_authenticated"


class ProtocolIntegrityError(GovernorError):
    code = "protocol_integrity_error"


class InvalidRequestId(ProtocolIntegrityError):
    code = "invalid_request_id"


class MalformedDecryptionResult(ProtocolIntegrityError):
    code = "malformed_decryption_result"


class OracleError(Exception):
    """Failure inside the decryption oracle; never reaches the governor"""


class DecryptionFailure(OracleError):
    pass
