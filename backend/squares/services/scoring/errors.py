"""Error taxonomy for the live scoring pipeline.

Provider and validation errors are recovered where they happen (logged,
previous state kept, next poll retries). Not-found and ledger invariant
errors propagate to the caller. A conflicting insert on a dedupe key is not
an error at all: the recorder reports it as ``RecordResult(inserted=False)``.
"""


class ScoringError(Exception):
    status_code = 500

    def __init__(self, message: str, game_id=None):
        super().__init__(message)
        self.message = message
        self.game_id = game_id

    def to_dict(self):
        payload = {'error': self.message, 'kind': type(self).__name__}
        if self.game_id is not None:
            payload['game_id'] = self.game_id
        return payload


class TransientProviderError(ScoringError):
    """Score source unreachable or answered non-2xx; retried on next poll."""
    status_code = 502


class NotFoundError(ScoringError):
    """Unknown game, locally or at the provider. Polling for it should stop."""
    status_code = 404


class ValidationError(ScoringError):
    """Malformed snapshot or request; dropped with previous state retained."""
    status_code = 400


class ConcurrencyInvariantError(ScoringError):
    """Ledger sequence gap or conflicting duplicate. Fatal for the game."""
    status_code = 409
