class MessageError(Exception):
    """A single message could not be processed. The loop logs it and moves on."""


class MessageDecodeError(MessageError, ValueError):
    """Payload is not valid JSON or a field has the wrong type."""


class PersistError(MessageError):
    """Insert failed; the transaction was rolled back."""
