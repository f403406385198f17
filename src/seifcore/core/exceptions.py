"""
Exceptions for seifcore
Every failure raised by the package derives from SeifError so callers have a
single catch-all, while the status-bearing ones map onto the Status taxonomy
"""

from .status import Status


class SeifError(Exception):
    # general container for errors
    pass


class StatusError(SeifError):
    # an error that corresponds to exactly one Status code
    status: Status = Status.DECRYPTION_ERROR

    def __init__(self, message: str | None = None):
        super().__init__(message or self.status.default_message)


class EntropyError(StatusError):
    # raised when every entropy gathering attempt failed
    status = Status.ENTROPY_ERROR


class GeneratorNotInitializedError(StatusError):
    # raised when random bytes are requested before the generator is ready
    status = Status.GENERATOR_NOT_INITIALIZED


class EntropyUnavailableError(SeifError):
    # raised by an entropy source when a single attempt came up short
    pass


class AuthenticationError(SeifError):
    # raised on tampered ciphertext or a mismatched key
    pass


class InvalidKeyError(SeifError):
    # raised when a key cannot be decoded or does not belong to the curve
    pass


class InvalidKeyLengthError(SeifError, ValueError):
    # raised when a symmetric key has the wrong size
    pass


class KeyGenerationError(SeifError):
    # raised when a keypair could not be generated or persisted
    pass
