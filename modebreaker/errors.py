"""Exceptions raised by the mode engine, the oracles and the attacks"""

class PaddingError(ValueError):
    """Decrypted bytes do not end in valid PKCS#7 padding. Padding oracles
    turn this into a False answer, so it must never be swallowed elsewhere."""

class InputLengthError(ValueError):
    """A buffer, key or IV does not have the length the operation needs."""

class OracleContractViolation(RuntimeError):
    """An oracle answered outside its declared contract (wrong result type,
    inconsistent answers, or no valid candidate where one must exist)."""

class QueryBudgetExceeded(OracleContractViolation):
    """An oracle was queried more times than its budget allows."""

class InvalidPlaintextError(ValueError):
    """Raised by an endpoint that rejects a decrypted message, leaking the
    decrypted bytes as the first argument."""

    def __init__(self, plain):
        super().__init__(plain)
        self.plain = plain
