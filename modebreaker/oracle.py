import threading

from .block import (MODE_CBC, MODE_CTR, MODE_ECB, CTR, decrypt_CBC, decrypt_ECB,
                    encrypt_CBC, encrypt_ECB, nonce_size)
from .cipher import AES_128, random_key
from .errors import (InputLengthError, InvalidPlaintextError,
                     OracleContractViolation, PaddingError, QueryBudgetExceeded)
from .padding import is_valid_PKCS7
from .utils import random_bytes, random_int

"""Black-box endpoints for the attacks in this package.

Each oracle exposes exactly one attacker-facing method:

    EncryptOracle.encrypt(plain) -> cipher
    CheckOracle.check(cipher) -> bool        (PaddingOracle is one of these)
    DecryptOracle.decrypt(cipher) -> plain
    EditOracle.edit(cipher, offset, new_plain) -> cipher

Keys, IVs and any hidden prefix/suffix live in private attributes; attacks
only ever call the method above. Plain functions can be adapted with the
as_*_oracle helpers, which also check that the answers have the right type.
"""

class Oracle(object):
    """Query accounting shared by all oracles. Safe to call from several
    threads at once, since the only mutable state is the counter."""

    def __init__(self, max_queries=None):
        self.max_queries = max_queries
        self._queries = 0
        self._lock = threading.Lock()

    @property
    def queries(self):
        return self._queries

    def _record_query(self):
        with self._lock:
            if self.max_queries is not None and self._queries >= self.max_queries:
                raise QueryBudgetExceeded('Oracle budget of {} queries exhausted'
                                          .format(self.max_queries))
            self._queries += 1

def _expect_bytes(result, what):
    if not isinstance(result, (bytes, bytearray)):
        raise OracleContractViolation('{} oracle returned {}, expected bytes'
                                      .format(what, type(result).__name__))
    return bytes(result)

class EncryptOracle(Oracle):

    def encrypt(self, plain):
        self._record_query()
        return _expect_bytes(self._encrypt(bytes(plain)), 'Encryption')

    def _encrypt(self, plain):
        raise NotImplementedError

class CheckOracle(Oracle):
    """Answers a yes/no question about a ciphertext"""

    def check(self, cipher):
        self._record_query()
        result = self._check(bytes(cipher))
        if not isinstance(result, bool):
            raise OracleContractViolation('Check oracle returned {}, expected bool'
                                          .format(type(result).__name__))
        return result

    def _check(self, cipher):
        raise NotImplementedError

class PaddingOracle(CheckOracle):
    """CheckOracle whose answer is whether the ciphertext decrypts to valid
    PKCS#7 padding"""

class DecryptOracle(Oracle):

    def decrypt(self, cipher):
        self._record_query()
        return _expect_bytes(self._decrypt(bytes(cipher)), 'Decryption')

    def _decrypt(self, cipher):
        raise NotImplementedError

class EditOracle(Oracle):

    def edit(self, cipher, offset, new_plain):
        self._record_query()
        new_cipher = _expect_bytes(self._edit(bytes(cipher), offset, bytes(new_plain)), 'Edit')
        if len(new_cipher) < max(len(cipher), offset+len(new_plain)):
            raise OracleContractViolation('Edit oracle returned a truncated ciphertext')
        return new_cipher

    def _edit(self, cipher, offset, new_plain):
        raise NotImplementedError

class _FunctionEncryptOracle(EncryptOracle):

    def __init__(self, func, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._func = func

    def _encrypt(self, plain):
        return self._func(plain)

class _FunctionCheckOracle(CheckOracle):

    def __init__(self, func, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._func = func

    def _check(self, cipher):
        return self._func(cipher)

class _FunctionDecryptOracle(DecryptOracle):

    def __init__(self, func, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._func = func

    def _decrypt(self, cipher):
        return self._func(cipher)

class _FunctionEditOracle(EditOracle):

    def __init__(self, func, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._func = func

    def _edit(self, cipher, offset, new_plain):
        return self._func(cipher, offset, new_plain)

def _adapt(oracle, oracle_type, wrapper, max_queries):
    if isinstance(oracle, oracle_type):
        return oracle
    if isinstance(oracle, Oracle):
        raise TypeError('{} cannot be used as {}'.format(
            type(oracle).__name__, oracle_type.__name__))
    if not callable(oracle):
        raise TypeError('Expected {} or a callable, got {}'.format(
            oracle_type.__name__, type(oracle).__name__))
    return wrapper(oracle, max_queries=max_queries)

def as_encrypt_oracle(oracle, max_queries=None):
    """Return oracle unchanged if it already is an EncryptOracle, otherwise
    wrap a plain plaintext->ciphertext function"""
    return _adapt(oracle, EncryptOracle, _FunctionEncryptOracle, max_queries)

def as_check_oracle(oracle, max_queries=None):
    return _adapt(oracle, CheckOracle, _FunctionCheckOracle, max_queries)

def as_decrypt_oracle(oracle, max_queries=None):
    return _adapt(oracle, DecryptOracle, _FunctionDecryptOracle, max_queries)

def as_edit_oracle(oracle, max_queries=None):
    return _adapt(oracle, EditOracle, _FunctionEditOracle, max_queries)

class ECBSuffixOracle(EncryptOracle):
    """ECB(prefix+input+secret) under a fixed hidden key. With a non-empty
    prefix this is the harder byte-at-a-time variant."""

    def __init__(self, secret, prefix=b'', key=None, block_cipher=AES_128,
                 rng=None, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._secret = bytes(secret)
        self._prefix = bytes(prefix)
        self._block_cipher = block_cipher
        self._key = key if key is not None else random_key(block_cipher, rng=rng)

    @classmethod
    def with_random_prefix(cls, secret, min_len=0, max_len=32, rng=None, **kwargs):
        prefix = random_bytes(count=random_int(min_len, max_len, rng=rng), rng=rng)
        return cls(secret, prefix=prefix, rng=rng, **kwargs)

    def _encrypt(self, plain):
        return encrypt_ECB(self._prefix+plain+self._secret, self._key,
                           block_cipher=self._block_cipher)

class ModeGuessOracle(EncryptOracle):
    """Encrypts under either ECB or CBC (fixed when the oracle is built),
    surrounding the input with 5-10 random bytes on each side and using a
    fresh IV for every CBC query."""

    def __init__(self, mode=None, block_cipher=AES_128, rng=None, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._rng = rng
        if mode is None:
            mode = MODE_ECB if random_int(0, 1, rng=rng) else MODE_CBC
        if mode not in (MODE_ECB, MODE_CBC):
            raise ValueError('Unknown mode: '+str(mode))
        self._mode = mode
        self._block_cipher = block_cipher
        self._key = random_key(block_cipher, rng=rng)

    def _encrypt(self, plain):
        rng = self._rng
        before = random_bytes(count=random_int(5, 10, rng=rng), rng=rng)
        after = random_bytes(count=random_int(5, 10, rng=rng), rng=rng)
        plain = before+plain+after
        if self._mode == MODE_ECB:
            return encrypt_ECB(plain, self._key, block_cipher=self._block_cipher)
        iv = random_bytes(count=self._block_cipher.block_size, rng=rng)
        return encrypt_CBC(plain, self._key, iv=iv, block_cipher=self._block_cipher)

class CBCPaddingOracle(PaddingOracle):
    """Takes IV+ciphertext and says whether it decrypts to valid padding"""

    def __init__(self, key, block_cipher=AES_128, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._key = key
        self._block_cipher = block_cipher

    def _check(self, cipher):
        block_size = self._block_cipher.block_size
        if len(cipher) < 2*block_size or len(cipher)%block_size != 0:
            return False
        iv, cipher = cipher[:block_size], cipher[block_size:]
        plain = decrypt_CBC(cipher, self._key, iv=iv, block_cipher=self._block_cipher,
                            unpad=False)
        return is_valid_PKCS7(plain, block_size=block_size)

def make_padding_oracle(plain, key=None, iv=None, block_cipher=AES_128, rng=None,
                        max_queries=None):
    """Encrypt plain under CBC with a hidden key, returning (IV+ciphertext,
    padding oracle for that key)"""
    if key is None:
        key = random_key(block_cipher, rng=rng)
    if iv is None:
        iv = random_bytes(count=block_cipher.block_size, rng=rng)
    cipher = encrypt_CBC(plain, key, iv=iv, block_cipher=block_cipher)
    oracle = CBCPaddingOracle(key, block_cipher=block_cipher, max_queries=max_queries)
    return iv+cipher, oracle

USERDATA_PREFIX = b'comment1=cooking%20MCs;userdata='
USERDATA_SUFFIX = b';comment2=%20like%20a%20pound%20of%20bacon'

def quote_userdata(plain):
    """Neutralise the metacharacters of the ;key=value cookie format"""
    return plain.replace(b';', b'?').replace(b'=', b'?')

class _UserDataEndpoint(object):
    """Key material shared by the two halves of the userdata service"""

    def __init__(self, mode, block_cipher, rng):
        if mode not in (MODE_CBC, MODE_CTR):
            raise ValueError('userdata service supports CBC or CTR, not '+str(mode))
        self.mode = mode
        self.block_cipher = block_cipher
        self.key = random_key(block_cipher, rng=rng)
        if mode == MODE_CBC:
            self.iv = random_bytes(count=block_cipher.block_size, rng=rng)
        else:
            self.iv = random_bytes(count=nonce_size(block_cipher), rng=rng)

    def encrypt(self, plain):
        if self.mode == MODE_CBC:
            return encrypt_CBC(plain, self.key, iv=self.iv, block_cipher=self.block_cipher)
        return CTR(self.key, nonce=self.iv, block_cipher=self.block_cipher).process(plain)

    def decrypt(self, cipher):
        if self.mode == MODE_CBC:
            return decrypt_CBC(cipher, self.key, iv=self.iv, block_cipher=self.block_cipher)
        return CTR(self.key, nonce=self.iv, block_cipher=self.block_cipher).process(cipher)

class UserDataOracle(EncryptOracle):
    """Quotes the input and encrypts it inside the comment1/comment2 cookie"""

    def __init__(self, endpoint, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._endpoint = endpoint

    def _encrypt(self, plain):
        return self._endpoint.encrypt(USERDATA_PREFIX+quote_userdata(plain)+USERDATA_SUFFIX)

class AdminCheckOracle(CheckOracle):
    """Decrypts a cookie and reports whether it contains admin=true"""

    def __init__(self, endpoint, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._endpoint = endpoint

    def _check(self, cipher):
        try:
            plain = self._endpoint.decrypt(cipher)
        except (PaddingError, InputLengthError):
            return False
        for token in plain.split(b';'):
            parts = token.split(b'=', 1)
            if parts[0] == b'admin' and len(parts) == 2 and parts[1] == b'true':
                return True
        return False

def make_userdata_oracles(mode=MODE_CBC, block_cipher=AES_128, rng=None):
    """Return (UserDataOracle, AdminCheckOracle) sharing one hidden key and
    IV/nonce"""
    endpoint = _UserDataEndpoint(mode, block_cipher, rng)
    return UserDataOracle(endpoint), AdminCheckOracle(endpoint)

def k_v_parser(in_bytes):
    """Parse foo=bar&baz=qux into a dict, ignoring tokens without '='"""
    parsed = {}
    for token in in_bytes.split(b'&'):
        if b'=' not in token:
            continue
        key, value = token.split(b'=', 1)
        parsed[key] = value
    return parsed

def k_v_encoder(in_dict):
    encoded = []
    for key, value in in_dict.items():
        encoded.append(key+b'='+value)
    return b'&'.join(encoded)

def profile_for(email):
    email = email.replace(b'=', b'').replace(b'&', b'')
    profile = {b'email': email, b'uid': b'10', b'role': b'user'}
    return k_v_encoder(profile)

class ProfileOracle(EncryptOracle):
    """ECB-encrypted user profile cookie for an attacker-chosen email"""

    def __init__(self, key, block_cipher=AES_128, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._key = key
        self._block_cipher = block_cipher

    def _encrypt(self, email):
        return encrypt_ECB(profile_for(email), self._key, block_cipher=self._block_cipher)

class ProfileCheckOracle(CheckOracle):
    """Reports whether a profile cookie grants role=admin"""

    def __init__(self, key, block_cipher=AES_128, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._key = key
        self._block_cipher = block_cipher

    def _check(self, cipher):
        try:
            plain = decrypt_ECB(cipher, self._key, block_cipher=self._block_cipher)
        except (PaddingError, InputLengthError):
            return False
        return k_v_parser(plain).get(b'role') == b'admin'

def make_profile_oracles(block_cipher=AES_128, rng=None):
    key = random_key(block_cipher, rng=rng)
    return ProfileOracle(key, block_cipher), ProfileCheckOracle(key, block_cipher)

class IVKeyEncryptOracle(EncryptOracle):
    """CBC encryption that (wrongly) reuses the key as the IV"""

    def __init__(self, key, block_cipher=AES_128, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._key = key
        self._block_cipher = block_cipher

    def _encrypt(self, plain):
        return encrypt_CBC(plain, self._key, iv=self._key, block_cipher=self._block_cipher)

class IVKeyDecryptOracle(DecryptOracle):
    """Decrypts CBC with IV=key, strips the padding (raising PaddingError if
    it is bad) and rejects high-ASCII output, leaking the offending
    plaintext in the InvalidPlaintextError"""

    def __init__(self, key, block_cipher=AES_128, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._key = key
        self._block_cipher = block_cipher

    def _decrypt(self, cipher):
        plain = decrypt_CBC(cipher, self._key, iv=self._key, block_cipher=self._block_cipher)
        if any(x > 127 for x in plain):
            raise InvalidPlaintextError(plain)
        return plain

def make_IV_key_oracles(block_cipher=AES_128, rng=None):
    if block_cipher.key_size != block_cipher.block_size:
        raise ValueError('IV=key needs a cipher whose key is one block long')
    key = random_key(block_cipher, rng=rng)
    return IVKeyEncryptOracle(key, block_cipher), IVKeyDecryptOracle(key, block_cipher)

class CTREditOracle(EditOracle):
    """Random access read/write on a CTR ciphertext under a hidden key"""

    def __init__(self, key, nonce, block_cipher=AES_128, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._key = key
        self._nonce = nonce
        self._block_cipher = block_cipher

    def _edit(self, cipher, offset, new_plain):
        ctr = CTR(self._key, nonce=self._nonce, block_cipher=self._block_cipher)
        return ctr.edit(cipher, offset, new_plain)

def make_CTR_edit_oracle(plain, block_cipher=AES_128, rng=None, max_queries=None):
    """Encrypt plain under CTR with a hidden key/nonce, returning
    (ciphertext, edit oracle for it)"""
    key = random_key(block_cipher, rng=rng)
    nonce = random_bytes(count=nonce_size(block_cipher), rng=rng)
    cipher = CTR(key, nonce=nonce, block_cipher=block_cipher).process(plain)
    return cipher, CTREditOracle(key, nonce, block_cipher, max_queries=max_queries)

class FixedNonceCTROracle(EncryptOracle):
    """Encrypts every message under CTR with the same key and nonce"""

    def __init__(self, block_cipher=AES_128, rng=None, max_queries=None):
        super().__init__(max_queries=max_queries)
        self._block_cipher = block_cipher
        self._key = random_key(block_cipher, rng=rng)
        self._nonce = random_bytes(count=nonce_size(block_cipher), rng=rng)

    def _encrypt(self, plain):
        return CTR(self._key, nonce=self._nonce, block_cipher=self._block_cipher).process(plain)
