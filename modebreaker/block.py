from .cipher import AES_128
from .errors import InputLengthError
from .padding import pad_PKCS7, unpad_PKCS7
from .utils import XOR_bytes, to_chunks

"""Block cipher modes of operation (ECB, CBC, and CTR as a stream cipher),
generic over any single-block cipher from modebreaker.cipher"""

MODE_ECB = 'ECB'
MODE_CBC = 'CBC'
MODE_CTR = 'CTR'
MODES = (MODE_ECB, MODE_CBC, MODE_CTR)

# CTR counter width in bytes; the nonce fills the rest of the block
COUNTER_SIZE = 8

def nonce_size(block_cipher=AES_128):
    return block_cipher.block_size-COUNTER_SIZE

def encrypt(mode, key, iv, plain, block_cipher=AES_128):
    """Encrypt with the named mode. ECB ignores iv, CTR treats it as the
    nonce. ECB and CBC apply PKCS#7 padding."""
    if mode == MODE_ECB:
        return encrypt_ECB(plain, key, block_cipher=block_cipher)
    elif mode == MODE_CBC:
        return encrypt_CBC(plain, key, iv=iv, block_cipher=block_cipher)
    elif mode == MODE_CTR:
        return CTR(key, nonce=iv, block_cipher=block_cipher).process(plain)
    raise ValueError('Unknown mode: '+str(mode))

def decrypt(mode, key, iv, cipher, block_cipher=AES_128):
    """Inverse of encrypt. Raises PaddingError if ECB/CBC padding is bad."""
    if mode == MODE_ECB:
        return decrypt_ECB(cipher, key, block_cipher=block_cipher)
    elif mode == MODE_CBC:
        return decrypt_CBC(cipher, key, iv=iv, block_cipher=block_cipher)
    elif mode == MODE_CTR:
        return CTR(key, nonce=iv, block_cipher=block_cipher).process(cipher)
    raise ValueError('Unknown mode: '+str(mode))

def _check_aligned(in_bytes, block_size, what):
    if len(in_bytes)%block_size != 0:
        raise InputLengthError('{} length {} is not a multiple of the {}-byte block size'
                               .format(what, len(in_bytes), block_size))

def encrypt_ECB(plain, key, block_cipher=AES_128, pad=True):
    block_size = block_cipher.block_size
    if pad:
        plain = pad_PKCS7(plain, block_size=block_size)
    _check_aligned(plain, block_size, 'Plaintext')
    out_blocks = [block_cipher.encrypt_block(key, x) for x in to_chunks(plain, block_size)]
    return b''.join(out_blocks)

def decrypt_ECB(cipher, key, block_cipher=AES_128, unpad=True):
    block_size = block_cipher.block_size
    _check_aligned(cipher, block_size, 'Ciphertext')
    out_blocks = [block_cipher.decrypt_block(key, x) for x in to_chunks(cipher, block_size)]
    plain = b''.join(out_blocks)
    return unpad_PKCS7(plain, block_size=block_size) if unpad else plain

def _check_iv(iv, block_size):
    if iv is None:
        return bytes(block_size)
    if len(iv) != block_size:
        raise InputLengthError('IV must be {} bytes, got {}'.format(block_size, len(iv)))
    return bytes(iv)

def encrypt_CBC(plain, key, iv=None, block_cipher=AES_128, pad=True):
    """CBC encryption. A missing IV defaults to all zeros."""
    block_size = block_cipher.block_size
    iv = _check_iv(iv, block_size)
    if pad:
        plain = pad_PKCS7(plain, block_size=block_size)
    _check_aligned(plain, block_size, 'Plaintext')

    cipher = bytearray([])
    for plain_block in to_chunks(plain, block_size):
        cipher_block = block_cipher.encrypt_block(key, XOR_bytes(plain_block, iv))
        cipher += cipher_block
        iv = cipher_block
    return bytes(cipher)

def decrypt_CBC(cipher, key, iv=None, block_cipher=AES_128, unpad=True):
    block_size = block_cipher.block_size
    iv = _check_iv(iv, block_size)
    _check_aligned(cipher, block_size, 'Ciphertext')

    plain = bytearray([])
    for cipher_block in to_chunks(cipher, block_size):
        plain_block = block_cipher.decrypt_block(key, cipher_block)
        plain += XOR_bytes(plain_block, iv)
        iv = cipher_block
    plain = bytes(plain)
    return unpad_PKCS7(plain, block_size=block_size) if unpad else plain

class CTR(object):
    """Encrypt/decrypt in CTR (stream) mode. The counter block is the nonce
    followed by a 64-bit block counter.

    process() keeps a running stream position like a normal stream cipher,
    while keystream(), process_at() and edit() work on any byte range
    directly, since each keystream block depends only on the nonce and the
    block index."""

    def __init__(self, key, nonce=0, block_cipher=AES_128, byteorder='little'):
        size = nonce_size(block_cipher)
        if size < 0:
            raise ValueError('CTR needs a block size of at least {} bytes'.format(COUNTER_SIZE))
        if nonce is None:
            nonce = 0
        if isinstance(nonce, (bytes, bytearray)):
            if len(nonce) != size:
                raise InputLengthError('nonce must be {} bytes'.format(size))
            self._nonce = bytes(nonce)
        else:
            self._nonce = nonce.to_bytes(size, byteorder)
        self._key = key
        self._block_cipher = block_cipher
        self._byteorder = byteorder
        self._offset = 0

    @property
    def block_size(self):
        return self._block_cipher.block_size

    def process(self, data):
        out = self.process_at(data, self._offset)
        self._offset += len(data)
        return out

    def reset(self):
        self._offset = 0

    def keystream(self, offset, length):
        """Keystream bytes [offset, offset+length)"""
        if offset < 0 or length < 0:
            raise ValueError('offset and length must be non-negative')
        step = self.block_size
        first, last = offset//step, -(-(offset+length)//step)
        stream = b''.join(self._keystream_block(x) for x in range(first, last))
        start = offset-first*step
        return stream[start:start+length]

    def process_at(self, data, offset):
        """Encrypt/decrypt data as if it sat at byte offset in the stream"""
        return XOR_bytes(data, self.keystream(offset, len(data)), repeat=False)

    def edit(self, cipher, offset, new_plain):
        """Return a copy of cipher whose plaintext from byte offset onwards is
        replaced by new_plain (the ciphertext grows if needed)."""
        if offset < 0 or offset > len(cipher):
            raise ValueError('offset {} outside ciphertext of length {}'.format(offset, len(cipher)))
        new_cipher = bytearray(cipher)
        new_cipher[offset:offset+len(new_plain)] = self.process_at(new_plain, offset)
        return bytes(new_cipher)

    def _keystream_block(self, count):
        if count >= 2**(8*COUNTER_SIZE):
            raise OverflowError('CTR counter exhausted')
        in_bytes = self._nonce+count.to_bytes(COUNTER_SIZE, self._byteorder)
        return self._block_cipher.encrypt_block(self._key, in_bytes)
