from functools import lru_cache

from Crypto.Cipher import AES, DES

from .errors import InputLengthError
from .utils import random_bytes

"""Single-block cipher primitives.

The mode engine only needs an object with block_size, key_size,
encrypt_block(key, block) and decrypt_block(key, block). The wrappers here
expose pycryptodome's AES and DES that way; anything else with the same
attributes can be passed wherever a cipher is expected."""

class PyCryptodomeBlockCipher(object):
    """Expose a pycryptodome cipher module as a raw one-block permutation"""

    def __init__(self, module, key_size):
        self._module = module
        self.block_size = module.block_size
        self.key_size = key_size

    def encrypt_block(self, key, block):
        return self._ecb(key, block).encrypt(bytes(block))

    def decrypt_block(self, key, block):
        return self._ecb(key, block).decrypt(bytes(block))

    def _ecb(self, key, block):
        if len(block) != self.block_size:
            raise InputLengthError('Block must be {} bytes, got {}'.format(
                self.block_size, len(block)))
        if len(key) != self.key_size:
            raise InputLengthError('Key must be {} bytes, got {}'.format(
                self.key_size, len(key)))
        return _ECB_primitive(self._module, bytes(key))

    def __repr__(self):
        return '{}({}, key_size={})'.format(
            type(self).__name__, self._module.__name__, self.key_size)

@lru_cache(maxsize=64)
def _ECB_primitive(module, key):
    return module.new(key, module.MODE_ECB)

AES_128 = PyCryptodomeBlockCipher(AES, 16)
DES_64 = PyCryptodomeBlockCipher(DES, 8)

def random_key(cipher=AES_128, rng=None):
    return random_bytes(count=cipher.key_size, rng=rng)
