from Crypto.Cipher import AES

from .errors import PaddingError

"""PKCS#7 padding"""

def pad_PKCS7(unpadded, block_size=AES.block_size):
    """Pad to given block size according to PKCS#7 standard. Block-aligned
    input gets a full block of padding."""
    if block_size < 1 or block_size > 255:
        raise ValueError('PKCS#7 block size must be 1-255 bytes')
    mod_len = len(unpadded)%block_size
    num_bytes_needed = block_size-mod_len
    padding = bytes([num_bytes_needed]*num_bytes_needed)
    return bytes(unpadded)+padding

def unpad_PKCS7(padded, block_size=AES.block_size):
    """Unpad according to PKCS#7 standard. Raises PaddingError if the input
    is empty, not block-aligned, or has invalid padding"""
    if len(padded) == 0:
        raise PaddingError('Cannot unpad empty input')
    if len(padded)%block_size != 0:
        raise PaddingError('Padded input must be a multiple of {} bytes'.format(block_size))
    last_byte = padded[-1]
    if last_byte>0 and last_byte<=block_size:
        test_pad = padded[-last_byte:]
        if set(test_pad)=={last_byte}:
            return bytes(padded[:-last_byte])
    raise PaddingError('Invalid PKCS#7 padding detected')

def is_valid_PKCS7(padded, block_size=AES.block_size):
    try:
        unpad_PKCS7(padded, block_size=block_size)
    except PaddingError:
        return False
    return True
