import logging
from concurrent.futures import ThreadPoolExecutor

from Crypto.Cipher import AES

from .ecb_attacks import find_prefix_len
from .errors import (InputLengthError, InvalidPlaintextError, OracleContractViolation,
                     PaddingError)
from .oracle import as_check_oracle, as_decrypt_oracle, as_encrypt_oracle
from .padding import unpad_PKCS7
from .utils import XOR_bytes, to_chunks

"""Attacks on CBC: padding oracle decryption, bit-flipping, and key
recovery when the IV is the key"""

log = logging.getLogger(__name__)

def decrypt_CBC_padding_oracle(cipher, oracle, block_size=AES.block_size, iv=None,
                               unpad=True, workers=None):
    """Decrypt a cipher text, encrypted with CBC, given an oracle that takes a
    ciphertext (IV first) and returns True or False depending on whether the
    decrypted plaintext has valid PKCS#7 padding.

    The IV is taken to be the first block of cipher, unless passed separately.
    Blocks are recovered from the last one backward, each by forging its
    predecessor one byte at a time, so the oracle only ever sees two-block
    messages. The key is never needed.

    Args:
        cipher (bytes-like): IV+ciphertext (or just ciphertext if iv is given)
        oracle (CheckOracle or callable): padding validity oracle
        block_size (int, optional): cipher block size
        iv (bytes-like, optional): IV, if not prepended to cipher
        unpad (bool, optional): strip the recovered PKCS#7 padding
        workers (int, optional): try the 256 candidates for each byte on a
            thread pool of this size
    Returns:
        plain (bytes): recovered plaintext
    """
    oracle = as_check_oracle(oracle)
    if iv is not None:
        cipher = bytes(iv)+bytes(cipher)
    if len(cipher)%block_size != 0 or len(cipher) < 2*block_size:
        raise InputLengthError('Need IV plus at least one whole {}-byte block'.format(block_size))

    blocks = to_chunks(bytes(cipher), block_size)
    known_blocks = []
    for idx in range(len(blocks)-1, 0, -1):
        intermediate = _recover_intermediate(oracle, blocks[idx], block_size, workers)
        known_blocks.append(XOR_bytes(intermediate, blocks[idx-1], repeat=False))
        log.info('Decrypted block %d of %d (%d oracle queries so far)',
                 idx, len(blocks)-1, oracle.queries)
    plain = b''.join(reversed(known_blocks))
    return unpad_PKCS7(plain, block_size=block_size) if unpad else plain

def _recover_intermediate(oracle, target, block_size, workers):
    """Recover D(K, target) one byte at a time, from the last byte to the
    first, by searching for a forged predecessor block that gives valid
    padding of length block_size-pos."""
    intermediate = bytearray(block_size)
    scratch = bytearray(block_size)
    for pos in range(block_size-1, -1, -1):
        pad_byte = block_size-pos
        # make every already-known byte decrypt to pad_byte
        for jdx in range(pos+1, block_size):
            scratch[jdx] = intermediate[jdx]^pad_byte
        if workers is not None and workers > 1:
            guess = _search_parallel(oracle, scratch, target, pos, workers)
        else:
            guess = _search(oracle, scratch, target, pos)
        if guess is None:
            raise OracleContractViolation('No candidate gave valid padding at byte {}'.format(pos))
        scratch[pos] = guess
        intermediate[pos] = guess^pad_byte
        log.debug('Byte %d: predecessor %02x gives padding %d', pos, guess, pad_byte)
    return bytes(intermediate)

def _search(oracle, scratch, target, pos):
    """Try all 256 values at pos, mutating scratch in place"""
    for guess in range(256):
        scratch[pos] = guess
        if oracle.check(bytes(scratch)+target) and _is_true_padding(oracle, scratch, target, pos):
            return guess
    return None

def _search_parallel(oracle, scratch, target, pos, workers):
    """Same as _search, but each candidate gets its own copy of the forged
    block so the pool threads never share a buffer"""
    def try_guess(guess):
        forged = bytearray(scratch)
        forged[pos] = guess
        return oracle.check(bytes(forged)+target)

    with ThreadPoolExecutor(max_workers=workers) as executor:
        results = list(executor.map(try_guess, range(256)))
    for guess, valid in enumerate(results):
        if not valid:
            continue
        forged = bytearray(scratch)
        forged[pos] = guess
        if _is_true_padding(oracle, forged, target, pos):
            return guess
    return None

def _is_true_padding(oracle, forged, target, pos):
    """When probing the last byte, a hit may come from the plaintext already
    ending in e.g. 02 02 rather than from a forged 01. Corrupting the byte
    before it only keeps the padding valid in the 01 case."""
    if pos != len(forged)-1 or pos == 0:
        return True
    probe = bytearray(forged)
    probe[pos-1] ^= 0xff
    return oracle.check(bytes(probe)+target)

def bitflip_CBC(encrypt_func, target=b';admin=true', block_size=AES.block_size):
    """Forge a ciphertext that decrypts to contain target, given an oracle
    that encrypts attacker input (possibly quoted) between a fixed prefix and
    suffix under CBC with a fixed IV.

    The prefix is measured and padded out to a block boundary; one block of
    filler is then sacrificed so that flipping its ciphertext bits writes
    target into the following block."""
    if len(target) > block_size:
        raise ValueError('target must fit in one block')
    oracle = as_encrypt_oracle(encrypt_func)
    pre_len = find_prefix_len(oracle, block_size)
    num_extra_pad = -pre_len%block_size
    flip_idx = (pre_len+num_extra_pad)//block_size

    filler = b'A'*len(target)
    cipher = bytearray(oracle.encrypt(b'A'*(num_extra_pad+block_size)+filler))
    offset = flip_idx*block_size
    for idx, (old, new) in enumerate(zip(filler, target)):
        cipher[offset+idx] ^= old^new
    return bytes(cipher)

def recover_key_IV_equals_key(encrypt_func, decrypt_func, block_size=AES.block_size):
    """Recover a CBC key that is also used as the IV, given an encryption
    oracle and a decryption endpoint that returns (or leaks, through
    InvalidPlaintextError) the decrypted bytes.

    Submitting C_0, 0, C_0 gives P'_0 = D(C_0)^K and P'_2 = D(C_0), so
    K = P'_0^P'_2. An endpoint that strips padding rejects most such
    forgeries, so the last byte of the chosen block is varied until P'_2
    ends in valid padding, which is then put back before the XOR."""
    encrypt_oracle = as_encrypt_oracle(encrypt_func)
    decrypt_oracle = as_decrypt_oracle(decrypt_func)
    for last_byte in range(256):
        chosen = b'A'*(block_size-1)+bytes([last_byte])
        c_0 = encrypt_oracle.encrypt(chosen)[:block_size]
        forged = c_0+bytes(block_size)+c_0
        try:
            plain = decrypt_oracle.decrypt(forged)
        except InvalidPlaintextError as e:
            plain = e.plain
        except PaddingError:
            continue
        num_pad = len(forged)-len(plain)
        if num_pad < 0 or num_pad > block_size:
            raise OracleContractViolation('Decryption endpoint returned {} bytes for a {}-byte '
                                          'ciphertext'.format(len(plain), len(forged)))
        log.debug('Forged ciphertext accepted after %d tries', last_byte+1)
        p_0 = plain[:block_size]
        p_2 = plain[2*block_size:]+bytes([num_pad])*num_pad
        return XOR_bytes(p_0, p_2, repeat=False)
    raise OracleContractViolation('Decryption endpoint rejected the padding of every forgery')
