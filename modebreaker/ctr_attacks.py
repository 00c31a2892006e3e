import logging

from .errors import OracleContractViolation
from .oracle import as_edit_oracle, as_encrypt_oracle
from .substitution import get_repeating_XOR_key
from .utils import XOR_bytes

"""Attacks on CTR: bit-flipping, fixed-nonce keystream reuse, and the
random access edit endpoint"""

log = logging.getLogger(__name__)

def bitflip_CTR(cipher, offset, known, desired):
    """Return a copy of cipher whose plaintext reads desired instead of known
    at byte offset. Since P = C^keystream, flipping the same bits in C flips
    them in P; no oracle is involved."""
    if len(known) != len(desired):
        raise ValueError('known and desired plaintext must be the same length')
    if offset < 0 or offset+len(known) > len(cipher):
        raise ValueError('range to flip lies outside the ciphertext')
    new_cipher = bytearray(cipher)
    for idx, (old, new) in enumerate(zip(known, desired)):
        new_cipher[offset+idx] ^= old^new
    return bytes(new_cipher)

def find_input_offset(encrypt_func):
    """Byte offset at which a stream-cipher encryption oracle places the
    attacker input, from two captures differing only in their first byte"""
    oracle = as_encrypt_oracle(encrypt_func)
    byte_1 = oracle.encrypt(b'\x00')
    byte_2 = oracle.encrypt(b'\x01')
    for idx, (x, y) in enumerate(zip(byte_1, byte_2)):
        if x != y:
            return idx
    raise OracleContractViolation('Changing the input did not change the ciphertext')

def forge_CTR(encrypt_func, target=b';admin=true'):
    """Encrypt harmless filler through the oracle and flip it into target"""
    oracle = as_encrypt_oracle(encrypt_func)
    offset = find_input_offset(oracle)
    filler = b'A'*len(target)
    cipher = oracle.encrypt(filler)
    log.debug('Attacker input starts at byte %d', offset)
    return bitflip_CTR(cipher, offset, filler, target)

def break_fixed_nonce_CTR(ciphers):
    """Recover plaintexts encrypted under CTR with a reused key and nonce.

    Every message is XORed with the same keystream, so truncating them all
    to the shortest length turns the problem into repeating-key XOR, solved
    one keystream byte (column) at a time by English letter frequency.

    Returns:
        keystream (bytes): recovered keystream, as long as the shortest message
        plains (list of bytes): each message, truncated to that length
    """
    if len(ciphers) == 0:
        raise ValueError('Need at least one ciphertext')
    min_len = len(min(ciphers, key=len))
    cipher_cat = b''.join([bytes(x[:min_len]) for x in ciphers])
    keystream = get_repeating_XOR_key(cipher_cat, min_len)
    log.info('Recovered %d keystream bytes from %d ciphertexts', min_len, len(ciphers))
    plains = [XOR_bytes(x[:min_len], keystream, repeat=False) for x in ciphers]
    return keystream, plains

def break_CTR_edit(cipher, edit_func):
    """Recover the plaintext of a CTR ciphertext from an endpoint that lets us
    rewrite its plaintext in place: overwriting everything with known bytes
    hands back the keystream."""
    oracle = as_edit_oracle(edit_func)
    new_plain = bytes([14]*len(cipher))
    new_cipher = oracle.edit(cipher, 0, new_plain)
    keystream = XOR_bytes(new_plain, new_cipher[:len(cipher)], repeat=False)
    return XOR_bytes(keystream, cipher, repeat=False)
