import base64
import random as _random
from itertools import cycle
from math import ceil

from Crypto.Cipher import AES

"""Byte-level helpers shared by the mode engine, the oracles and the attacks"""

single_bytes = [bytes([x]) for x in range(256)]

def to_chunks(in_bytes, chunk_size):
    """Split byte-like into a list of chunks of a specified size"""
    num_chunks = ceil(len(in_bytes)/chunk_size)
    return [in_bytes[x*chunk_size:(x+1)*chunk_size] for x in range(num_chunks)]

def get_block(in_bytes, idx, block_size=AES.block_size):
    return in_bytes[idx*block_size:(idx+1)*block_size]

def hex_to_bytes(hex_string):
    return bytes.fromhex(hex_string)

def bytes_to_hex(in_bytes):
    return bytes.hex(in_bytes)

def base64_to_bytes(base64_string):
    return bytes(base64.b64decode(base64_string))

def XOR_bytes(bytes_1, bytes_2, repeat=True):
    """XOR two byte-like objects. If repeat==True, the shorter of the two
    sequences will be cycled until the longer sequence is exhausted"""
    if repeat == False:
        return bytes([x^y for x, y in zip(bytes_1, bytes_2)])
    if len(bytes_1) >= len(bytes_2):
        return bytes([x^y for x, y in zip(bytes_1, cycle(bytes_2))])
    else:
        return bytes([x^y for x, y in zip(cycle(bytes_1), bytes_2)])

def transpose_bytes(in_bytes, block_size):
    """Generator yielding subsets of a byte-like, where the n-th generated
    value is every n-th byte from repeated blocks of the input."""
    num_blocks = len(in_bytes)//block_size
    for offset in range(block_size):
        yield bytes([in_bytes[x*block_size+offset] for x in range(num_blocks)])

def random_bytes(count=AES.block_size, rng=None):
    """Uniformly random bytes. Pass a seeded random.Random as rng to get a
    reproducible stream (the module-level generator is used otherwise)."""
    randint = rng.randint if rng is not None else _random.randint
    return bytes([randint(0, 255) for _ in range(count)])

def random_int(low, high, rng=None):
    """Random integer in [low, high], drawn from rng if given"""
    if rng is not None:
        return rng.randint(low, high)
    return _random.randint(low, high)
