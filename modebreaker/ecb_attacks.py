import logging
from concurrent.futures import ThreadPoolExecutor

from Crypto.Cipher import AES

from .errors import OracleContractViolation
from .oracle import as_encrypt_oracle
from .padding import pad_PKCS7
from .utils import get_block, single_bytes, to_chunks

"""Attacks on ECB, and the block-alignment probing that the CBC and CTR
attacks reuse"""

log = logging.getLogger(__name__)

# longest input tried while looking for a change in ciphertext length
MAX_PROBE_LEN = 512

def ECB_score(cipher, block_size=AES.block_size):
    """Fraction of blocks that repeat an earlier block, in [0, 1). Zero for
    anything shorter than two blocks, so short inputs can be false negatives."""
    blocks = to_chunks(cipher, block_size)
    if len(blocks) < 2:
        return 0.0
    return 1.0-len(set(blocks))/len(blocks)

def detect_ECB(cipher, block_size=AES.block_size):
    """Detect whether an encrypted ciphertext used ECB, by looking for
    repeated code blocks."""
    return ECB_score(cipher, block_size=block_size) > 0

def rank_ECB(ciphers, block_size=AES.block_size):
    """Indices of the ciphertexts with any repeated block, most ECB-like first"""
    scores = [(ECB_score(x, block_size=block_size), idx) for idx, x in enumerate(ciphers)]
    return [idx for score, idx in sorted(scores, key=lambda x: -x[0]) if score > 0]

def ECB_oracle(encrypt_func, block_size=AES.block_size):
    """Return whether or not a specified black-box block-cipher encryption
    function is using ECB mode. The probe is long enough to fill at least two
    whole aligned blocks with the same byte, whatever the oracle prepends
    (within a block)."""
    oracle = as_encrypt_oracle(encrypt_func)
    cipher = oracle.encrypt(bytes(3*block_size+block_size-1))
    return detect_ECB(cipher, block_size=block_size)

def get_block_size(encrypt_func):
    """Find block size used by a black-box, block-cipher encryption function."""
    oracle = as_encrypt_oracle(encrypt_func)
    first_len = len(oracle.encrypt(b''))
    jumps = []
    for in_size in range(1, MAX_PROBE_LEN):
        cipher_len = len(oracle.encrypt(bytes(in_size)))
        if cipher_len != first_len:
            jumps.append(cipher_len)
            first_len = cipher_len
        if len(jumps) == 2:
            return jumps[1]-jumps[0]
    raise OracleContractViolation('Ciphertext length never grew in whole blocks')

def find_diff_blocks(byte_1, byte_2, block_size):
    """Return list (in order) of which blocks differ between two byte-likes"""
    num_blocks = min(len(byte_1), len(byte_2))//block_size
    blocks_1 = [get_block(byte_1, x, block_size) for x in range(num_blocks)]
    blocks_2 = [get_block(byte_2, x, block_size) for x in range(num_blocks)]
    return [x for x in range(num_blocks) if blocks_1[x] != blocks_2[x]]

def _first_diff_block(oracle, num, block_size):
    """Index of the block holding input byte num, found by varying only that
    byte between two otherwise identical queries"""
    byte_1 = oracle.encrypt(bytes(num)+b'\x00')
    byte_2 = oracle.encrypt(bytes(num)+b'\x01')
    diff_list = find_diff_blocks(byte_1, byte_2, block_size)
    if not diff_list:
        raise OracleContractViolation('Changing the input did not change the ciphertext')
    return diff_list[0]

def find_prefix_len(encrypt_func, block_size=AES.block_size):
    """For an arbitrary black-box encryption function that prepends an unknown,
    fixed-length byte array to the submitted plain-text and encrypts with a
    deterministic block mode (ECB, or CBC with a fixed IV), determine the
    length of this unknown prefix.

    The block holding the first input byte is found first. Growing a filler
    in front of a single varied byte moves that byte into the next block
    exactly when the filler completes the prefix's last block, which pins
    down the prefix length for every alignment, including zero."""
    oracle = as_encrypt_oracle(encrypt_func)
    first_idx = _first_diff_block(oracle, 0, block_size)
    for num in range(1, block_size+1):
        if _first_diff_block(oracle, num, block_size) > first_idx:
            pre_len = (first_idx+1)*block_size-num
            log.debug('Prefix length %d (block %d filled by %d bytes)', pre_len, first_idx, num)
            return pre_len
    raise OracleContractViolation('Input never crossed into the next block')

def find_suffix_len(encrypt_func, block_size=AES.block_size, prefix_len=0):
    """Length of the unknown bytes appended after the input, read off from
    the input length at which PKCS#7 padding spills into a new block."""
    oracle = as_encrypt_oracle(encrypt_func)
    base_len = len(oracle.encrypt(b''))
    for num in range(1, block_size+1):
        if len(oracle.encrypt(bytes(num))) > base_len:
            return base_len-prefix_len-num
    raise OracleContractViolation('Ciphertext length did not grow within one block')

def _ECB_lookup(oracle, make_input, block_idx, block_size, workers):
    """Map the ciphertext block at block_idx to the candidate byte that
    produced it, for all 256 candidates"""
    def encrypt_candidate(candidate):
        return get_block(oracle.encrypt(make_input(candidate)), block_idx, block_size)

    if workers is not None and workers > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            cipher_frags = list(executor.map(encrypt_candidate, single_bytes))
    else:
        cipher_frags = [encrypt_candidate(x) for x in single_bytes]
    return {x: y[0] for x, y in zip(cipher_frags, single_bytes)}

def chosen_plaintext_ECB(encrypt_func, block_size=None, workers=None):
    """Determine a secret plaintext used by a black-box, block-cipher
    encryption function operating in ECB mode. The only requirement is that
    the function appends arbitrary, user-supplied input to the secret prior
    to encryption, and uses the same secret/key for each query. A fixed
    unknown prefix in front of the input is measured and aligned away first.

    With workers > 1 the 256 candidate queries for each byte are spread over
    a thread pool; the oracle must then tolerate concurrent calls."""
    oracle = as_encrypt_oracle(encrypt_func)
    if block_size is None:
        block_size = get_block_size(oracle)
    if not ECB_oracle(oracle, block_size=block_size):
        raise ValueError('Encryption function does not appear to use ECB mode')

    # Determine if there is a prefix applied by the function, get relevant offsets
    pre_len = find_prefix_len(oracle, block_size)
    num_extra_pad = -pre_len%block_size
    pre_idx = (pre_len+num_extra_pad)//block_size
    secret_len = find_suffix_len(oracle, block_size, prefix_len=pre_len)
    log.info('Block size %d, prefix %d bytes, secret %d bytes',
             block_size, pre_len, secret_len)

    filler = b'A'
    secret = bytearray([])
    while len(secret) < secret_len:
        # feed just enough filler that the next unknown byte is the last
        # byte of block idx
        pad_size = num_extra_pad+block_size-1-len(secret)%block_size
        idx = pre_idx+len(secret)//block_size
        window = (filler*(block_size-1)+bytes(secret))[-(block_size-1):]
        head = filler*num_extra_pad+window

        plain_dict = _ECB_lookup(oracle, lambda x: head+x, pre_idx, block_size, workers)
        cipher_frag = get_block(oracle.encrypt(filler*pad_size), idx, block_size)
        if cipher_frag not in plain_dict:
            raise OracleContractViolation('No candidate matched secret byte {}'
                                          .format(len(secret)))
        secret.append(plain_dict[cipher_frag])
        if len(secret)%block_size == 0:
            log.debug('Recovered %d/%d secret bytes', len(secret), secret_len)
    log.info('Recovered %d-byte secret using %d oracle queries', len(secret), oracle.queries)
    return bytes(secret)

def cut_and_paste_ECB(encrypt_func, block_size=AES.block_size,
                      template_head=b'email=', template_tail=b'&uid=10&role=',
                      role=b'admin'):
    """Forge an ECB profile cookie email=...&uid=10&role=<role> by splicing
    together blocks from two legitimate encryptions: one ending exactly at
    'role=', and one whose second block is role+PKCS#7 padding on its own."""
    oracle = as_encrypt_oracle(encrypt_func)
    head_pad = -len(template_head)%block_size
    head_idx = (len(template_head)+head_pad)//block_size

    # isolate the padded role in a block of its own
    role_block = pad_PKCS7(role, block_size=block_size)
    cipher = oracle.encrypt(b'A'*head_pad+role_block)
    forged_tail = get_block(cipher, head_idx, block_size)

    # line the plaintext up so the ciphertext ends right after 'role='
    fixed_len = len(template_head)+len(template_tail)
    email_len = -fixed_len%block_size
    email_len += block_size if email_len == 0 else 0
    cipher = oracle.encrypt(b'A'*email_len)
    num_blocks = (fixed_len+email_len)//block_size
    return cipher[:num_blocks*block_size]+forged_tail
