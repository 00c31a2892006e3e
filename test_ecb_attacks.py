from random import Random
from unittest import TestCase

from Crypto.Cipher import AES

import modebreaker.block as mb
import modebreaker.ecb_attacks as me
import modebreaker.oracle as mo
import modebreaker.utils as mu
from modebreaker.cipher import DES_64
from modebreaker.errors import OracleContractViolation

RNG = Random(1994)

UNKNOWN_PLAIN = mu.base64_to_bytes(
    'Um9sbGluJyBpbiBteSA1LjAKV2l0aCBteSByYWctdG9wIGRvd24gc28gbXkgaGFpciBjYW4gYm'\
   +'xvdwpUaGUgZ2lybGllcyBvbiBzdGFuZGJ5IHdhdmluZyBqdXN0IHRvIHNheSBoaQpEaWQgeW91'\
   +'IHN0b3A/IE5vLCBJIGp1c3QgZHJvdmUgYnkK')

class Detection(TestCase):

    def test_ECB_flagged(self):
        key = mu.random_bytes(rng=RNG)
        plain = mu.random_bytes(rng=RNG)*3
        cipher = mb.encrypt(mb.MODE_ECB, key, None, plain)
        self.assertTrue(me.detect_ECB(cipher))
        self.assertGreater(me.ECB_score(cipher), 0.4)

    def test_CBC_not_flagged(self):
        key = mu.random_bytes(rng=RNG)
        plain = mu.random_bytes(rng=RNG)*3
        cipher = mb.encrypt(mb.MODE_CBC, key, mu.random_bytes(rng=RNG), plain)
        self.assertFalse(me.detect_ECB(cipher))
        self.assertEqual(me.ECB_score(cipher), 0.0)

    def test_short_input_scores_zero(self):
        self.assertEqual(me.ECB_score(b''), 0.0)
        self.assertEqual(me.ECB_score(bytes(16)), 0.0)
        self.assertEqual(me.ECB_score(bytes(32)), 0.5)

    def test_rank_ECB(self):
        key = mu.random_bytes(rng=RNG)
        ciphers = [mu.random_bytes(count=160, rng=RNG) for _ in range(20)]
        ciphers[13] = mb.encrypt_ECB(b'YELLOW SUBMARINE'*4+mu.random_bytes(count=90, rng=RNG), key)
        self.assertEqual(me.rank_ECB(ciphers), [13])

    # ECB/CBC oracle
    def test_ECB_oracle(self):
        for _ in range(20):
            self.assertTrue(me.ECB_oracle(mo.ModeGuessOracle(mode=mb.MODE_ECB, rng=RNG)))
            self.assertFalse(me.ECB_oracle(mo.ModeGuessOracle(mode=mb.MODE_CBC, rng=RNG)))

    def test_ECB_oracle_random_mode(self):
        num_shots = 200
        ECB_detect = [me.ECB_oracle(mo.ModeGuessOracle(rng=RNG)) for _ in range(num_shots)]
        fraction_ECB = sum(ECB_detect)/len(ECB_detect)
        self.assertAlmostEqual(fraction_ECB, 0.5, delta=0.15)

class Probing(TestCase):

    def test_block_size(self):
        oracle = mo.ECBSuffixOracle(b'SECRET', rng=RNG)
        self.assertEqual(me.get_block_size(oracle), AES.block_size)
        oracle = mo.ECBSuffixOracle(b'SECRET', block_cipher=DES_64, rng=RNG)
        self.assertEqual(me.get_block_size(oracle), DES_64.block_size)

    def test_block_size_constant_output(self):
        self.assertRaises(OracleContractViolation, me.get_block_size, lambda x: bytes(16))

    def test_diff_blocks(self):
        block_size = RNG.randint(5, 20)
        byte_1 = mu.random_bytes(10*block_size, rng=RNG)
        byte_2 = bytearray(byte_1)
        byte_2[2*block_size:3*block_size] = mu.random_bytes(block_size, rng=RNG)
        byte_2[7*block_size:8*block_size] = mu.random_bytes(block_size, rng=RNG)
        diff_blocks = me.find_diff_blocks(byte_1, byte_2, block_size)
        self.assertEqual(diff_blocks, [2, 7])

    def test_find_prefix_len_every_alignment(self):
        for pre_len in range(2*AES.block_size+2):
            prefix = mu.random_bytes(count=pre_len, rng=RNG)
            oracle = mo.ECBSuffixOracle(UNKNOWN_PLAIN, prefix=prefix, rng=RNG)
            self.assertEqual(me.find_prefix_len(oracle, AES.block_size), pre_len)

    def test_find_prefix_len_secret_starts_like_input(self):
        # the first secret byte equals the probe byte, which must not matter
        for pre_len in [0, 5, 16]:
            oracle = mo.ECBSuffixOracle(b'\x00\x01\x00', prefix=bytes(pre_len), rng=RNG)
            self.assertEqual(me.find_prefix_len(oracle), pre_len)

    def test_find_prefix_len_CBC(self):
        encrypt_oracle, _ = mo.make_userdata_oracles(mode=mb.MODE_CBC, rng=RNG)
        self.assertEqual(me.find_prefix_len(encrypt_oracle), len(mo.USERDATA_PREFIX))

    def test_find_suffix_len(self):
        for pre_len in [0, 3, 16, 21]:
            for secret_len in [0, 1, 15, 16, 17, 40]:
                oracle = mo.ECBSuffixOracle(bytes(secret_len), prefix=bytes(pre_len), rng=RNG)
                self.assertEqual(me.find_suffix_len(oracle, prefix_len=pre_len), secret_len)

class ByteAtATime(TestCase):

    def test_simple(self):
        oracle = mo.ECBSuffixOracle(b'SECRET', rng=RNG)
        self.assertEqual(me.chosen_plaintext_ECB(oracle), b'SECRET')

    def test_unaligned_prefix(self):
        oracle = mo.ECBSuffixOracle(b'SECRET', prefix=mu.random_bytes(count=7, rng=RNG), rng=RNG)
        self.assertEqual(me.chosen_plaintext_ECB(oracle), b'SECRET')

    def test_every_prefix_length(self):
        for pre_len in range(AES.block_size+1):
            prefix = mu.random_bytes(count=pre_len, rng=RNG)
            oracle = mo.ECBSuffixOracle(b'SECRET', prefix=prefix, rng=RNG)
            self.assertEqual(me.chosen_plaintext_ECB(oracle, block_size=AES.block_size),
                             b'SECRET')

    # byte-at-a-time ECB decryption (Simple and Hard)
    def test_long_secret_random_prefix(self):
        oracle = mo.ECBSuffixOracle.with_random_prefix(UNKNOWN_PLAIN, 0, 24, rng=RNG)
        block_size = me.get_block_size(oracle)
        self.assertEqual(block_size, AES.block_size)
        self.assertTrue(me.ECB_oracle(oracle, block_size=block_size))
        secret = me.chosen_plaintext_ECB(oracle, block_size=block_size)
        self.assertEqual(secret, UNKNOWN_PLAIN)

    def test_secret_spanning_padding_block(self):
        secret = b'sixteen byte str'+b'\x01\x01'
        oracle = mo.ECBSuffixOracle(secret, prefix=b'xyz', rng=RNG)
        self.assertEqual(me.chosen_plaintext_ECB(oracle), secret)

    def test_empty_secret(self):
        oracle = mo.ECBSuffixOracle(b'', prefix=b'xyz', rng=RNG)
        self.assertEqual(me.chosen_plaintext_ECB(oracle), b'')

    def test_plain_function(self):
        key = mu.random_bytes(rng=RNG)

        def black_box(plain):
            return mb.encrypt_ECB(b'prefix'+plain+b'SECRET', key)

        self.assertEqual(me.chosen_plaintext_ECB(black_box), b'SECRET')

    def test_parallel(self):
        oracle = mo.ECBSuffixOracle(b'Parallel SECRET!!', prefix=b'12345', rng=RNG)
        self.assertEqual(me.chosen_plaintext_ECB(oracle, workers=4), b'Parallel SECRET!!')

    def test_DES(self):
        oracle = mo.ECBSuffixOracle(b'SECRET', prefix=b'abc', block_cipher=DES_64, rng=RNG)
        self.assertEqual(me.chosen_plaintext_ECB(oracle), b'SECRET')

    def test_not_ECB(self):
        encrypt_oracle, _ = mo.make_userdata_oracles(mode=mb.MODE_CBC, rng=RNG)
        self.assertRaises(ValueError, me.chosen_plaintext_ECB, encrypt_oracle)

    def test_query_budget(self):
        oracle = mo.ECBSuffixOracle(b'SECRET', rng=RNG, max_queries=300)
        self.assertRaises(OracleContractViolation, me.chosen_plaintext_ECB, oracle)

class CutAndPaste(TestCase):

    # ECB cut-and-paste
    def test_forge_admin(self):
        encrypt_oracle, check_oracle = mo.make_profile_oracles(rng=RNG)
        forged = me.cut_and_paste_ECB(encrypt_oracle)
        self.assertTrue(check_oracle.check(forged))
