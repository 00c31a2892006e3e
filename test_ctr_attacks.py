from random import Random
from unittest import TestCase

import modebreaker.block as mb
import modebreaker.ctr_attacks as mt
import modebreaker.oracle as mo
import modebreaker.substitution as ms
import modebreaker.utils as mu
from modebreaker.errors import OracleContractViolation

RNG = Random(1916)

EASTER_1916 = [
    b'I have met them at close of day', b'Coming with vivid faces',
    b'From counter or desk among grey', b'Eighteenth-century houses.',
    b'I have passed with a nod of the head', b'Or polite meaningless words,',
    b'Or have lingered awhile and said', b'Polite meaningless words,',
    b'And thought before I had done', b'Of a mocking tale or a gibe',
    b'To please a companion', b'Around the fire at the club,',
    b'Being certain that they and I', b'But lived where motley is worn:',
    b'All changed, changed utterly:', b'A terrible beauty is born.',
    b"That woman's days were spent", b'In ignorant good will,',
    b'Her nights in argument', b'Until her voice grew shrill.',
    b'What voice more sweet than hers', b'When young and beautiful,',
    b'She rode to harriers?', b'This man had kept a school',
    b'And rode our winged horse.', b'This other his helper and friend',
    b'Was coming into his force;', b'He might have won fame in the end,',
    b'So sensitive his nature seemed,', b'So daring and sweet his thought.',
    b'This other man I had dreamed', b'A drunken, vain-glorious lout.',
    b'He had done most bitter wrong', b'To some who are near my heart,',
    b'Yet I number him in the song;', b'He, too, has resigned his part',
    b'In the casual comedy;', b'He, too, has been changed in his turn,',
    b'Transformed utterly:', b'A terrible beauty is born.']

class BitFlipping(TestCase):

    def test_flip_algebra(self):
        key = mu.random_bytes(rng=RNG)
        plain = b'user=alice;role=guest;ttl=60'
        cipher = mb.CTR(key).process(plain)
        forged = mt.bitflip_CTR(cipher, 16, b'guest', b'admin')
        self.assertEqual(mb.CTR(key).process(forged), b'user=alice;role=admin;ttl=60')

    def test_flip_errors(self):
        cipher = bytes(10)
        self.assertRaises(ValueError, mt.bitflip_CTR, cipher, 0, b'ab', b'abc')
        self.assertRaises(ValueError, mt.bitflip_CTR, cipher, 8, b'abc', b'xyz')
        self.assertRaises(ValueError, mt.bitflip_CTR, cipher, -1, b'a', b'b')

    # CTR bitflipping
    def test_forge_admin(self):
        encrypt_oracle, check_oracle = mo.make_userdata_oracles(mode=mb.MODE_CTR, rng=RNG)
        self.assertEqual(mt.find_input_offset(encrypt_oracle), len(mo.USERDATA_PREFIX))
        forged = mt.forge_CTR(encrypt_oracle)
        self.assertTrue(check_oracle.check(forged))

    def test_input_ignored(self):
        self.assertRaises(OracleContractViolation, mt.find_input_offset, lambda x: b'fixed')

class KeystreamReuse(TestCase):

    def test_fixed_nonce(self):
        oracle = mo.FixedNonceCTROracle(rng=RNG)
        ciphers = [oracle.encrypt(x) for x in EASTER_1916]
        keystream, plains = mt.break_fixed_nonce_CTR(ciphers)
        min_len = min(len(x) for x in EASTER_1916)
        self.assertEqual(len(keystream), min_len)
        self.assertEqual(len(plains), len(EASTER_1916))

        total, correct = 0, 0
        for real, guess in zip(EASTER_1916, plains):
            for x, y in zip(real[:min_len].lower(), guess.lower()):
                total += 1
                correct += x == y
        self.assertGreater(correct/total, 0.85)

    def test_no_ciphertexts(self):
        self.assertRaises(ValueError, mt.break_fixed_nonce_CTR, [])

    # break random access read/write CTR
    def test_edit(self):
        plain = b'\n'.join(EASTER_1916)
        cipher, oracle = mo.make_CTR_edit_oracle(plain, rng=RNG)
        self.assertEqual(mt.break_CTR_edit(cipher, oracle), plain)
        self.assertEqual(oracle.queries, 1)

    def test_edit_function(self):
        key = mu.random_bytes(rng=RNG)
        plain = b'any edit function will do'
        cipher = mb.CTR(key, nonce=7).process(plain)

        def edit(cipher, offset, new_plain):
            return mb.CTR(key, nonce=7).edit(cipher, offset, new_plain)

        self.assertEqual(mt.break_CTR_edit(cipher, edit), plain)

class EnglishScoring(TestCase):

    def test_punctuation_scores_below_text(self):
        english = ms.probability_of_english('I have met them at close of day')
        self.assertLess(ms.probability_of_english("-)'-,'.!-;"), english)
        self.assertLess(ms.probability_of_english('-,-.-;-'), 0)
        self.assertLess(ms.probability_of_english('\x00\x07\x1b\x13'), 0)
        self.assertEqual(ms.probability_of_english(''), 0.0)

    # single-byte XOR cipher
    def test_single_byte_XOR(self):
        plain = b"Cooking MC's like a pound of bacon"
        _, guess, key = ms.decrypt_single_byte_XOR(mu.XOR_bytes(plain, b'X'))
        self.assertEqual(key, b'X')
        self.assertEqual(guess, plain)

    def test_column_of_first_letters(self):
        # first letters of each line carry no spaces and are mostly capitals
        column = bytes(x[0] for x in EASTER_1916)
        _, guess, _ = ms.decrypt_single_byte_XOR(mu.XOR_bytes(column, b'\xa7'))
        self.assertEqual(guess.lower(), column.lower())
