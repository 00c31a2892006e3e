from .utils import single_bytes, transpose_bytes, XOR_bytes

"""Single-byte XOR recovery by English letter frequency, used to peel
keystream bytes off ciphertexts that share a CTR nonce"""

# fractional frequency of different letters in the English language
letter_freqs = {
'a':0.08167, 'b':0.01492, 'c':0.02782, 'd':0.04253, 'e':0.12702,  'f':0.02228,
'g':0.02015, 'h':0.06094, 'i':0.06966, 'j':0.00153, 'k':0.00772, 'l':0.04025,
'm':0.02406, 'n':0.06749, 'o':0.07507, 'p':0.01929, 'q':0.00095, 'r':0.05987,
's':0.06327, 't':0.09056, 'u':0.02758, 'v':0.00978, 'w':0.02360, 'x':0.00150,
'y':0.01974, 'z':0.00074
}

# about one character in six of running English text is a space
space_freq = 0.16

# common punctuation costs a little, anything else costs more
neutral_chars = "\n,.'!?-;:\""
neutral_penalty = 0.02
other_penalty = 0.1

def decrypt_single_byte_XOR(cipher):
    """Brute-force decrypt English (UTF-8) text encrypted with single-byte XOR.

    Args:
        cipher (bytes-like): Encrypted text.
    Returns:
        score (float): English score of the best candidate
        plain (bytes-like): Decrypted plain-text
        key (bytes-like): Single-byte key
    """
    best_match = (-float('inf'), None, None)
    for key in single_bytes:
        plain = XOR_bytes(cipher, key)
        try:
            probability = probability_of_english(plain.decode('utf-8'))
        except UnicodeDecodeError:
            pass
        else:
            if probability > best_match[0]:
                best_match = (probability, plain, key)
    return best_match

def probability_of_english(test_string):
    """Score how English-like a string is: the mean, over all characters, of
    the typical English frequency of each letter or space. Punctuation and
    any other character count against the score, so a candidate that turns
    letters into symbols never beats the real text."""
    if len(test_string) == 0:
        return 0.0
    score = 0.0
    for char in test_string.lower():
        if char in letter_freqs:
            score += letter_freqs[char]
        elif char == ' ':
            score += space_freq
        elif char in neutral_chars:
            score -= neutral_penalty
        else:
            score -= other_penalty
    return score/len(test_string)

def get_repeating_XOR_key(cipher, key_size):
    """Recover a repeating XOR key of known size, one column at a time"""
    key = []
    for block in transpose_bytes(cipher, key_size):
        key_byte = decrypt_single_byte_XOR(block)[2]
        key.append(key_byte[0] if key_byte is not None else 0)
    return bytes(key)
