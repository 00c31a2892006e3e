import logging

from flask import Flask, request

from modebreaker.oracle import make_padding_oracle
from modebreaker.utils import bytes_to_hex, hex_to_bytes

SECRET_MESSAGE = b'MDAwMDAwTm93IHRoYXQgdGhlIHBhcnR5IGlzIGp1bXBpbmc='
PORT = 8082

log = logging.getLogger(__name__)

app = Flask(__name__)
app.config.from_mapping(PORT=PORT, SECRET_MESSAGE=SECRET_MESSAGE)
app.config.from_prefixed_env('MODEBREAKER')

def _secret_message():
    message = app.config['SECRET_MESSAGE']
    return message.encode() if isinstance(message, str) else message

TOKEN, ORACLE = make_padding_oracle(_secret_message())

@app.route('/')
def basic_response():
    return 'OK', 200

@app.route('/token')
def get_token():
    """Hex IV+ciphertext of the hidden message"""
    return bytes_to_hex(TOKEN), 200

@app.route('/check')
def check_padding():
    try:
        cipher = hex_to_bytes(request.args.get('cipher', ''))
    except ValueError:
        return 'MALFORMED', 400
    if ORACLE.check(cipher):
        return 'OK', 200
    else:
        return 'BAD', 500

def main():
    logging.basicConfig(level=logging.INFO)
    log.info('Serving padding oracle on port %d', app.config['PORT'])
    app.run(port=app.config['PORT'])

if __name__ == '__main__':
    main()
