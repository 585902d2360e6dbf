# Copyright (C) 2026 The OTS Certify developers
#
# This file is part of OTS Certify.
#
# It is subject to the license terms in the LICENSE file found in the top-level
# directory of this distribution.
#
# No part of OTS Certify, including this file, may be copied, modified,
# propagated, or distributed except according to the terms contained in the
# LICENSE file.

"""Content fingerprinting

Fingerprints are lowercase hex SHA-256 digests. Everything here is a pure
function.
"""

import binascii
import hashlib
import re
import time

from otscert.errors import InvalidInputError, InvalidFingerprintError

FINGERPRINT_RE = re.compile(r'[0-9a-fA-F]{64}')

CERTIFICATE_ID_PREFIX = 'CERT_'
CERTIFICATE_ID_HEX_CHARS = 16

HASH_FD_CHUNK_SIZE = 2**20


def validate_fingerprint(fingerprint):
    """Check fingerprint format

    Returns the normalised (lowercase) fingerprint; raises
    InvalidFingerprintError otherwise.
    """
    if not isinstance(fingerprint, str) or FINGERPRINT_RE.fullmatch(fingerprint) is None:
        raise InvalidFingerprintError('Fingerprint must be 64 hex characters; got %r' % (fingerprint,))
    return fingerprint.lower()


def fingerprint_digest(fingerprint):
    """Raw 32 byte digest of a fingerprint"""
    return binascii.unhexlify(validate_fingerprint(fingerprint).encode('utf8'))


def fingerprint_text(text):
    """SHA-256 of the UTF-8 encoding of text"""
    if not isinstance(text, str) or not text:
        raise InvalidInputError('Text input is required')
    return hashlib.sha256(text.encode('utf8')).hexdigest()


def fingerprint_bytes(buf):
    """SHA-256 of raw bytes"""
    if not isinstance(buf, (bytes, bytearray, memoryview)):
        raise InvalidInputError('A byte buffer is required; got %s' % type(buf).__name__)
    return hashlib.sha256(buf).hexdigest()


def fingerprint_fd(fd):
    """SHA-256 of everything readable from a binary file object"""
    hasher = hashlib.sha256()
    try:
        while True:
            chunk = fd.read(HASH_FD_CHUNK_SIZE)
            if not chunk:
                break
            if not isinstance(chunk, bytes):
                raise InvalidInputError('File must be opened in binary mode')
            hasher.update(chunk)
    except OSError as exp:
        raise InvalidInputError('Could not read %r: %s' % (getattr(fd, 'name', fd), exp))
    return hasher.hexdigest()


def derive_certificate_id(fingerprint, issued_at_millis=None):
    """Derive a certificate identifier

    The issuance time is mixed in so that certifying the same content twice
    gives two different identifiers; the fingerprint stays the identity used
    for lookup and verification.
    """
    fingerprint = validate_fingerprint(fingerprint)
    if issued_at_millis is None:
        issued_at_millis = int(time.time() * 1000)

    combined = fingerprint + str(int(issued_at_millis))
    digest = hashlib.sha256(combined.encode('utf8')).hexdigest()
    return CERTIFICATE_ID_PREFIX + digest[0:CERTIFICATE_ID_HEX_CHARS].upper()
