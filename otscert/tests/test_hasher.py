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

import io
import re
import unittest

from otscert.errors import InvalidFingerprintError, InvalidInputError
from otscert.hasher import derive_certificate_id, fingerprint_bytes, fingerprint_fd, fingerprint_text, \
    validate_fingerprint

HELLO_SHA256 = '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'


class TestFingerprint(unittest.TestCase):

    def test_fingerprint_text(self):
        """Text fingerprints"""
        self.assertEqual(fingerprint_text('hello'), HELLO_SHA256)
        self.assertEqual(fingerprint_text('hello'), fingerprint_text('hello'))
        self.assertNotEqual(fingerprint_text('hello'), fingerprint_text('hello '))
        self.assertNotEqual(fingerprint_text('hello'), fingerprint_text('Hello'))

        # UTF-8, not some other encoding
        self.assertEqual(fingerprint_text('é'), fingerprint_bytes(b'\xc3\xa9'))

    def test_fingerprint_text_invalid(self):
        """Empty and non-text input is rejected"""
        self.assertRaises(InvalidInputError, fingerprint_text, '')
        self.assertRaises(InvalidInputError, fingerprint_text, None)
        self.assertRaises(InvalidInputError, fingerprint_text, b'hello')

    def test_fingerprint_bytes(self):
        """Byte fingerprints"""
        self.assertEqual(fingerprint_bytes(b'hello'), HELLO_SHA256)
        self.assertEqual(fingerprint_bytes(bytearray(b'hello')), HELLO_SHA256)
        self.assertEqual(fingerprint_bytes(memoryview(b'hello')), HELLO_SHA256)
        self.assertEqual(len(fingerprint_bytes(b'')), 64)

        self.assertRaises(InvalidInputError, fingerprint_bytes, 'hello')
        self.assertRaises(InvalidInputError, fingerprint_bytes, None)
        self.assertRaises(InvalidInputError, fingerprint_bytes, 42)

    def test_fingerprint_fd(self):
        """Streaming fingerprints match in-memory ones"""
        data = bytes(range(256)) * 10000
        self.assertEqual(fingerprint_fd(io.BytesIO(data)), fingerprint_bytes(data))
        self.assertRaises(InvalidInputError, fingerprint_fd, io.StringIO('hello'))


class TestValidateFingerprint(unittest.TestCase):

    def test_valid(self):
        """Well formed fingerprints"""
        self.assertEqual(validate_fingerprint('a'*64), 'a'*64)
        self.assertEqual(validate_fingerprint(HELLO_SHA256.upper()), HELLO_SHA256)
        self.assertEqual(validate_fingerprint('0123456789abcdefABCDEF' + '0'*42), '0123456789abcdefabcdef' + '0'*42)

    def test_invalid(self):
        """Malformed fingerprints"""
        for bad in ('g'*64, 'a'*63, 'A'*65, '', 'a'*64 + '\n', ' ' + 'a'*63, None, b'a'*64, 64):
            self.assertRaises(InvalidFingerprintError, validate_fingerprint, bad)

    def test_invalid_is_invalid_input(self):
        with self.assertRaises(InvalidInputError):
            validate_fingerprint('nope')
        with self.assertRaises(ValueError):
            validate_fingerprint('nope')


class TestCertificateId(unittest.TestCase):

    def test_format(self):
        cert_id = derive_certificate_id(HELLO_SHA256, 1700000000000)
        self.assertRegex(cert_id, re.compile('^CERT_[0-9A-F]{16}$'))

    def test_deterministic_for_same_time(self):
        self.assertEqual(derive_certificate_id(HELLO_SHA256, 1700000000000),
                         derive_certificate_id(HELLO_SHA256, 1700000000000))

        # Case of the fingerprint doesn't matter
        self.assertEqual(derive_certificate_id(HELLO_SHA256.upper(), 1700000000000),
                         derive_certificate_id(HELLO_SHA256, 1700000000000))

    def test_time_salted(self):
        """Same content at different times gives different ids"""
        ids = set(derive_certificate_id(HELLO_SHA256, t) for t in range(1700000000000, 1700000000100))
        self.assertEqual(len(ids), 100)

    def test_default_time(self):
        self.assertRegex(derive_certificate_id(HELLO_SHA256), '^CERT_[0-9A-F]{16}$')

    def test_invalid_fingerprint(self):
        self.assertRaises(InvalidFingerprintError, derive_certificate_id, 'x', 0)
