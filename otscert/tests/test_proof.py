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

import base64
import unittest

from otscert.errors import InvalidProofError
from otscert.proof import MAX_PROOF_SIZE, PROOF_CONFIRMED, PROOF_FAILED, PROOF_PENDING, bitcoin_heights, \
    check_proof, decode_proof, describe_proof, encode_proof, parse_proof, pending_calendar_urls, proof_state
from otscert.tests.fakes import CALENDAR_URL, make_ots_proof

FINGERPRINT = '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'


class TestProofEncoding(unittest.TestCase):

    def test_check_proof(self):
        self.assertEqual(check_proof(b'abc'), b'abc')
        self.assertEqual(check_proof(bytearray(b'abc')), b'abc')
        self.assertEqual(check_proof('YWJj'), b'abc')

        for bad in (b'', '', '   ', None, 42, b'\x00' * (MAX_PROOF_SIZE + 1)):
            with self.assertRaises(InvalidProofError):
                check_proof(bad)

    def test_encode_decode(self):
        self.assertEqual(encode_proof(b'\xff\x00'), '/wA=')
        self.assertEqual(decode_proof('/wA=\n'), b'\xff\x00')
        self.assertIsNone(encode_proof(None))
        self.assertRaises(InvalidProofError, decode_proof, 'abc')
        self.assertRaises(InvalidProofError, decode_proof, 'abcd!!!')
        self.assertRaises(InvalidProofError, decode_proof, 'ab\x00cd')
        self.assertRaises(InvalidProofError, decode_proof, 'café')


class TestProofInspection(unittest.TestCase):

    def test_parse(self):
        proof, _ = make_ots_proof(FINGERPRINT)
        detached = parse_proof(proof)
        self.assertEqual(detached.file_digest, bytes.fromhex(FINGERPRINT))

        self.assertRaises(InvalidProofError, parse_proof, b'0123456789')
        self.assertRaises(InvalidProofError, parse_proof, proof[:-3])

    def test_state(self):
        self.assertEqual(proof_state(None), PROOF_FAILED)
        self.assertEqual(proof_state(b''), PROOF_FAILED)
        self.assertEqual(proof_state(b'opaque proof'), PROOF_PENDING)

        pending, _ = make_ots_proof(FINGERPRINT)
        self.assertEqual(proof_state(pending), PROOF_PENDING)

        confirmed, _ = make_ots_proof(FINGERPRINT, bitcoin_height=358391)
        self.assertEqual(proof_state(confirmed), PROOF_CONFIRMED)

    def test_attestations(self):
        proof, _ = make_ots_proof(FINGERPRINT, pending=('https://b.example', 'https://a.example'),
                                  bitcoin_height=358391)
        self.assertEqual(pending_calendar_urls(proof), ['https://a.example', 'https://b.example'])
        self.assertEqual(bitcoin_heights(proof), [358391])

        self.assertEqual(pending_calendar_urls(b'opaque'), [])
        self.assertEqual(bitcoin_heights(b'opaque'), [])

    def test_describe(self):
        proof, _ = make_ots_proof(FINGERPRINT)
        description = describe_proof(base64.b64encode(proof).decode('ascii'))
        self.assertTrue(description.startswith('File sha256 hash: ' + FINGERPRINT))
        self.assertIn(CALENDAR_URL, description)

        self.assertRaises(InvalidProofError, describe_proof, b'opaque')
