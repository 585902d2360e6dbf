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

import os
import tempfile
import unittest

from otscert.errors import InvalidFingerprintError
from otscert.proofstore import ProofStore

FINGERPRINT = '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'


class TestProofStore(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, 'proofs')

    def tearDown(self):
        self.tmp.cleanup()

    def test_save_and_get(self):
        store = ProofStore(self.path)
        self.assertNotIn(FINGERPRINT, store)
        self.assertIsNone(store.get(FINGERPRINT))
        with self.assertRaises(KeyError):
            store[FINGERPRINT]

        store.save(FINGERPRINT, b'first')
        store.save(FINGERPRINT.upper(), b'second')
        self.assertIn(FINGERPRINT, store)
        self.assertEqual(store[FINGERPRINT], b'second')
        self.assertTrue(os.path.exists(os.path.join(self.path, '2c', 'f2', FINGERPRINT + '.ots')))

        # Reopening keeps what was retained
        self.assertEqual(ProofStore(self.path)[FINGERPRINT], b'second')

    def test_no_temp_files_left(self):
        store = ProofStore(self.path)
        store.save(FINGERPRINT, b'proof')
        self.assertEqual(os.listdir(os.path.join(self.path, '2c', 'f2')), [FINGERPRINT + '.ots'])

    def test_invalid_fingerprint(self):
        store = ProofStore(self.path)
        self.assertRaises(InvalidFingerprintError, store.save, '../../etc/passwd', b'proof')

    def test_unknown_version(self):
        os.makedirs(self.path)
        with open(os.path.join(self.path, 'version'), 'w') as fd:
            fd.write('2.0\n')
        self.assertRaises(Exception, ProofStore, self.path)

    def test_null_store(self):
        store = ProofStore(None)
        store.save(FINGERPRINT, b'proof')
        self.assertNotIn(FINGERPRINT, store)
        self.assertIsNone(store.get(FINGERPRINT))
