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
import subprocess
import tempfile
import unittest
from unittest import mock

from otscert.backend import OtsCliBackend, interpret_verify_output, scratch_area
from otscert.errors import AnchoringUnavailableError, VerificationInconclusiveError
from otscert.tests.fakes import FakeOts, listdir_recursive

FINGERPRINT = '2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824'


class TestScratchArea(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.root = os.path.join(self.tmp.name, 'scratch')

    def tearDown(self):
        self.tmp.cleanup()

    def test_unique_and_removed(self):
        """Concurrent scratch areas for one fingerprint don't collide"""
        with scratch_area(self.root, FINGERPRINT) as a:
            with scratch_area(self.root, FINGERPRINT) as b:
                self.assertNotEqual(a, b)
                self.assertTrue(os.path.basename(a).startswith(FINGERPRINT))
                with open(os.path.join(a, 'x'), 'w') as fd:
                    fd.write('x')
        self.assertEqual(listdir_recursive(self.root), [])

    def test_removed_on_error(self):
        with self.assertRaises(RuntimeError):
            with scratch_area(self.root, FINGERPRINT) as path:
                with open(os.path.join(path, 'x'), 'w') as fd:
                    fd.write('x')
                raise RuntimeError('boom')
        self.assertEqual(listdir_recursive(self.root), [])


class TestOtsCliBackend(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.backend = OtsCliBackend(ots_path='ots', timeout=7, scratch_dir=self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def assertScratchClean(self):
        self.assertEqual(listdir_recursive(self.tmp.name), [])

    def test_stamp(self):
        """Stamping returns the proof the tool wrote"""
        fake = FakeOts(stderr=b'Submitting to remote calendar https://a.pool.opentimestamps.org\n')
        with mock.patch('otscert.backend.subprocess.run', fake):
            proof = self.backend.stamp(FINGERPRINT.upper())

        self.assertEqual(proof, b'PROOF00001')
        self.assertEqual(fake.calls[0][:2], ['ots', 'stamp'])
        self.assertTrue(fake.seen_files[0].endswith(FINGERPRINT + '.txt'))
        self.assertScratchClean()

    def test_stamp_twice_distinct(self):
        fake = FakeOts()
        with mock.patch('otscert.backend.subprocess.run', fake):
            first = self.backend.stamp(FINGERPRINT)
            second = self.backend.stamp(FINGERPRINT)
        self.assertNotEqual(first, second)
        self.assertNotEqual(fake.seen_files[0], fake.seen_files[1])
        self.assertScratchClean()

    def test_stamp_tool_error(self):
        """Non-zero exit is a submission failure"""
        fake = FakeOts(returncode=1, stderr=b'Failed to create timestamp: need at least 2 attestations\n')
        with mock.patch('otscert.backend.subprocess.run', fake):
            with self.assertRaises(AnchoringUnavailableError) as cm:
                self.backend.stamp(FINGERPRINT)
        self.assertIn('need at least 2 attestations', str(cm.exception))
        self.assertScratchClean()

    def test_stamp_no_proof_file(self):
        fake = FakeOts(write_proof=False)
        with mock.patch('otscert.backend.subprocess.run', fake):
            self.assertRaises(AnchoringUnavailableError, self.backend.stamp, FINGERPRINT)
        self.assertScratchClean()

    def test_stamp_tool_missing(self):
        fake = FakeOts(raises=FileNotFoundError(2, 'No such file or directory'))
        with mock.patch('otscert.backend.subprocess.run', fake):
            self.assertRaises(AnchoringUnavailableError, self.backend.stamp, FINGERPRINT)
        self.assertScratchClean()

    def test_stamp_timeout(self):
        fake = FakeOts(raises=subprocess.TimeoutExpired(['ots'], 7))
        with mock.patch('otscert.backend.subprocess.run', fake):
            with self.assertRaises(AnchoringUnavailableError) as cm:
                self.backend.stamp(FINGERPRINT)
        self.assertIn('timed out', str(cm.exception))
        self.assertScratchClean()

    def test_timeout_passed_to_tool(self):
        run = mock.Mock(return_value=subprocess.CompletedProcess([], 1, b'', b''))
        with mock.patch('otscert.backend.subprocess.run', run):
            self.assertRaises(AnchoringUnavailableError, self.backend.stamp, FINGERPRINT)
        self.assertEqual(run.call_args[1]['timeout'], 7)

    def test_verify(self):
        """Verification writes fingerprint and proof side by side"""
        fake = FakeOts(stderr=b'Assuming target filename is ...\n'
                              b'Success! Bitcoin block 358391 attests existence as of Sun May 31 2015\n')
        with mock.patch('otscert.backend.subprocess.run', fake):
            verdict = self.backend.verify(FINGERPRINT, b'PROOF00001')

        self.assertTrue(verdict.verified)
        self.assertIn('Bitcoin block 358391', verdict.message)
        self.assertEqual(fake.calls[0][1], 'verify')
        self.assertEqual(fake.verified_target, FINGERPRINT)
        self.assertEqual(fake.verified_proof, b'PROOF00001')
        self.assertScratchClean()

    def test_verify_tool_missing(self):
        fake = FakeOts(raises=FileNotFoundError(2, 'No such file or directory'))
        with mock.patch('otscert.backend.subprocess.run', fake):
            self.assertRaises(AnchoringUnavailableError, self.backend.verify, FINGERPRINT, b'PROOF')
        self.assertScratchClean()


class TestInterpretVerifyOutput(unittest.TestCase):

    def test_success(self):
        verdict = interpret_verify_output(0, 'Success! Bitcoin block 1 attests existence\n')
        self.assertTrue(verdict.verified)
        self.assertIsNone(verdict.error)

    def test_success_needs_clean_exit(self):
        verdict = interpret_verify_output(1, 'Success! maybe\nError! crashed\n')
        self.assertFalse(verdict.verified)

    def test_silence_is_not_success(self):
        """Empty output from a clean exit is inconclusive, not verified"""
        with self.assertRaises(VerificationInconclusiveError):
            interpret_verify_output(0, '')
        with self.assertRaises(VerificationInconclusiveError) as cm:
            interpret_verify_output(0, 'Calendar says hello\n')
        self.assertEqual(cm.exception.output, 'Calendar says hello\n')

    def test_pending(self):
        verdict = interpret_verify_output(1, 'Calendar https://alice.btc.calendar.opentimestamps.org: '
                                             'Pending confirmation in Bitcoin blockchain\n')
        self.assertFalse(verdict.verified)
        self.assertTrue(verdict.pending)

    def test_failure(self):
        verdict = interpret_verify_output(1, 'File does not match original!\n')
        self.assertFalse(verdict.verified)
        self.assertFalse(verdict.pending)
        self.assertEqual(verdict.error, 'File does not match original!')

        verdict = interpret_verify_output(3, '')
        self.assertEqual(verdict.error, 'ots verify exited with status 3')
