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

"""Anchoring backends

An anchoring backend knows how to turn a fingerprint into a proof artifact,
and how to check a proof artifact against a fingerprint. The anchor client and
verifier only ever talk to this interface, so the `ots` command line tool can
be swapped for a native calendar client without touching them.
"""

import contextlib
import logging
import os
import shutil
import subprocess
import tempfile

from otscert.errors import AnchoringUnavailableError, VerificationInconclusiveError
from otscert.hasher import validate_fingerprint

DEFAULT_TOOL_TIMEOUT = 30

SUCCESS_MARKER = 'Success'
PENDING_MARKERS = ('Pending confirmation', 'Timestamp not complete', 'not yet')
ERROR_MARKERS = ('Error', 'error', 'Failed', 'failed', 'does not match', 'Could not', 'Invalid', 'not found')


class BackendVerification:
    """What a backend has to say about a proof"""

    def __init__(self, verified, output='', error=None, pending=False, message=None,
                 upgraded_proof=None):
        self.verified = bool(verified)
        self.output = output
        self.error = error
        self.pending = pending
        self.message = message
        self.upgraded_proof = upgraded_proof

    def __repr__(self):
        return 'BackendVerification(verified=%r, pending=%r, error=%r)' % (self.verified, self.pending, self.error)


class AnchoringBackend:
    """Interface to a timestamping system"""

    name = None

    def stamp(self, fingerprint):
        """Submit a fingerprint for anchoring

        Returns the proof artifact bytes the timestamping system handed back;
        raises AnchoringUnavailableError on failure.
        """
        raise NotImplementedError

    def verify(self, fingerprint, proof):
        """Check a proof against a fingerprint

        Returns a BackendVerification; may raise AnchoringUnavailableError if
        the timestamping system couldn't be consulted at all, or
        VerificationInconclusiveError if it gave no usable answer.
        """
        raise NotImplementedError

    def describe(self):
        return {'backend': self.name}


@contextlib.contextmanager
def scratch_area(root, fingerprint):
    """Uniquely named scratch directory for one tool invocation

    The directory, and anything the tool left in it, is removed on exit no
    matter how the block exits.
    """
    if root is not None:
        os.makedirs(root, exist_ok=True)

    path = tempfile.mkdtemp(prefix=fingerprint + '.', dir=root)
    try:
        yield path
    finally:
        try:
            shutil.rmtree(path)
        except OSError as exp:
            logging.warning("Could not remove scratch directory %r: %s" % (path, exp))


def interpret_verify_output(returncode, output):
    """Turn `ots verify` exit status and output into a verdict

    The tool only speaks text. A verdict of verified needs both a clean exit
    and an explicit success marker; silence is not success.
    """
    if returncode == 0 and SUCCESS_MARKER in output:
        success_lines = [line.strip() for line in output.splitlines() if SUCCESS_MARKER in line]
        return BackendVerification(True, output, message=success_lines[0])

    for marker in PENDING_MARKERS:
        if marker in output:
            return BackendVerification(False, output, pending=True,
                                       message='Timestamp not yet confirmed in the Bitcoin blockchain')

    if returncode != 0 or any(marker in output for marker in ERROR_MARKERS):
        lines = [line.strip() for line in output.splitlines() if line.strip()]
        if lines:
            error = lines[-1]
        else:
            error = 'ots verify exited with status %d' % returncode
        return BackendVerification(False, output, error=error, message='Verification failed')

    raise VerificationInconclusiveError('No success signal in verifier output', output)


class OtsCliBackend(AnchoringBackend):
    """Anchoring through the `ots` command line client

    The tool works on files, so the fingerprint's hex text is written to a
    scratch file and that file is what gets timestamped.
    """

    name = 'ots-cli'

    def __init__(self, ots_path='ots', timeout=DEFAULT_TOOL_TIMEOUT, scratch_dir=None):
        self.ots_path = ots_path
        self.timeout = timeout
        self.scratch_dir = scratch_dir

    def _run(self, args):
        cmd = [self.ots_path] + list(args)
        logging.debug("Running %s" % ' '.join(cmd))
        try:
            proc = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                                  timeout=self.timeout, check=False)
        except subprocess.TimeoutExpired:
            raise AnchoringUnavailableError("%s %s timed out after %s seconds" % (self.ots_path, args[0], self.timeout))
        except OSError as exp:
            raise AnchoringUnavailableError("Could not run %s: %s" % (self.ots_path, exp))

        output = (proc.stdout or b'').decode('utf8', 'replace') + (proc.stderr or b'').decode('utf8', 'replace')
        logging.debug("%s %s exited with status %d" % (self.ots_path, args[0], proc.returncode))
        return proc.returncode, output

    def _write_target(self, scratch, fingerprint):
        target_path = os.path.join(scratch, fingerprint + '.txt')
        with open(target_path, 'w') as fd:
            fd.write(fingerprint)
        return target_path

    def stamp(self, fingerprint):
        fingerprint = validate_fingerprint(fingerprint)
        with scratch_area(self.scratch_dir, fingerprint) as scratch:
            try:
                target_path = self._write_target(scratch, fingerprint)
            except OSError as exp:
                raise AnchoringUnavailableError("Could not write scratch file: %s" % exp)

            returncode, output = self._run(['stamp', target_path])
            if returncode != 0:
                raise AnchoringUnavailableError("ots stamp failed with status %d: %s" %
                                                (returncode, output.strip() or 'no output'))

            try:
                with open(target_path + '.ots', 'rb') as proof_fd:
                    proof = proof_fd.read()
            except FileNotFoundError:
                raise AnchoringUnavailableError("ots stamp did not produce a proof file")

            if not proof:
                raise AnchoringUnavailableError("ots stamp produced an empty proof file")

            logging.debug("Got %d byte proof for %s" % (len(proof), fingerprint))
            return proof

    def verify(self, fingerprint, proof):
        fingerprint = validate_fingerprint(fingerprint)
        with scratch_area(self.scratch_dir, fingerprint) as scratch:
            try:
                target_path = self._write_target(scratch, fingerprint)
                with open(target_path + '.ots', 'wb') as proof_fd:
                    proof_fd.write(proof)
            except OSError as exp:
                raise AnchoringUnavailableError("Could not write scratch file: %s" % exp)

            returncode, output = self._run(['verify', target_path + '.ots'])

        return interpret_verify_output(returncode, output)

    def describe(self):
        return {'backend': self.name,
                'ots_path': self.ots_path,
                'timeout': self.timeout}
