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

"""Timestamp verifier

Asks an anchoring backend whether a proof attests to a fingerprint. A
verdict of "not verified" is a normal answer, not an error: the only thing
rejected outright is malformed input.
"""

import logging

from otscert.anchor import DEFAULT_VERIFICATION_URL
from otscert.errors import VerificationInconclusiveError
from otscert.hasher import validate_fingerprint
from otscert.proof import check_proof

NO_PROOF_MESSAGE = 'No proof found for this fingerprint'


class VerificationResult:

    def __init__(self, fingerprint, verified, output='', error=None, message=None, pending=False,
                 found=True, verification_url=DEFAULT_VERIFICATION_URL):
        self.fingerprint = fingerprint
        self.verified = verified
        self.output = output
        self.error = error
        self.pending = pending
        self.found = found
        self.verification_url = verification_url

        if message is None:
            if verified:
                message = 'Timestamp verified'
            elif pending:
                message = 'Timestamp pending confirmation; try again in a few hours'
            else:
                message = 'Timestamp could not be verified'
        self.message = message

    def to_dict(self):
        return {'fingerprint': self.fingerprint,
                'verified': self.verified,
                'message': self.message,
                'verificationUrl': self.verification_url,
                'found': self.found,
                'pending': self.pending,
                'output': self.output,
                'error': self.error}

    def __repr__(self):
        return 'VerificationResult(%s, verified=%r)' % (self.fingerprint, self.verified)


class Verifier:

    def __init__(self, backend, proof_store=None, verification_url=DEFAULT_VERIFICATION_URL):
        self.backend = backend
        self.proof_store = proof_store
        self.verification_url = verification_url

    def verify(self, fingerprint, proof):
        """Verify proof against fingerprint

        Raises InvalidFingerprintError or InvalidProofError for malformed
        input; every other problem is reported in the result.
        """
        fingerprint = validate_fingerprint(fingerprint)
        proof = check_proof(proof)
        logging.debug("Verifying %d byte proof for %s via %s" % (len(proof), fingerprint, self.backend.name))

        try:
            verdict = self.backend.verify(fingerprint, proof)
        except VerificationInconclusiveError as exp:
            logging.info("Verification of %s inconclusive: %s" % (fingerprint, exp.reason))
            return VerificationResult(fingerprint, False, output=exp.output, error=exp.reason,
                                      message='Verification inconclusive',
                                      verification_url=self.verification_url)
        except Exception as exp:
            logging.warning("Verification of %s failed: %s" % (fingerprint, exp))
            return VerificationResult(fingerprint, False, error=str(exp) or exp.__class__.__name__,
                                      message='Verification failed',
                                      verification_url=self.verification_url)

        if verdict.upgraded_proof and self.proof_store is not None and fingerprint in self.proof_store:
            try:
                self.proof_store.save(fingerprint, verdict.upgraded_proof)
            except OSError as exp:
                logging.warning("Could not retain upgraded proof for %s: %s" % (fingerprint, exp))

        if verdict.verified:
            logging.info("Verified %s" % fingerprint)

        return VerificationResult(fingerprint, verdict.verified, output=verdict.output, error=verdict.error,
                                  message=verdict.message, pending=verdict.pending,
                                  verification_url=self.verification_url)

    def verify_fingerprint(self, fingerprint, proof=None):
        """Verify a fingerprint, falling back to the retained proof

        If no proof is given and none was retained from an earlier
        submission, the answer is "no proof found", not a failed
        verification.
        """
        fingerprint = validate_fingerprint(fingerprint)

        if proof is None:
            if self.proof_store is not None:
                proof = self.proof_store.get(fingerprint)

            if proof is None:
                return VerificationResult(fingerprint, False, message=NO_PROOF_MESSAGE, found=False,
                                          verification_url=self.verification_url)

        return self.verify(fingerprint, proof)
