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

"""Timestamp anchor client

Hands fingerprints to an anchoring backend. Anchoring is asynchronous by
nature: a successful submission only means the calendars have the
fingerprint, and Bitcoin confirmation follows hours later, outside our
control. The client never waits for it.
"""

import datetime
import logging

from otscert.hasher import validate_fingerprint
from otscert.proof import encode_proof, pending_calendar_urls, proof_state, PROOF_FAILED

DEFAULT_VERIFICATION_URL = 'https://ots.tools/verify'

SUBMITTING = 'SUBMITTING'
SUBMITTED_PENDING = 'SUBMITTED_PENDING'
SUBMISSION_FAILED = 'SUBMISSION_FAILED'


def utcnow_iso():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class TimestampSubmissionResult:
    """Outcome of one submission"""

    def __init__(self, fingerprint, state, proof=None, verification_url=DEFAULT_VERIFICATION_URL,
                 submitted_at=None, message='', error=None, calendar_url=None):
        self.fingerprint = fingerprint
        self.state = state
        self.proof = proof
        self.verification_url = verification_url
        self.submitted_at = submitted_at or utcnow_iso()
        self.message = message
        self.error = error
        self.calendar_url = calendar_url

    @property
    def success(self):
        return self.state == SUBMITTED_PENDING

    @property
    def proof_b64(self):
        return encode_proof(self.proof)

    @property
    def proof_state(self):
        return proof_state(self.proof) if self.success else PROOF_FAILED

    def to_dict(self):
        return {'success': self.success,
                'fingerprint': self.fingerprint,
                'proofArtifact': self.proof_b64,
                'verificationUrl': self.verification_url,
                'submittedAtIso': self.submitted_at,
                'message': self.message,
                'error': self.error,
                'calendarUrl': self.calendar_url,
                'proofState': self.proof_state}

    def __repr__(self):
        return 'TimestampSubmissionResult(%s, %s)' % (self.fingerprint, self.state)


class AnchorClient:
    """Submits fingerprints for anchoring

    submit() never raises for anchoring failures; only a malformed
    fingerprint is rejected outright.
    """

    def __init__(self, backend, proof_store=None, verification_url=DEFAULT_VERIFICATION_URL):
        self.backend = backend
        self.proof_store = proof_store
        self.verification_url = verification_url

    def submit(self, fingerprint):
        fingerprint = validate_fingerprint(fingerprint)
        state = SUBMITTING
        submitted_at = utcnow_iso()
        logging.info("Submitting %s via %s" % (fingerprint, self.backend.name))

        try:
            proof = self.backend.stamp(fingerprint)
        except Exception as exp:
            # Retrying is up to the caller; a blockchain submission isn't free
            state = SUBMISSION_FAILED
            logging.warning("Timestamp submission for %s failed: %s" % (fingerprint, exp))
            return TimestampSubmissionResult(fingerprint, state,
                                             verification_url=self.verification_url,
                                             submitted_at=submitted_at,
                                             message='Timestamp submission failed; try again later',
                                             error=str(exp) or exp.__class__.__name__)

        state = SUBMITTED_PENDING
        calendar_urls = pending_calendar_urls(proof)
        calendar_url = calendar_urls[0] if calendar_urls else None

        if self.proof_store is not None:
            try:
                self.proof_store.save(fingerprint, proof)
            except OSError as exp:
                logging.warning("Could not retain proof for %s: %s" % (fingerprint, exp))

        logging.info("Submitted %s; confirmation in the Bitcoin blockchain usually takes 1-6 hours" % fingerprint)
        return TimestampSubmissionResult(fingerprint, state, proof=proof,
                                         verification_url=self.verification_url,
                                         submitted_at=submitted_at,
                                         message='Hash successfully submitted to the Bitcoin blockchain via OpenTimestamps',
                                         calendar_url=calendar_url)
