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

"""Certificate records and issuance"""

import datetime
import logging

from otscert.hasher import derive_certificate_id, validate_fingerprint
from otscert.proof import encode_proof, PROOF_CONFIRMED
from otscert.render import default_chain

BLOCKCHAIN = 'Bitcoin (OpenTimestamps)'
HASH_ALGORITHM = 'SHA256'

DEFAULT_USER_NAME = 'Anonymous'
DEFAULT_EMAIL = ''
DEFAULT_TITLE = 'Untitled'
DEFAULT_FILE_NAME = ''

ANCHORING_SUCCESS = 'success'
ANCHORING_PENDING = 'pending'
ANCHORING_FAILED = 'failed'


def anchoring_status(submission):
    """success/pending/failed for a TimestampSubmissionResult"""
    if not submission.success:
        return ANCHORING_FAILED
    elif submission.proof_state == PROOF_CONFIRMED:
        return ANCHORING_SUCCESS
    else:
        return ANCHORING_PENDING


class CertificateRecord:
    """Everything a certificate says

    Written once at issuance; attributes are read-only.
    """

    __slots__ = ['__fields']

    FIELDS = ('certificate_id', 'fingerprint', 'issued_at', 'issued_at_millis', 'proof',
              'anchoring_status', 'verification_url', 'calendar_url', 'user_name', 'email',
              'title', 'file_name', 'blockchain', 'hash_algorithm')

    def __init__(self, certificate_id, fingerprint, issued_at, issued_at_millis, proof=None,
                 anchoring_status=ANCHORING_FAILED, verification_url=None, calendar_url=None,
                 user_name=None, email=None, title=None, file_name=None):
        self.__fields = {'certificate_id': certificate_id,
                         'fingerprint': validate_fingerprint(fingerprint),
                         'issued_at': issued_at,
                         'issued_at_millis': issued_at_millis,
                         'proof': proof,
                         'anchoring_status': anchoring_status,
                         'verification_url': verification_url,
                         'calendar_url': calendar_url,
                         'user_name': user_name or DEFAULT_USER_NAME,
                         'email': email or DEFAULT_EMAIL,
                         'title': title or DEFAULT_TITLE,
                         'file_name': file_name or DEFAULT_FILE_NAME,
                         'blockchain': BLOCKCHAIN,
                         'hash_algorithm': HASH_ALGORITHM}

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        try:
            return self.__fields[name]
        except KeyError:
            raise AttributeError(name)

    def __setattr__(self, name, value):
        if name == '_CertificateRecord__fields':
            object.__setattr__(self, name, value)
        else:
            raise AttributeError("CertificateRecord is immutable")

    def __eq__(self, other):
        if isinstance(other, CertificateRecord):
            return self.__fields == other.__fields
        else:
            return False

    def __repr__(self):
        return 'CertificateRecord(%s, <%s>)' % (self.certificate_id, self.fingerprint)

    def to_dict(self):
        d = dict(self.__fields)
        d['proof'] = encode_proof(self.proof)
        return d


class IssuedCertificate:
    """A record, its rendered artifact, and what the sinks made of it"""

    def __init__(self, record, submission, artifact, kind, sink_results=None):
        self.record = record
        self.submission = submission
        self.artifact = artifact
        self.kind = kind
        self.sink_results = sink_results or {}

    @property
    def headers(self):
        return {'X-Certificate-Id': self.record.certificate_id,
                'X-Fingerprint': self.record.fingerprint,
                'X-Anchoring-Status': self.record.anchoring_status,
                'X-Verification-Url': self.record.verification_url or ''}


class Issuer:
    """Issues certificates

    Anchoring failures, renderer failures and sink failures all degrade the
    certificate rather than abort issuance.
    """

    def __init__(self, anchor_client, renderer_chain=None, sinks=()):
        self.anchor_client = anchor_client
        self.renderer_chain = renderer_chain or default_chain()
        self.sinks = list(sinks)

    def issue(self, fingerprint, user_name=None, email=None, title=None, file_name=None, issued_at=None):
        fingerprint = validate_fingerprint(fingerprint)

        if issued_at is None:
            issued_at = datetime.datetime.now(datetime.timezone.utc)
        issued_at_millis = int(issued_at.timestamp() * 1000)
        certificate_id = derive_certificate_id(fingerprint, issued_at_millis)

        submission = self.anchor_client.submit(fingerprint)

        record = CertificateRecord(certificate_id, fingerprint,
                                   issued_at=issued_at.isoformat(),
                                   issued_at_millis=issued_at_millis,
                                   proof=submission.proof,
                                   anchoring_status=anchoring_status(submission),
                                   verification_url=submission.verification_url,
                                   calendar_url=submission.calendar_url,
                                   user_name=user_name, email=email, title=title, file_name=file_name)
        logging.info("Issued certificate %s for %s (anchoring %s)" %
                     (certificate_id, fingerprint, record.anchoring_status))

        artifact, kind = self.renderer_chain.render(record)

        issued = IssuedCertificate(record, submission, artifact, kind)
        for sink in self.sinks:
            try:
                result = sink.deliver(record, artifact, kind, issued.sink_results)
            except Exception as exp:
                logging.warning("Sink %s failed for %s: %s" % (sink.name, certificate_id, exp))
                continue
            issued.sink_results[sink.name] = result

        return issued
