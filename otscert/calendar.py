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

"""Native anchoring through OpenTimestamps calendars

Does what `ots stamp` and `ots verify` do, in-process: no scratch files, and
a structured verdict instead of text.
"""

import hashlib
import logging
import os
import threading
import time
import urllib.error
from queue import Queue, Empty

import opentimestamps.calendar
from opentimestamps.core.notary import BitcoinBlockHeaderAttestation, PendingAttestation, VerificationError
from opentimestamps.core.op import OpAppend, OpSHA256
from opentimestamps.core.timestamp import DetachedTimestampFile, Timestamp

import otscert
from otscert.backend import AnchoringBackend, BackendVerification
from otscert.blocksource import BlockHeaderUnavailableError
from otscert.errors import AnchoringUnavailableError, InvalidProofError
from otscert.hasher import fingerprint_digest, validate_fingerprint
from otscert.proof import parse_proof, serialize_detached

DEFAULT_CALENDAR_URLS = ['https://a.pool.opentimestamps.org',
                         'https://b.pool.opentimestamps.org',
                         'https://a.pool.eternitywall.com']

DEFAULT_WHITELIST = ['https://*.calendar.opentimestamps.org', 'https://*.calendar.eternitywall.com']


def remote_calendar(calendar_uri):
    """Create a remote calendar with User-Agent set appropriately"""
    return opentimestamps.calendar.RemoteCalendar(calendar_uri,
                                                  user_agent="OTS-Certify/%s" % otscert.__version__)


def submit_async(calendar, msg, q, timeout):

    def submit_async_thread(remote, msg, q, timeout):
        try:
            calendar_timestamp = remote.submit(msg, timeout=timeout)
            q.put(calendar_timestamp)
        except Exception as exc:
            q.put(exc)

    logging.info('Submitting to remote calendar %s' % calendar.url)
    t = threading.Thread(target=submit_async_thread, args=(calendar, msg, q, timeout), daemon=True)
    t.start()


def walk_pending(stamp):
    """Yield (sub_stamp, attestation) for every pending attestation"""
    for attestation in stamp.attestations:
        if attestation.__class__ == PendingAttestation:
            yield stamp, attestation
    for sub_stamp in stamp.ops.values():
        yield from walk_pending(sub_stamp)


def get_attestations(stamp):
    return set(attest for msg, attest in stamp.all_attestations())


class CalendarBackend(AnchoringBackend):
    """Anchoring straight to OpenTimestamps calendars

    Submission is m-of-n: the proof is accepted once at least m of the n
    calendars answered within the timeout.
    """

    name = 'calendar'

    def __init__(self, calendar_urls=None, m=2, timeout=5, whitelist=None, block_source=None,
                 make_calendar=remote_calendar):
        self.calendar_urls = list(calendar_urls or DEFAULT_CALENDAR_URLS)

        n = len(self.calendar_urls)
        if m > n or m <= 0:
            raise ValueError("m (%d) cannot be greater than available calendar%s (%d) neither less or equal 0" %
                             (m, "" if n == 1 else "s", n))
        self.m = m
        self.timeout = timeout

        if whitelist is None:
            whitelist = opentimestamps.calendar.UrlWhitelist(DEFAULT_WHITELIST)
        self.whitelist = whitelist

        self.block_source = block_source
        self.make_calendar = make_calendar

    def _submit(self, timestamp):
        """Submit to the calendars, merging their timestamps into timestamp"""
        n = len(self.calendar_urls)
        logging.debug("Doing %d-of-%d request, timeout is %d second%s" %
                      (self.m, n, self.timeout, "" if self.timeout == 1 else "s"))

        q = Queue()
        for calendar_url in self.calendar_urls:
            submit_async(self.make_calendar(calendar_url), timestamp.msg, q, self.timeout)

        start = time.time()
        merged = 0
        errors = []
        for i in range(n):
            try:
                remaining = max(0, self.timeout - (time.time() - start))
                result = q.get(block=True, timeout=remaining)
            except Empty:
                # Timeout
                continue

            if isinstance(result, Timestamp):
                try:
                    timestamp.merge(result)
                    merged += 1
                except ValueError as exp:
                    errors.append(str(exp))
            else:
                logging.debug(str(result))
                errors.append(str(result))

        logging.debug("%.2f seconds elapsed" % (time.time() - start))

        if merged < self.m:
            reason = "need at least %d attestation%s but received %d within timeout" % \
                     (self.m, "" if self.m == 1 else "s", merged)
            if errors:
                reason += " (%s)" % '; '.join(errors)
            raise AnchoringUnavailableError("Failed to create timestamp: " + reason)

    def stamp(self, fingerprint):
        digest = fingerprint_digest(fingerprint)
        detached = DetachedTimestampFile(OpSHA256(), Timestamp(digest))

        # The nonce keeps the calendars from learning the fingerprint, and
        # makes each submission of the same content a distinct proof.
        nonce_appended_stamp = detached.timestamp.ops.add(OpAppend(os.urandom(16)))
        commitment = nonce_appended_stamp.ops.add(OpSHA256())

        self._submit(commitment)
        return serialize_detached(detached)

    def upgrade(self, timestamp, output):
        """Ask whitelisted calendars for upgrades to pending attestations

        Returns True if the timestamp changed.
        """
        changed = False
        existing_attestations = get_attestations(timestamp)

        for sub_stamp, attestation in list(walk_pending(timestamp)):
            if attestation.uri not in self.whitelist:
                output.append("Ignoring attestation from calendar %s: Calendar not in whitelist" % attestation.uri)
                continue

            calendar = self.make_calendar(attestation.uri)
            try:
                upgraded_stamp = calendar.get_timestamp(sub_stamp.msg, timeout=self.timeout)
            except opentimestamps.calendar.CommitmentNotFoundError as exp:
                output.append("Calendar %s: %s" % (attestation.uri, exp.reason))
                continue
            except urllib.error.URLError as exp:
                output.append("Calendar %s: %s" % (attestation.uri, exp.reason))
                continue
            except Exception as exp:
                output.append("Calendar %s: %s" % (attestation.uri, exp))
                continue

            new_attestations = get_attestations(upgraded_stamp).difference(existing_attestations)
            if new_attestations:
                output.append("Got %d attestation(s) from %s" % (len(new_attestations), attestation.uri))
                existing_attestations.update(new_attestations)
                sub_stamp.merge(upgraded_stamp)
                changed = True

        return changed

    def check_bitcoin(self, timestamp, output):
        """Verify Bitcoin attestations, lowest block first

        Returns the attested time of the first one that checks out, or None.
        """
        def attestation_key(item):
            (msg, attestation) = item
            return attestation.height

        bitcoin_attestations = sorted(((msg, attestation)
                                       for msg, attestation in timestamp.all_attestations()
                                       if attestation.__class__ == BitcoinBlockHeaderAttestation),
                                      key=attestation_key)

        for msg, attestation in bitcoin_attestations:
            if self.block_source is None:
                output.append("Not checking Bitcoin attestation at height %d; no block header source" %
                              attestation.height)
                continue

            try:
                block_header = self.block_source.get_block_header(attestation.height)
            except BlockHeaderUnavailableError as exp:
                output.append(str(exp))
                continue

            try:
                attested_time = attestation.verify_against_blockheader(msg, block_header)
            except VerificationError as err:
                output.append("Bitcoin verification failed: %s" % str(err))
                continue

            output.append("Success! Bitcoin block %d attests data existed as of %s" %
                          (attestation.height, time.strftime('%c %Z', time.gmtime(attested_time))))

            # One Bitcoin attestation is enough
            return attested_time

        return None

    def verify(self, fingerprint, proof):
        fingerprint = validate_fingerprint(fingerprint)
        output = []

        try:
            detached = parse_proof(proof)
        except InvalidProofError as exp:
            return BackendVerification(False, str(exp), error=str(exp), message='Verification failed')

        # Proofs made by the ots tool timestamp the fingerprint's hex text
        # rather than the fingerprint itself; both are accepted.
        expected_digests = (fingerprint_digest(fingerprint),
                            hashlib.sha256(fingerprint.encode('utf8')).digest())
        if detached.file_hash_op.__class__ != OpSHA256 or detached.file_digest not in expected_digests:
            error = "Proof does not commit to fingerprint %s" % fingerprint
            return BackendVerification(False, error, error=error, message='Verification failed')

        changed = self.upgrade(detached.timestamp, output)
        attested_time = self.check_bitcoin(detached.timestamp, output)

        upgraded_proof = serialize_detached(detached) if changed else None
        text = '\n'.join(output)
        for line in output:
            logging.debug(line)

        if attested_time is not None:
            return BackendVerification(True, text, message=output[-1], upgraded_proof=upgraded_proof)

        if any(True for _ in walk_pending(detached.timestamp)):
            return BackendVerification(False, text, pending=True,
                                       message='Timestamp not yet confirmed in the Bitcoin blockchain',
                                       upgraded_proof=upgraded_proof)

        return BackendVerification(False, text, error=output[-1] if output else 'No attestations in proof',
                                   message='Verification failed', upgraded_proof=upgraded_proof)

    def describe(self):
        return {'backend': self.name,
                'calendars': list(self.calendar_urls),
                'm': self.m,
                'block_source': getattr(self.block_source, 'name', None)}
