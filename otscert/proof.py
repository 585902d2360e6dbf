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

"""Proof artifacts

Proofs travel as opaque bytes, base64 encoded at the HTTP and database
boundaries. When they happen to be OpenTimestamps detached timestamp files
(which is what both backends produce) they can also be inspected locally.
"""

import base64
import binascii

from opentimestamps.core.notary import BitcoinBlockHeaderAttestation, PendingAttestation
from opentimestamps.core.serialize import BytesDeserializationContext, BytesSerializationContext, \
    DeserializationError
from opentimestamps.core.timestamp import DetachedTimestampFile

from otscert.errors import InvalidProofError

PROOF_PENDING = 'PENDING'
PROOF_CONFIRMED = 'CONFIRMED'
PROOF_FAILED = 'FAILED'

# Refuse anything bigger; real proofs are a few KB at most
MAX_PROOF_SIZE = 1024 * 1024


def check_proof(proof):
    """Check a proof artifact is usable bytes

    Accepts bytes, or base64 text. Returns the proof bytes.
    """
    if isinstance(proof, str):
        proof = decode_proof(proof)

    if not isinstance(proof, (bytes, bytearray, memoryview)):
        raise InvalidProofError('Proof must be bytes or base64 text; got %s' % type(proof).__name__)

    proof = bytes(proof)
    if not proof:
        raise InvalidProofError('Proof is empty')
    elif len(proof) > MAX_PROOF_SIZE:
        raise InvalidProofError('Proof exceeds size limit of %d bytes' % MAX_PROOF_SIZE)
    return proof


def encode_proof(proof):
    if proof is None:
        return None
    return base64.standard_b64encode(proof).decode('ascii')


def decode_proof(proof_b64):
    if not isinstance(proof_b64, str) or not proof_b64.strip():
        raise InvalidProofError('Proof must be non-empty base64 text')

    try:
        proof = base64.b64decode(proof_b64.strip().encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exp:
        raise InvalidProofError('Proof is not valid base64: %s' % exp)

    if not proof:
        raise InvalidProofError('Proof is empty')
    return proof


def parse_proof(proof):
    """Deserialize an OpenTimestamps detached timestamp

    Raises InvalidProofError if the bytes aren't one.
    """
    ctx = BytesDeserializationContext(check_proof(proof))
    try:
        return DetachedTimestampFile.deserialize(ctx)
    except DeserializationError as exp:
        raise InvalidProofError('Not an OpenTimestamps proof: %s' % exp)
    except (ValueError, TypeError) as exp:
        raise InvalidProofError('Corrupt OpenTimestamps proof: %s' % exp)


def serialize_detached(detached_timestamp):
    ctx = BytesSerializationContext()
    detached_timestamp.serialize(ctx)
    return ctx.getbytes()


def is_timestamp_complete(timestamp):
    """True if the timestamp has at least one Bitcoin attestation"""
    for msg, attestation in timestamp.all_attestations():
        if attestation.__class__ == BitcoinBlockHeaderAttestation:
            return True
    else:
        return False


def proof_state(proof):
    """Classify a proof as PENDING, CONFIRMED or FAILED

    Opaque proofs that can't be parsed locally are considered pending: only
    the anchoring tool can say more about them.
    """
    if not proof:
        return PROOF_FAILED

    try:
        detached = parse_proof(proof)
    except InvalidProofError:
        return PROOF_PENDING

    if is_timestamp_complete(detached.timestamp):
        return PROOF_CONFIRMED
    else:
        return PROOF_PENDING


def pending_calendar_urls(proof):
    """Calendar URIs of the pending attestations in a proof, sorted

    Returns an empty list for opaque proofs.
    """
    try:
        detached = parse_proof(proof)
    except InvalidProofError:
        return []

    return sorted(set(attestation.uri
                      for msg, attestation in detached.timestamp.all_attestations()
                      if attestation.__class__ == PendingAttestation))


def bitcoin_heights(proof):
    try:
        detached = parse_proof(proof)
    except InvalidProofError:
        return []

    return sorted(attestation.height
                  for msg, attestation in detached.timestamp.all_attestations()
                  if attestation.__class__ == BitcoinBlockHeaderAttestation)


def describe_proof(proof, verbosity=0):
    """Human readable description of a proof, like `ots info`"""
    detached = parse_proof(proof)
    lines = ['File %s hash: %s' % (detached.file_hash_op.HASHLIB_NAME,
                                   binascii.hexlify(detached.file_digest).decode('utf8')),
             'Timestamp:',
             detached.timestamp.str_tree(verbosity=verbosity)]
    return '\n'.join(lines)
