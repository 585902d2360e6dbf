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

"""Errors raised by the certification core

Only the InvalidInputError family ever escapes the anchoring and verification
core; everything else is turned into a structured result at the component
boundary.
"""


class CertifyError(Exception):
    """Base class for all OTS Certify errors"""


class InvalidInputError(CertifyError, ValueError):
    """Malformed content, fingerprint or proof"""


class InvalidFingerprintError(InvalidInputError):
    """Fingerprint is not 64 hex characters"""


class InvalidProofError(InvalidInputError):
    """Proof artifact missing, empty or not decodable"""


class AnchoringUnavailableError(CertifyError):
    """The anchoring tool or calendars could not be reached, or errored"""


class VerificationInconclusiveError(CertifyError):
    """The verifier produced an ambiguous signal, or none at all"""

    def __init__(self, reason, output=''):
        super().__init__(reason)
        self.reason = reason
        self.output = output


class RenderingUnavailableError(CertifyError):
    """A certificate renderer failed or is not installed"""


class SinkError(CertifyError):
    """An archival, logging or notification sink failed"""
