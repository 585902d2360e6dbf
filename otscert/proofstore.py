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

import logging
import os
import tempfile

from otscert.hasher import validate_fingerprint


class ProofStore:
    """Persistent store of the latest proof for each fingerprint

    Proofs submitted through this process are retained here so that they can
    be verified later without the caller having to supply them. A path of
    None gives a store that remembers nothing.
    """

    def __init__(self, path):
        self.path = path

        if path is not None:
            # Simple version scheme
            try:
                with open(os.path.join(self.path, 'version'), 'r') as fd:
                    try:
                        major, minor = fd.read().strip().split('.')
                        major = int(major)
                        minor = int(minor)
                        if major != 1:
                            raise ValueError(major)
                    except ValueError:
                        raise Exception("Unknown proof store version")

            except FileNotFoundError:
                os.makedirs(self.path, exist_ok=True)
                with open(os.path.join(self.path, 'version'), 'w') as fd:
                    fd.write('%d.%d\n' % (1, 0))

    def __fingerprint_to_filename(self, fingerprint):
        fingerprint = validate_fingerprint(fingerprint)
        return os.path.join(self.path,
                            fingerprint[0:2],
                            fingerprint[2:4],
                            fingerprint + '.ots')

    def __contains__(self, fingerprint):
        try:
            self[fingerprint]
            return True
        except KeyError:
            return False

    def __getitem__(self, fingerprint):
        if self.path is None:
            raise KeyError(fingerprint)

        try:
            with open(self.__fingerprint_to_filename(fingerprint), 'rb') as proof_fd:
                return proof_fd.read()
        except FileNotFoundError:
            raise KeyError(fingerprint)

    def get(self, fingerprint, default=None):
        try:
            return self[fingerprint]
        except KeyError:
            return default

    def save(self, fingerprint, proof):
        """Retain proof for fingerprint, replacing any earlier one"""
        if self.path is None:
            return

        path = self.__fingerprint_to_filename(fingerprint)
        os.makedirs(os.path.dirname(path), exist_ok=True)

        # Write then rename, so concurrent readers never see half a proof
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(path), prefix='.tmp-')
        try:
            with os.fdopen(fd, 'wb') as tmp_fd:
                tmp_fd.write(proof)
            os.replace(tmp_path, path)
        except BaseException:
            os.unlink(tmp_path)
            raise

        logging.debug("Retained %d byte proof for %s" % (len(proof), fingerprint))
