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

"""HTTP interface

Issuance and verification requests each run on their own thread; malformed
input is the only thing answered with an HTTP error.
"""

import logging

from flask import Flask, Response, jsonify, request

import otscert
from otscert.errors import InvalidInputError
from otscert.hasher import fingerprint_bytes, fingerprint_text, validate_fingerprint
from otscert.proof import encode_proof, proof_state
from otscert.render import ARTIFACT_CONTENT_TYPES, artifact_filename


def request_data():
    """JSON body or form fields, whichever the client sent"""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def first_of(data, *keys):
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def create_app(issuer, verifier, proof_store=None):
    app = Flask(__name__)

    @app.errorhandler(InvalidInputError)
    def invalid_input(exp):
        return jsonify({'error': str(exp)}), 400

    @app.route('/health')
    def health():
        renderers = [renderer.name for renderer in issuer.renderer_chain.available]
        return jsonify({'status': 'ok',
                        'version': otscert.__version__,
                        'anchoring': issuer.anchor_client.backend.describe(),
                        'renderers': renderers,
                        'sinks': [sink.name for sink in issuer.sinks]})

    @app.route('/certify', methods=['POST'])
    def certify():
        data = request_data()
        file_name = first_of(data, 'file_name', 'fileName')

        upload = request.files.get('file')
        if upload is not None:
            content = upload.read()
            if not content:
                raise InvalidInputError('Uploaded file is empty')
            fingerprint = fingerprint_bytes(content)
            file_name = file_name or upload.filename

        elif data.get('text'):
            fingerprint = fingerprint_text(data['text'])

        else:
            fingerprint = first_of(data, 'fingerprint', 'fileHash', 'hash')
            if fingerprint is None:
                raise InvalidInputError('Provide a file, text, or fingerprint to certify')
            fingerprint = validate_fingerprint(fingerprint)

        issued = issuer.issue(fingerprint,
                              user_name=first_of(data, 'user_name', 'userName'),
                              email=data.get('email'),
                              title=data.get('title'),
                              file_name=file_name)

        content_type = ARTIFACT_CONTENT_TYPES.get(issued.kind, ('application/octet-stream',))[0]
        headers = dict(issued.headers)
        headers['Content-Disposition'] = 'attachment; filename="%s"' % artifact_filename(issued.record, issued.kind)
        return Response(issued.artifact, status=200, content_type=content_type, headers=headers)

    @app.route('/verify', methods=['POST'])
    def verify():
        data = request_data()
        fingerprint = first_of(data, 'fingerprint', 'fileHash', 'hash')
        if fingerprint is None:
            raise InvalidInputError('fingerprint is required')

        upload = request.files.get('proof')
        if upload is not None:
            proof = upload.read()
        else:
            proof = first_of(data, 'proof', 'proofArtifact', 'otsData')

        result = verifier.verify_fingerprint(fingerprint, proof)
        logging.debug("Verification of %s: %r" % (result.fingerprint, result.verified))
        return jsonify(result.to_dict())

    @app.route('/verify/<fingerprint>')
    def verify_retained(fingerprint):
        return jsonify(verifier.verify_fingerprint(fingerprint).to_dict())

    @app.route('/proof/<fingerprint>')
    def get_proof(fingerprint):
        fingerprint = validate_fingerprint(fingerprint)
        proof = proof_store.get(fingerprint) if proof_store is not None else None
        if proof is None:
            return jsonify({'fingerprint': fingerprint, 'error': 'No proof found for this fingerprint'}), 404

        return jsonify({'fingerprint': fingerprint,
                        'proof': encode_proof(proof),
                        'state': proof_state(proof)})

    return app
