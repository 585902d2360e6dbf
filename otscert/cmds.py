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
import sys

from otscert.anchor import AnchorClient
from otscert.certificate import Issuer
from otscert.errors import InvalidInputError, InvalidProofError
from otscert.hasher import fingerprint_fd, fingerprint_text, validate_fingerprint
from otscert.proof import bitcoin_heights, describe_proof, proof_state
from otscert.render import artifact_filename, default_chain
from otscert.sinks import CertificateLog, IpfsArchive, WebhookNotifier
from otscert.verifier import Verifier


def make_anchor_client(args):
    return AnchorClient(args.make_backend(), proof_store=args.proof_store,
                        verification_url=args.verification_url)


def make_verifier(args):
    return Verifier(args.make_backend(), proof_store=args.proof_store,
                    verification_url=args.verification_url)


def make_sinks(args):
    """Sinks for whatever is configured, IPFS first"""
    sinks = []
    if args.pinata_api_key and args.pinata_secret_key:
        sinks.append(IpfsArchive(args.pinata_api_key, args.pinata_secret_key))
    elif args.pinata_api_key or args.pinata_secret_key:
        logging.warning("Pinata needs both an API key and a secret key; IPFS archival disabled")

    if args.supabase_url and args.supabase_key:
        sinks.append(CertificateLog(args.supabase_url, args.supabase_key))

    if args.webhook_url:
        sinks.append(WebhookNotifier(args.webhook_url, enabled=args.webhook_enabled))

    for sink in sinks:
        logging.debug("Sink enabled: %s" % sink.name)
    return sinks


def make_issuer(args):
    return Issuer(make_anchor_client(args), default_chain(), make_sinks(args))


def content_fingerprint(args):
    """Fingerprint of whatever -f/-t/-d pointed at"""
    try:
        if args.target_fd is not None:
            logging.debug("Hashing file %r" % args.target_fd.name)
            return fingerprint_fd(args.target_fd)
        elif args.text is not None:
            return fingerprint_text(args.text)
        else:
            return validate_fingerprint(args.hex_digest)
    except InvalidInputError as exp:
        logging.error(str(exp))
        sys.exit(1)


def stamp_command(args):
    client = make_anchor_client(args)

    if args.text is not None and args.files:
        args.parser.error('Give either --text or files, not both')

    try:
        if args.text is not None:
            targets = [(None, fingerprint_text(args.text))]
        elif args.files:
            targets = [(fd.name, fingerprint_fd(fd)) for fd in args.files]
        else:
            targets = [(None, fingerprint_fd(sys.stdin.buffer))]
    except InvalidInputError as exp:
        logging.error(str(exp))
        sys.exit(1)

    failed = False
    for file_name, fingerprint in targets:
        result = client.submit(fingerprint)
        if not result.success:
            logging.error("Failed to timestamp %s: %s" % (file_name or fingerprint, result.error))
            failed = True
            continue

        logging.info("%s: %s" % (file_name or fingerprint, result.message))
        if file_name is None:
            print(result.proof_b64)
            continue

        proof_path = file_name + '.proof'
        try:
            with open(proof_path, 'xb') as proof_fd:
                proof_fd.write(result.proof)
        except IOError as exp:
            logging.error("Failed to write proof %r: %s" % (proof_path, exp))
            failed = True

    if failed:
        sys.exit(1)


def verify_command(args):
    fingerprint = content_fingerprint(args)
    verifier = make_verifier(args)

    proof = None
    if args.proof_fd is not None:
        with args.proof_fd:
            proof = args.proof_fd.read()

    try:
        result = verifier.verify_fingerprint(fingerprint, proof)
    except InvalidProofError as exp:
        logging.error("Invalid proof: %s" % exp)
        sys.exit(1)

    for line in result.output.splitlines():
        logging.debug("    %s" % line)

    if result.verified:
        logging.info("Success! %s" % result.message)
    elif result.pending:
        logging.warning("Pending! %s" % result.message)
        sys.exit(1)
    else:
        logging.error("Failed! %s%s" % (result.message, ": %s" % result.error if result.error else ""))
        sys.exit(1)


def info_command(args):
    with args.file:
        proof = args.file.read()

    try:
        description = describe_proof(proof, verbosity=args.verbosity)
    except InvalidProofError as exp:
        logging.error("Error! %r is not a readable proof: %s" % (args.file.name, exp))
        sys.exit(1)

    print(description)
    print("State: %s" % proof_state(proof))

    heights = bitcoin_heights(proof)
    if heights:
        print("Bitcoin block%s: %s" % ("" if len(heights) == 1 else "s", ", ".join(str(height) for height in heights)))


def certify_command(args):
    fingerprint = content_fingerprint(args)
    file_name = os.path.basename(args.target_fd.name) if args.target_fd is not None else None

    issued = make_issuer(args).issue(fingerprint,
                                     user_name=args.user_name,
                                     email=args.email,
                                     title=args.title,
                                     file_name=file_name)

    output_path = args.output
    if output_path is None:
        output_path = artifact_filename(issued.record, issued.kind)

    try:
        with open(output_path, 'xb') as fd:
            fd.write(issued.artifact)
    except IOError as exp:
        logging.error("Failed to write certificate %r: %s" % (output_path, exp))
        sys.exit(1)

    logging.info("Certificate %s written to %s" % (issued.record.certificate_id, output_path))
    logging.info("Anchoring %s; verify at %s" % (issued.record.anchoring_status, issued.record.verification_url))
    for name, result in sorted(issued.sink_results.items()):
        logging.info("%s: %s" % (name, result.details))


def serve_command(args):
    from otscert.server import create_app

    app = create_app(make_issuer(args), make_verifier(args), proof_store=args.proof_store)
    logging.info("Listening on %s:%d" % (args.host, args.port))
    app.run(host=args.host, port=args.port, threaded=True)
