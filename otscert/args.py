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

import argparse
import logging
import os
import socket
import sys

import appdirs
import opentimestamps.calendar

import otscert
import otscert.cmds
from otscert.anchor import DEFAULT_VERIFICATION_URL
from otscert.backend import DEFAULT_TOOL_TIMEOUT, OtsCliBackend
from otscert.blocksource import DEFAULT_EXPLORER_URL, ExplorerBlockSource, RpcBlockSource
from otscert.calendar import CalendarBackend, DEFAULT_CALENDAR_URLS, DEFAULT_WHITELIST
from otscert.proofstore import ProofStore

APP_NAME = 'ots-certify'

DEFAULT_PROOF_STORE = appdirs.user_data_dir(APP_NAME) + '/proofs'
DEFAULT_SCRATCH_DIR = appdirs.user_cache_dir(APP_NAME) + '/scratch'

EXPLORER_URLS = {'mainnet': DEFAULT_EXPLORER_URL,
                 'testnet': 'https://blockstream.info/testnet/api'}


def env_flag(name, default=True):
    """True unless the variable is set to "false", in any case"""
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() != 'false'


def make_common_options_arg_parser():
    parser = argparse.ArgumentParser(description="Issue and verify OpenTimestamps anchored certificates.")
    parser.add_argument('--version', action='version', version='v%s' % otscert.__version__)

    parser.add_argument("-q", "--quiet", action="count", default=0,
                        help="Be more quiet.")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Be more verbose. Both -v and -q may be used multiple times.")

    parser.add_argument('--backend', dest='backend_name', choices=['cli', 'calendar'],
                        default=os.environ.get('OTS_CERTIFY_BACKEND', 'cli'),
                        help="How to anchor: shell out to the ots tool, or talk to "
                             "calendars directly. Default: %(default)s")
    parser.add_argument('--ots-path', type=str, default=os.environ.get('OTS_PATH', 'ots'),
                        help="ots executable. Default: %(default)s")
    parser.add_argument('--tool-timeout', type=int, default=DEFAULT_TOOL_TIMEOUT,
                        help="Seconds before giving up on the ots tool. Default: %(default)d")
    parser.add_argument('--scratch-dir', type=str, default=DEFAULT_SCRATCH_DIR,
                        help="Where the ots tool's temporary files go. Default: %(default)s")

    parser.add_argument('-c', '--calendar', metavar='URL', dest='calendar_urls', action='append', type=str,
                        default=[],
                        help='Submit to this remote calendar (calendar backend). May be specified multiple times.')
    parser.add_argument("-m", type=int, default=2,
                        help="Submission succeeds if at least M calendars replied "
                             "within the timeout (calendar backend). Default: %(default)s")
    parser.add_argument("--timeout", type=int, default=5,
                        help="Timeout before giving up on a calendar. Default: %(default)d")

    whitelist_group = parser.add_mutually_exclusive_group()
    whitelist_group.add_argument('-l', '--whitelist', metavar='URL', action='append', type=str,
                                 default=[],
                                 help='Whitelist a remote calendar for upgrades. If no whitelist is specified, %s is whitelisted by default.' % DEFAULT_WHITELIST)
    whitelist_group.add_argument('--no-remote-calendars', dest='whitelist', action='store_const',
                                 const=None,
                                 default=[],
                                 help='Prevent any remote calendar from being contacted for upgrades.')

    store_group = parser.add_mutually_exclusive_group()
    store_group.add_argument("--proof-store", action="store", type=str,
                             dest='proof_store_path',
                             default=os.environ.get('OTS_CERTIFY_PROOF_STORE', DEFAULT_PROOF_STORE),
                             help="Where submitted proofs are retained. Default: %(default)s")
    store_group.add_argument("--no-proof-store", action="store_const", const=None,
                             dest='proof_store_path',
                             help="Don't retain proofs")

    btc_net_group = parser.add_mutually_exclusive_group()
    btc_net_group.add_argument('--btc-testnet', dest='btc_net', action='store_const',
                               const='testnet', default='mainnet',
                               help='Use Bitcoin testnet rather than mainnet')
    btc_net_group.add_argument('--btc-regtest', dest='btc_net', action='store_const',
                               const='regtest',
                               help='Use Bitcoin regtest rather than mainnet')
    btc_net_group.add_argument('--no-bitcoin', dest='use_bitcoin', action='store_false',
                               default=True,
                               help='Disable Bitcoin attestation checking entirely')

    parser.add_argument("--bitcoin-node", dest="bitcoin_node", type=str,
                        help="Bitcoin node URL to check attestations against (calendar "
                             "backend). Without one, a block explorer is used.")
    parser.add_argument("--block-explorer", dest="block_explorer", type=str,
                        help="Esplora compatible block explorer API URL. Default: %s" % DEFAULT_EXPLORER_URL)

    parser.add_argument("--verification-url", type=str,
                        default=os.environ.get('OTS_CERTIFY_VERIFICATION_URL', DEFAULT_VERIFICATION_URL),
                        help="Verification URL printed on certificates. Default: %(default)s")

    parser.add_argument("--socks5-proxy", type=str,
                        help="Route all traffic through a socks5 proxy, "
                             "including DNS queries. The default port is 1080. "
                             "Format: domain[:port] (e.g. localhost:9050)")

    return parser


def add_sink_options(parser):
    parser.add_argument('--pinata-api-key', default=os.environ.get('PINATA_API_KEY'),
                        help='Pin certificates to IPFS through Pinata (env PINATA_API_KEY)')
    parser.add_argument('--pinata-secret-key', default=os.environ.get('PINATA_SECRET_KEY'),
                        help='Pinata secret key (env PINATA_SECRET_KEY)')
    parser.add_argument('--supabase-url', default=os.environ.get('SUPABASE_URL'),
                        help='Log certificates to this Supabase project (env SUPABASE_URL)')
    parser.add_argument('--supabase-key', default=os.environ.get('SUPABASE_KEY'),
                        help='Supabase service key (env SUPABASE_KEY)')
    parser.add_argument('--webhook-url', default=os.environ.get('MAKE_WEBHOOK_URL'),
                        help='Post issued certificates to this webhook (env MAKE_WEBHOOK_URL)')
    parser.add_argument('--no-webhook', dest='webhook_enabled', action='store_false',
                        default=env_flag('MAKE_WEBHOOK_ENABLED'),
                        help='Disable the webhook even if configured')


def add_content_options(parser, digest=True):
    target_group = parser.add_mutually_exclusive_group(required=True)
    target_group.add_argument('-f', metavar='FILE', dest='target_fd', type=argparse.FileType('rb'),
                              default=None,
                              help='Certify the contents of a file')
    target_group.add_argument('-t', '--text', metavar='TEXT', dest='text', type=str,
                              default=None,
                              help='Certify a piece of text')
    if digest:
        target_group.add_argument('-d', metavar='DIGEST', dest='hex_digest', type=str,
                                  default=None,
                                  help='Use a (hex-encoded) SHA256 digest directly')


def make_block_source(args):
    if not args.use_bitcoin:
        return None

    if args.bitcoin_node is not None or args.btc_net == 'regtest':
        return RpcBlockSource(args.btc_net, service_url=args.bitcoin_node)

    url = args.block_explorer or EXPLORER_URLS[args.btc_net]
    return ExplorerBlockSource(url, timeout=args.timeout)


def make_backend(args):
    if args.backend_name == 'calendar':
        try:
            return CalendarBackend(calendar_urls=args.calendar_urls or DEFAULT_CALENDAR_URLS,
                                   m=args.m,
                                   timeout=args.timeout,
                                   whitelist=args.whitelist,
                                   block_source=make_block_source(args))
        except ValueError as exp:
            logging.error(str(exp))
            sys.exit(1)

    else:
        return OtsCliBackend(ots_path=args.ots_path,
                             timeout=args.tool_timeout,
                             scratch_dir=args.scratch_dir)


def handle_common_options(args, parser):
    args.parser = parser
    args.verbosity = args.verbose - args.quiet

    if args.proof_store_path is not None:
        args.proof_store_path = os.path.normpath(os.path.expanduser(args.proof_store_path))
    try:
        args.proof_store = ProofStore(args.proof_store_path)
    except Exception as exp:
        logging.error("Could not open proof store %r: %s" % (args.proof_store_path, exp))
        sys.exit(1)

    if args.scratch_dir is not None:
        args.scratch_dir = os.path.normpath(os.path.expanduser(args.scratch_dir))

    if args.whitelist is not None:
        if not args.whitelist:
            args.whitelist = DEFAULT_WHITELIST
        args.whitelist = opentimestamps.calendar.UrlWhitelist(args.whitelist)
    else:
        args.whitelist = opentimestamps.calendar.UrlWhitelist()

    if args.socks5_proxy is not None:
        try:
            import socks
        except ImportError as exp:
            logging.error("Can not use SOCKS5 proxy: %s" % exp)
            sys.exit(1)

        e = args.socks5_proxy.split(':')
        s5_hostname = e[0]
        if len(e) > 1:
            if e[1].isdigit():
                s5_port = int(e[1])
            else:
                args.parser.error("SOCKS5 proxy port must be an integer; got %s" % e[1])
        else:
            s5_port = 1080

        socks.set_default_proxy(socks.SOCKS5,
                                s5_hostname,
                                s5_port)

        # Monkey patch socket to use SOCKS5 proxy
        socket.socket = socks.socksocket

        # This should prevent DNS leaks
        def create_connection(address, timeout=None, source_address=None):
            sock = socks.socksocket()
            sock.connect(address)
            return sock
        socket.create_connection = create_connection

    args.make_backend = lambda: make_backend(args)

    return args


def parse_certify_args(raw_args):
    parser = make_common_options_arg_parser()

    subparsers = parser.add_subparsers(title='Subcommands',
                                       description='All operations are done through subcommands:')

    # ----- stamp -----
    parser_stamp = subparsers.add_parser('stamp', aliases=['s'],
                                         help='Submit files or text for timestamping')
    parser_stamp.add_argument('-t', '--text', metavar='TEXT', dest='text', type=str, default=None,
                              help='Timestamp a piece of text instead of files')
    parser_stamp.add_argument('files', metavar='FILE', type=argparse.FileType('rb'),
                              nargs='*',
                              help='Filename; the proof is written to FILE.proof')

    # ----- verify -----
    parser_verify = subparsers.add_parser('verify', aliases=['v'],
                                          help="Verify a proof")
    add_content_options(parser_verify)
    parser_verify.add_argument('proof_fd', metavar='PROOF', type=argparse.FileType('rb'), nargs='?',
                               default=None,
                               help='Proof filename. Default: the retained proof, if any')

    # ----- info -----
    parser_info = subparsers.add_parser('info', aliases=['i'],
                                        help='Show information on a proof')
    parser_info.add_argument('file', metavar='PROOF', type=argparse.FileType('rb'),
                             help='Proof filename')

    # ----- certify -----
    parser_certify = subparsers.add_parser('certify', aliases=['c'],
                                           help='Issue a certificate')
    add_content_options(parser_certify)
    parser_certify.add_argument('--name', dest='user_name', type=str, default=None,
                                help='Name of the submitter')
    parser_certify.add_argument('--email', type=str, default=None,
                                help='Email of the submitter')
    parser_certify.add_argument('--title', type=str, default=None,
                                help='Title of the work')
    parser_certify.add_argument('-o', '--output', type=str, default=None,
                                help='Where to write the certificate. Default: CERT_<id>.pdf (or .html)')
    add_sink_options(parser_certify)

    # ----- serve -----
    parser_serve = subparsers.add_parser('serve',
                                         help='Run the HTTP API')
    parser_serve.add_argument('--host', type=str, default=os.environ.get('HOST', '127.0.0.1'),
                              help='Address to listen on. Default: %(default)s')
    parser_serve.add_argument('--port', type=int, default=int(os.environ.get('PORT', 3000)),
                              help='Port to listen on. Default: %(default)d')
    add_sink_options(parser_serve)

    parser_stamp.set_defaults(cmd_func=otscert.cmds.stamp_command)
    parser_verify.set_defaults(cmd_func=otscert.cmds.verify_command)
    parser_info.set_defaults(cmd_func=otscert.cmds.info_command)
    parser_certify.set_defaults(cmd_func=otscert.cmds.certify_command)
    parser_serve.set_defaults(cmd_func=otscert.cmds.serve_command)

    args = parser.parse_args(raw_args)
    args = handle_common_options(args, parser)

    return args
