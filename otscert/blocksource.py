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

"""Sources of Bitcoin block headers for attestation checking"""

import logging
import urllib.error
import urllib.request

import bitcoin
import bitcoin.rpc
from bitcoin.core import CBlockHeader, b2lx, x

DEFAULT_EXPLORER_URL = 'https://blockstream.info/api'


class BlockHeaderUnavailableError(Exception):
    """The block header for a given height couldn't be obtained"""


class RpcBlockSource:
    """Block headers from a Bitcoin node over JSON-RPC"""

    name = 'bitcoin-rpc'

    def __init__(self, network='mainnet', service_url=None):
        bitcoin.SelectParams(network)
        self.network = network
        self.service_url = service_url

    def get_block_header(self, height):
        # Proxy objects aren't thread safe, so one per lookup
        try:
            proxy = bitcoin.rpc.Proxy(service_url=self.service_url)
        except Exception as exp:
            raise BlockHeaderUnavailableError("Could not connect to Bitcoin node: %s" % exp)

        try:
            block_count = proxy.getblockcount()
            blockhash = proxy.getblockhash(height)
        except IndexError:
            raise BlockHeaderUnavailableError("Bitcoin block height %d not found; %d is highest known block" %
                                              (height, block_count))
        except ConnectionError as exp:
            raise BlockHeaderUnavailableError("Could not connect to Bitcoin node: %s" % exp)

        logging.debug("Attestation block hash: %s" % b2lx(blockhash))
        return proxy.getblockheader(blockhash)


class ExplorerBlockSource:
    """Block headers from an Esplora compatible block explorer"""

    name = 'explorer'

    def __init__(self, url=DEFAULT_EXPLORER_URL, timeout=10):
        self.url = url.rstrip('/')
        self.timeout = timeout

    def _get(self, path):
        req = urllib.request.Request(self.url + path, headers={'Accept': 'text/plain'})
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                if resp.status != 200:
                    raise BlockHeaderUnavailableError("Unknown response from block explorer: %d" % resp.status)
                return resp.read(1000).decode('utf8').strip()
        except urllib.error.HTTPError as exp:
            raise BlockHeaderUnavailableError("Block explorer returned %d for %s" % (exp.code, path))
        except urllib.error.URLError as exp:
            raise BlockHeaderUnavailableError("Could not reach block explorer: %s" % exp.reason)

    def get_block_header(self, height):
        blockhash = self._get('/block-height/%d' % height)
        logging.debug("Attestation block hash: %s" % blockhash)

        header_hex = self._get('/block/%s/header' % blockhash)
        try:
            return CBlockHeader.deserialize(x(header_hex))
        except Exception as exp:
            raise BlockHeaderUnavailableError("Bad block header for height %d: %s" % (height, exp))
