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

"""Where issued certificates go besides the caller

Every sink is best effort: failures are reported in a SinkResult and never
abort issuance.
"""

import base64
import datetime
import json
import logging
import urllib.parse

import requests

import otscert
from otscert.errors import SinkError
from otscert.render import ARTIFACT_CONTENT_TYPES, artifact_filename

PINATA_API_URL = 'https://api.pinata.cloud'
PINATA_GATEWAY_URL = 'https://gateway.pinata.cloud/ipfs/'
IPFS_PUBLIC_URL = 'https://ipfs.io/ipfs/'

CERTIFICATES_TABLE = 'certificates'

USER_AGENT = 'OTS-Certify/%s' % otscert.__version__

DEFAULT_SINK_TIMEOUT = 30


def utcnow_iso():
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


class SinkResult:

    def __init__(self, success, details, data=None):
        self.success = success
        self.details = details
        self.data = data or {}

    def __repr__(self):
        return 'SinkResult(success=%r, details=%r)' % (self.success, self.details)


def certificate_metadata(record):
    """Metadata document archived alongside the certificate"""
    return {'version': '1.0',
            'type': 'blockchain-certificate',
            'createdAt': utcnow_iso(),
            'certificate': {'id': record.certificate_id,
                            'userName': record.user_name,
                            'email': record.email,
                            'title': record.title,
                            'fileName': record.file_name},
            'verification': {'fileHash': record.fingerprint,
                             'hashAlgorithm': record.hash_algorithm,
                             'blockchain': record.blockchain,
                             'timestamp': record.issued_at,
                             'anchoringStatus': record.anchoring_status,
                             'verificationUrl': record.verification_url,
                             'otsData': record.to_dict()['proof']},
            'ipfs': {'uploadedAt': utcnow_iso(),
                     'network': 'IPFS via Pinata'}}


class IpfsArchive:
    """Pins certificates and their metadata to IPFS through Pinata"""

    name = 'ipfs'

    def __init__(self, api_key, secret_key, api_url=PINATA_API_URL, timeout=DEFAULT_SINK_TIMEOUT,
                 session=None):
        self.api_key = api_key
        self.secret_key = secret_key
        self.api_url = api_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def headers(self):
        return {'pinata_api_key': self.api_key,
                'pinata_secret_api_key': self.secret_key,
                'User-Agent': USER_AGENT}

    def _pinned(self, resp, what):
        try:
            result = resp.json()
        except ValueError:
            result = {}

        if not resp.ok:
            raise SinkError("Pinata %s upload failed: %s" % (what, result.get('error') or resp.status_code))

        cid = result.get('IpfsHash')
        if not cid:
            raise SinkError("Pinata %s upload returned no IPFS hash" % what)

        return {'cid': cid,
                'pin_size': result.get('PinSize'),
                'timestamp': result.get('Timestamp'),
                'gateway_url': PINATA_GATEWAY_URL + cid,
                'public_url': IPFS_PUBLIC_URL + cid}

    def pin_file(self, content, file_name, content_type='application/octet-stream', keyvalues=None):
        pinata_metadata = {'name': file_name,
                           'keyvalues': dict(keyvalues or {}, uploadedAt=utcnow_iso())}
        resp = self.session.post(self.api_url + '/pinning/pinFileToIPFS',
                                 headers=self.headers,
                                 files={'file': (file_name, content, content_type)},
                                 data={'pinataMetadata': json.dumps(pinata_metadata)},
                                 timeout=self.timeout)
        return self._pinned(resp, 'file')

    def pin_json(self, content, name='certificate-metadata'):
        payload = {'pinataContent': content,
                   'pinataMetadata': {'name': name,
                                      'keyvalues': {'uploadedAt': utcnow_iso(),
                                                    'type': 'certificate-metadata'}}}
        resp = self.session.post(self.api_url + '/pinning/pinJSONToIPFS',
                                 headers=self.headers,
                                 json=payload,
                                 timeout=self.timeout)
        return self._pinned(resp, 'JSON')

    def deliver(self, record, artifact, kind, previous=None):
        content_type = ARTIFACT_CONTENT_TYPES.get(kind, ('application/octet-stream',))[0]
        try:
            certificate = self.pin_file(artifact, artifact_filename(record, kind), content_type,
                                        keyvalues={'certificateId': record.certificate_id,
                                                   'fileHash': record.fingerprint})
            metadata = self.pin_json(certificate_metadata(record),
                                     name='%s-metadata' % record.certificate_id)
        except (requests.RequestException, SinkError) as exp:
            logging.warning("IPFS upload of %s failed: %s" % (record.certificate_id, exp))
            return SinkResult(False, 'IPFS upload error: %s' % exp)

        logging.info("Pinned certificate %s as %s" % (record.certificate_id, certificate['cid']))
        return SinkResult(True, 'Pinned certificate and metadata to IPFS',
                          {'certificate': certificate, 'metadata': metadata})


def certificate_row(record, previous=None):
    """Row for the certificates table"""
    ipfs = {}
    if previous and 'ipfs' in previous and previous['ipfs'].success:
        ipfs = previous['ipfs'].data.get('certificate', {})

    return {'certificate_id': record.certificate_id,
            'user_name': record.user_name,
            'email': record.email,
            'title': record.title,
            'file_name': record.file_name,
            'file_hash': record.fingerprint,
            'timestamp': record.issued_at,
            'blockchain': record.blockchain,
            'verification_url': record.verification_url,
            'certificate_number': record.certificate_id,
            'merkle_root': None,
            'ipfs_cid': ipfs.get('cid'),
            'ipfs_url': ipfs.get('gateway_url'),
            'ots_url': record.calendar_url,
            'created_at': utcnow_iso()}


class CertificateLog:
    """Logs issued certificates to a Supabase table"""

    name = 'log'

    def __init__(self, url, key, table=CERTIFICATES_TABLE, client=None):
        self.url = url
        self.key = key
        self.table = table
        self._client = client

    @property
    def client(self):
        if self._client is None:
            from supabase import create_client
            self._client = create_client(self.url, self.key)
        return self._client

    def deliver(self, record, artifact, kind, previous=None):
        row = certificate_row(record, previous)
        logging.debug("Logging certificate %s to table %s" % (record.certificate_id, self.table))
        try:
            response = self.client.table(self.table).insert([row]).execute()
        except Exception as exp:
            logging.warning("Database insert for %s failed: %s" % (record.certificate_id, exp))
            return SinkResult(False, 'Database insert failed: %s' % exp)

        return SinkResult(True, 'Certificate logged to %s' % self.table, {'rows': response.data})


def normalize_webhook_url(url):
    """Accept Make style "id@hook.region.make.com" addresses and scheme-less URLs

    Raises SinkError if the result still isn't a usable http(s) URL.
    """
    url = url.strip()
    if '@hook.' in url and not url.startswith('http'):
        hook_id, domain = url.split('@', 1)
        url = 'https://%s/%s' % (domain, hook_id)
    elif not url.startswith('http'):
        url = 'https://' + url

    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ('http', 'https') or not parsed.netloc or '@' in parsed.netloc:
        raise SinkError("Invalid webhook URL %r; expected https://hook.<region>.make.com/<id>" % url)
    return url


class WebhookNotifier:
    """Posts issued certificates to a webhook, typically for email delivery"""

    name = 'webhook'

    def __init__(self, url, enabled=True, timeout=DEFAULT_SINK_TIMEOUT, session=None):
        self.url = url
        self.enabled = enabled
        self.timeout = timeout
        self.session = session or requests.Session()

    def payload(self, record, artifact, kind, previous=None):
        ipfs = {}
        if previous and 'ipfs' in previous and previous['ipfs'].success:
            ipfs = previous['ipfs'].data
        content_type = ARTIFACT_CONTENT_TYPES.get(kind, ('application/octet-stream',))[0]

        return {'certificate_id': record.certificate_id,
                'certificate_number': record.certificate_id,
                'user_name': record.user_name,
                'email': record.email,
                'title': record.title,
                'file_name': record.file_name,
                'file_hash': record.fingerprint,
                'timestamp': record.issued_at,
                'blockchain': record.blockchain,
                'anchoring_status': record.anchoring_status,
                'verification_url': record.verification_url,
                'ipfs_cid': ipfs.get('certificate', {}).get('cid'),
                'ipfs_url': ipfs.get('certificate', {}).get('gateway_url'),
                'ipfs_metadata_url': ipfs.get('metadata', {}).get('gateway_url'),
                'ots_url': record.calendar_url,
                'attachment': {'filename': artifact_filename(record, kind),
                               'content': base64.standard_b64encode(artifact).decode('ascii'),
                               'contentType': content_type},
                'system_info': {'generated_by': 'OTS Certify',
                                'api_version': otscert.__version__,
                                'timestamp': utcnow_iso()}}

    def deliver(self, record, artifact, kind, previous=None):
        if not self.url:
            return SinkResult(False, 'Webhook URL not configured')
        elif not self.enabled:
            return SinkResult(False, 'Webhook disabled via configuration')
        elif not record.email.strip():
            return SinkResult(False, 'No email address provided')

        try:
            url = normalize_webhook_url(self.url)
        except SinkError as exp:
            logging.error(str(exp))
            return SinkResult(False, str(exp))

        try:
            resp = self.session.post(url, json=self.payload(record, artifact, kind, previous),
                                     headers={'User-Agent': USER_AGENT},
                                     timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException as exp:
            logging.warning("Webhook for %s failed: %s" % (record.certificate_id, exp))
            return SinkResult(False, 'Webhook failed: %s' % exp)

        logging.info("Sent certificate %s to webhook (%d)" % (record.certificate_id, resp.status_code))
        return SinkResult(True, 'Notification sent to webhook (%d)' % resp.status_code,
                          {'status': resp.status_code, 'response': resp.text})
