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

"""Certificate rendering

Renderers are tried in order; the HTML renderer is always last and can't
fail, so issuing a certificate never depends on the PDF engine being
installed and working.
"""

import html
import logging
import string
import threading

from otscert.errors import RenderingUnavailableError

PDF_MAGIC = b'%PDF-'

ARTIFACT_CONTENT_TYPES = {
    'pdf': ('application/pdf', '.pdf'),
    'html': ('text/html; charset=utf-8', '.html'),
}

CERTIFICATE_TEMPLATE = string.Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<title>Certificate ${certificate_id}</title>
<style>
  body { font-family: Helvetica, Arial, sans-serif; margin: 2cm; color: #111; }
  h1 { font-size: 22pt; border-bottom: 2px solid #111; padding-bottom: 0.3em; }
  table { border-collapse: collapse; width: 100%; }
  th { text-align: left; width: 30%; padding: 0.4em 0.6em 0.4em 0; vertical-align: top; }
  td { font-family: Courier, monospace; font-size: 9pt; word-break: break-all; padding: 0.4em 0; }
  .status-${anchoring_status} { font-weight: bold; }
  footer { margin-top: 2em; font-size: 8pt; color: #555; }
</style>
</head>
<body>
<h1>Certificate of Existence</h1>
<p>This certifies that content with the fingerprint below was submitted for
timestamping in the Bitcoin blockchain via OpenTimestamps.</p>
<table>
<tr><th>Certificate ID</th><td>${certificate_id}</td></tr>
<tr><th>Name</th><td>${user_name}</td></tr>
<tr><th>Email</th><td>${email}</td></tr>
<tr><th>Title</th><td>${title}</td></tr>
<tr><th>File name</th><td>${file_name}</td></tr>
<tr><th>Fingerprint (${hash_algorithm})</th><td>${fingerprint}</td></tr>
<tr><th>Issued at</th><td>${issued_at}</td></tr>
<tr><th>Blockchain</th><td>${blockchain}</td></tr>
<tr><th>Anchoring status</th><td class="status-${anchoring_status}">${anchoring_status_text}</td></tr>
<tr><th>Calendar</th><td>${calendar_url}</td></tr>
<tr><th>Verify at</th><td>${verification_url}</td></tr>
</table>
<footer>Keep the proof file for this certificate: it is what lets anyone verify
the timestamp independently of this service.</footer>
</body>
</html>
""")

ANCHORING_STATUS_TEXT = {
    'success': 'Confirmed in the Bitcoin blockchain',
    'pending': 'Submitted; confirmation pending (usually 1-6 hours)',
    'failed': 'Anchoring failed; timestamp pending resubmission',
}


def artifact_kind(payload):
    """Sniff whether a certificate artifact is a PDF or HTML

    Returns 'pdf', 'html' or None.
    """
    if not payload:
        return None

    head = bytes(payload[0:64])
    if head.startswith(PDF_MAGIC):
        return 'pdf'

    head = head.lstrip().lower()
    if head.startswith(b'<!doctype html') or head.startswith(b'<html'):
        return 'html'

    return None


def artifact_filename(record, kind):
    extension = ARTIFACT_CONTENT_TYPES.get(kind, ('application/octet-stream', '.bin'))[1]
    return record.certificate_id + extension


def render_html(record):
    values = {key: html.escape(str(value) if value else '-')
              for key, value in record.to_dict().items()}
    values['anchoring_status_text'] = ANCHORING_STATUS_TEXT.get(record.anchoring_status, record.anchoring_status)
    return CERTIFICATE_TEMPLATE.substitute(values)


class Renderer:
    """A way of turning a CertificateRecord into artifact bytes"""

    name = None

    def available(self):
        return True

    def render(self, record):
        raise NotImplementedError


class PdfRenderer(Renderer):
    """PDF certificates via WeasyPrint"""

    name = 'pdf'

    def available(self):
        try:
            import weasyprint
        # WeasyPrint raises OSError at import time when its native
        # libraries (pango, harfbuzz) are missing
        except (ImportError, OSError) as exp:
            logging.info("PDF rendering unavailable: %s" % exp)
            return False
        return True

    def render(self, record):
        try:
            from weasyprint import HTML
            pdf = HTML(string=render_html(record)).write_pdf()
        except Exception as exp:
            raise RenderingUnavailableError("PDF rendering failed: %s" % exp)

        if artifact_kind(pdf) != 'pdf':
            raise RenderingUnavailableError("PDF renderer returned something that isn't a PDF")
        return pdf


class HtmlRenderer(Renderer):
    name = 'html'

    def render(self, record):
        return render_html(record).encode('utf8')


class RendererChain:
    """Ordered renderer candidates

    Availability is probed once, on first use.
    """

    def __init__(self, candidates):
        self.candidates = list(candidates)
        if not any(isinstance(candidate, HtmlRenderer) for candidate in self.candidates):
            self.candidates.append(HtmlRenderer())
        self.__available = None
        self.__lock = threading.Lock()

    @property
    def available(self):
        with self.__lock:
            if self.__available is None:
                self.__available = [candidate for candidate in self.candidates if candidate.available()]
                logging.debug("Available renderers: %s" % ', '.join(r.name for r in self.__available))
            return list(self.__available)

    def render(self, record):
        """Render with the first candidate that works

        Returns (artifact, kind).
        """
        for renderer in self.available:
            try:
                artifact = renderer.render(record)
            except RenderingUnavailableError as exp:
                logging.warning("Renderer %s failed, falling back: %s" % (renderer.name, exp))
                continue
            return artifact, artifact_kind(artifact)

        # Only reachable if someone passed a broken HtmlRenderer subclass
        raise RenderingUnavailableError("No renderer could produce a certificate")


_default_chain = None
_default_chain_lock = threading.Lock()


def default_chain():
    """The process wide renderer chain, created on first use"""
    global _default_chain
    with _default_chain_lock:
        if _default_chain is None:
            _default_chain = RendererChain([PdfRenderer(), HtmlRenderer()])
        return _default_chain


def reset():
    """Forget the process wide renderer chain"""
    global _default_chain
    with _default_chain_lock:
        _default_chain = None
