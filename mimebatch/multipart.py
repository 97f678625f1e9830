# Copyright (c) 2009-2010 Six Apart Ltd.
# All rights reserved.
#
# Redistribution and use in source and binary forms, with or without
# modification, are permitted provided that the following conditions are met:
#
# * Redistributions of source code must retain the above copyright notice,
#   this list of conditions and the following disclaimer.
#
# * Redistributions in binary form must reproduce the above copyright notice,
#   this list of conditions and the following disclaimer in the documentation
#   and/or other materials provided with the distribution.
#
# * Neither the name of Six Apart Ltd. nor the names of its contributors may
#   be used to endorse or promote products derived from this software without
#   specific prior written permission.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS"
# AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO, THE
# IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE
# ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR CONTRIBUTORS BE
# LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR
# CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO, PROCUREMENT OF
# SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS
# INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN
# CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE)
# ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

from email.feedparser import BytesFeedParser
import re


BOUNDARY = '__END_OF_PART__'
JSON_CONTENT_TYPE = 'application/json; charset=UTF-8'
CRLF = b'\r\n'

_LINE_SPLIT = re.compile(r'\r?\n')
_BLANK_LINE = re.compile(br'\r?\n\r?\n')


class ParserError(Exception): pass
class BadRequestException(ParserError): pass
class BadResponseException(ParserError): pass


def _split_message(raw, error):
    """Split a raw HTTP message into its start line, its headers as a list
    of lower-cased ``(name, value)`` pairs, and its body bytes."""
    mo = _BLANK_LINE.search(raw)
    if mo is None:
        head, body = raw, b''
    else:
        head, body = raw[:mo.start()], raw[mo.end():]
    lines = _LINE_SPLIT.split(head.decode('utf-8', 'replace'))
    start_line = lines.pop(0)
    if not start_line.strip():
        raise error('Missing start line in HTTP message')

    headers = []
    for line in lines:
        if not line:
            continue
        if line[0] in ' \t':
            # obsolete line folding
            if not headers:
                raise error('Continuation line before any header: %r' % line)
            name, value = headers[-1]
            headers[-1] = (name, '%s %s' % (value, line.strip()))
            continue
        if ':' not in line:
            raise error('Malformed header line: %r' % line)
        name, value = line.split(':', 1)
        headers.append((name.strip().lower(), value.strip()))
    return start_line, headers, body


def _render_message(start_line, headers, data):
    lines = [start_line]
    lines.extend('%s: %s' % (name, value) for name, value in headers)
    head = ''.join('%s\r\n' % line for line in lines)
    return head.encode('utf-8') + CRLF + (data or b'')


class HTTPMessage(object):

    def get_header(self, name, default=None):
        name = name.lower()
        for header, value in self.headers:
            if header.lower() == name:
                return value
        return default

    @property
    def content_type(self):
        return self.get_header('content-type')

    @property
    def length(self):
        value = self.get_header('content-length')
        if value is None:
            return None
        return int(value)


class HTTPRequest(HTTPMessage):
    def __init__(self, command, request_uri, headers=None, data=b'',
                 version='HTTP/1.1', request_id=None):
        self.command = command
        self.request_uri = request_uri
        self.version = version
        self.headers = list(headers or [])
        self.data = data
        self.request_id = request_id

    @classmethod
    def parse(cls, raw, request_id=None):
        request_line, headers, data = _split_message(raw, BadRequestException)
        parts = request_line.split()
        try:
            command, request_uri, version = parts[0], parts[1], parts[2]
        except IndexError:
            raise BadRequestException('Malformed request line: %r' % request_line)
        return cls(command, request_uri, headers, data, version, request_id)

    def __bytes__(self):
        request_line = "%s %s %s" % (self.command, self.request_uri, self.version)
        return _render_message(request_line, self.headers, self.data)


class HTTPResponse(HTTPMessage):
    def __init__(self, status, message='', headers=None, data=b'',
                 version='HTTP/1.1', request_id=None):
        self.status = status
        self.message = message
        self.version = version
        self.headers = list(headers or [])
        self.data = data
        self.request_id = request_id

    @classmethod
    def parse(cls, raw, request_id=None):
        status_line, headers, data = _split_message(raw, BadResponseException)
        parts = status_line.split(None, 1)
        # Some batch processors leave off the protocol version.
        if parts[0].startswith('HTTP/'):
            version = parts.pop(0)
            parts = parts[0].split(None, 1) if parts else []
        else:
            version = None
        try:
            status = int(parts[0])
        except (IndexError, ValueError):
            raise BadResponseException('Malformed status line: %r' % status_line)
        try:
            message = parts[1]
        except IndexError:
            message = '' # sometimes there is no message
        return cls(status, message, headers, data, version, request_id)

    def __bytes__(self):
        status_line = "%s %d %s" % (self.version or 'HTTP/1.1', self.status, self.message)
        return _render_message(status_line.rstrip(), self.headers, self.data)


class HTTPRequestPart(object):

    """One ``application/http`` part of a batch request, wrapping a
    rendered `HTTPRequest` and the 1-based id used to match its response."""

    def __init__(self, http_request, request_id):
        self.message = http_request
        self.request_id = request_id

    def as_bytes(self, boundary=BOUNDARY):
        payload = bytes(self.message)
        lines = [
            '--%s' % boundary,
            'Content-Length: %d' % len(payload),
            'Content-Type: application/http',
            'content-id: %s' % self.request_id,
            'content-transfer-encoding: binary',
            '',
            '',
        ]
        return '\r\n'.join(lines).encode('ascii') + payload + CRLF


class MultipartHTTPMessage(object):
    def __init__(self, boundary=BOUNDARY):
        self.boundary = boundary
        self.parts = []

    def __len__(self):
        return len(self.parts)

    def attach(self, part):
        self.parts.append(part)

    @property
    def content_type(self):
        return 'multipart/mixed; boundary=%s' % self.boundary

    def as_bytes(self):
        chunks = [part.as_bytes(self.boundary) for part in self.parts]
        chunks.append(('--%s--' % self.boundary).encode('ascii') + CRLF)
        return b''.join(chunks)


class HttpAverseParser(BytesFeedParser):

    # Keep application/http parts from turning into Messages, as the HTTP
    # start line would confuse the parser. Their payloads stay raw bytes.

    def _parse_headers(self, lines):
        BytesFeedParser._parse_headers(self, lines)
        if self._cur.get_content_type() == 'application/http':
            self._set_headersonly()


class HTTPParser(object):
    def __init__(self, content_type, body):
        self.requests = []
        self.responses = []
        self._parse(content_type, body)

    def _parse(self, content_type, body):
        p = HttpAverseParser()
        p.feed(('Content-Type: %s\r\n\r\n' % content_type).encode('latin-1'))
        p.feed(body)
        msg = p.close()

        if not msg.is_multipart():
            raise ParserError('Message was not a MIME multipart message')

        for part in msg.get_payload():
            if part.get_content_type() != 'application/http':
                raise ParserError("Unrecognized message type: '%s'" % part.get_content_type())
            payload = part.get_payload(decode=True)
            if not payload:
                raise ParserError("Missing payload in part")

            request_id = part.get('content-id', None)
            if payload.startswith(b'HTTP/') or payload[:1].isdigit():
                self.responses.append(HTTPResponse.parse(payload, request_id))
            else:
                self.requests.append(HTTPRequest.parse(payload, request_id))
