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

import logging
import sys

import httplib2


def log():
    logging.basicConfig(level=logging.DEBUG, stream=sys.stderr,
        format='%(levelname)s %(name)s: %(message)s')


def crlf(text):
    """Returns the given fixture text as bytes with CRLF line endings."""
    return text.replace('\r\n', '\n').replace('\n', '\r\n').encode('utf-8')


def batch_response(content_type='multipart/mixed; boundary=batch_foo', status='200'):
    return httplib2.Response({
        'status': status,
        'content-type': content_type,
    })


def split_parts(body, boundary):
    """Splits a multipart body into its raw parts, without the preamble and
    the close delimiter."""
    delimiter = b'\r\n--' + boundary.encode('ascii')
    chunks = (b'\r\n' + body).split(delimiter)
    assert chunks[-1] == b'--\r\n', chunks[-1]
    return [chunk[len(b'\r\n'):] for chunk in chunks[1:-1]]


def split_part(part):
    """Splits one raw part into a dict of its headers and its payload."""
    head, payload = part.split(b'\r\n\r\n', 1)
    headers = {}
    for line in head.decode('ascii').split('\r\n'):
        name, value = line.split(':', 1)
        headers[name.strip().lower()] = value.strip()
    return headers, payload
