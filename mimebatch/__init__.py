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

"""

mimebatch sends many independent JSON HTTP requests as one ``multipart/mixed``
batch request, and splits the batch response back into one response per
request.

Each subrequest is carried as a raw HTTP/1.1 request message in its own
``application/http`` part, numbered by a ``content-id`` header. The batch
processor answers with a ``multipart/mixed`` response whose parts are raw
HTTP/1.1 response messages, which `BatchClient.send()` returns as
`SubResponse` instances in the order the subrequests were given.

>>> client = BatchClient(endpoint='https://example.com/batch')
>>> responses = client.send([
...     SubRequest('https://example.com/v1/messages:send', {'foo': 1}),
...     SubRequest('https://example.com/v1/messages:send', {'foo': 2}),
... ])
>>> [r.status for r in responses]
[200, 200]

A subresponse with an error status is an ordinary result. Only a failure of
the batch as a whole raises, as a `BatchFailure`.

"""

from mimebatch.client import (BatchClient, BatchRequest, SubRequest,
    SubResponse, BatchError, InvalidBatchError, BatchFailure,
    NonBatchResponseError, TransportError, SubResponseError, decode_batch)
from mimebatch.multipart import BOUNDARY

__version__ = '1.0'
__date__ = '17 October 2026'
__author__ = 'Six Apart Ltd.'
