"""

The batch HTTP client provides a convenience interface around an
`httplib2.Http` instance for combining multiple JSON requests into one
``multipart/mixed`` batch request, and for splitting the batch response back
into one `SubResponse` per subrequest, in the order the subrequests were
given.

"""

from collections.abc import Mapping
from email.message import Message
from http.client import HTTPException
import json
import logging
import re

import httplib2

from mimebatch.multipart import (MultipartHTTPMessage, HTTPRequest,
    HTTPRequestPart, HTTPParser, ParserError, JSON_CONTENT_TYPE)

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10


class BatchError(Exception):
    """An Exception raised when the `BatchClient` cannot open, add, or
    complete a batch request."""
    pass


class InvalidBatchError(BatchError, ValueError):
    """An exception raised when a batch request is made with no
    subrequests."""
    pass


class BatchFailure(BatchError):

    """An exception raised when the batch request as a whole failed.

    The outer HTTP response, when there was one, is available as
    `response` (an `httplib2.Response`) and `content` (the raw body), along
    with its `status`, `reason` and textual body `text`.

    """

    def __init__(self, message, response=None, content=None):
        super(BatchFailure, self).__init__(message)
        self.response = response
        self.content = content
        self.status = getattr(response, 'status', None)
        self.reason = getattr(response, 'reason', None)
        if isinstance(content, bytes):
            content = content.decode('utf-8', 'replace')
        self.text = content


class NonBatchResponseError(BatchFailure):
    """An exception raised when the `BatchClient` receives a response
    with an HTTP status code other than 2xx."""
    def __init__(self, response, content=None):
        super(NonBatchResponseError, self).__init__(
            'Received non-batch response: %d %s' %
            (response.status, response.reason),
            response, content,
        )


class TransportError(BatchFailure):
    """An exception raised when the batch request could not be made at all,
    such as on a connection failure or a timeout."""
    pass


class SubResponseError(BatchError):
    """An exception raised by `SubResponse.raise_for_status()` for a
    subresponse with a non-2xx status."""
    def __init__(self, response):
        self.response = response
        super(SubResponseError, self).__init__(
            'Subrequest failed with status %d: %s' %
            (response.status, response.text)
        )


def merge_headers(*mappings):
    """Merges the given header mappings into one dict.

    Header names are compared case-insensitively, and a header in a later
    mapping replaces a header of the same name in an earlier one.

    """
    merged = {}
    names = {}
    for mapping in mappings:
        if not mapping:
            continue
        for name, value in mapping.items():
            key = name.lower()
            if key in names:
                del merged[names[key]]
            names[key] = name
            merged[name] = value
    return merged


def _is_json_type(content_type):
    msg = Message()
    msg['content-type'] = content_type
    mimetype = msg.get_content_type()
    return mimetype == 'application/json' or mimetype.endswith('+json')


def _content_charset(content_type):
    if not content_type:
        return 'utf-8'
    msg = Message()
    msg['content-type'] = content_type
    return msg.get_content_charset('utf-8')


class SubRequest(object):

    """A subrequest of a batched HTTP request.

    A subrequest is a JSON request to `url`. Its `headers` are copied when
    the `SubRequest` is made, so the caller's mapping is never changed or
    read again.

    """

    def __init__(self, url, body, headers=None, method='POST'):
        self.url = url
        self.body = body
        self.headers = dict(headers or {})
        self.method = method

    def __repr__(self):
        return '<SubRequest %s %s>' % (self.method, self.url)

    def serialize_body(self):
        return json.dumps(self.body, separators=(',', ':'),
            ensure_ascii=False).encode('utf-8')

    def as_message(self, request_id, common_headers=None):
        """Converts this `SubRequest` instance into a
        `mimebatch.multipart.HTTPRequestPart` suitable for adding to a
        `mimebatch.multipart.MultipartHTTPMessage` instance.

        Parameter `request_id` is the 1-based position of the subrequest in
        its batch. Headers in `common_headers` are included unless the
        subrequest has its own header of the same name.

        """
        body = self.serialize_body()
        headers = [
            ('Content-Length', str(len(body))),
            ('Content-Type', JSON_CONTENT_TYPE),
        ]
        headers.extend(merge_headers(common_headers, self.headers).items())
        request = HTTPRequest(self.method, self.url, headers, body)
        return HTTPRequestPart(request, request_id)


class SubResponse(object):

    """The response to one subrequest of a batch.

    `status` is the numeric HTTP status of the subresponse and `headers` an
    `httplib2.Response` holding its headers under lower-case names. `text` is
    the body as a string, and `data` the body parsed as JSON, or `None` when
    the body is not JSON.

    A subresponse with an error status is still a successfully decoded
    result; use `ok` or `raise_for_status()` to tell them apart.

    """

    def __init__(self, status, headers, text, request_id=None):
        self.status = status
        self.headers = headers
        self.text = text
        self.request_id = request_id

        self.data = None
        self._is_json = False
        content_type = headers.get('content-type')
        if content_type is None or _is_json_type(content_type):
            try:
                self.data = json.loads(text)
            except (ValueError, RecursionError):
                pass
            else:
                self._is_json = True

    def __repr__(self):
        return '<SubResponse %d>' % self.status

    def is_json(self):
        return self._is_json

    @property
    def ok(self):
        return 200 <= self.status < 300

    def raise_for_status(self):
        if not self.ok:
            raise SubResponseError(self)

    @classmethod
    def from_message(cls, message):
        """Makes a `SubResponse` from a parsed
        `mimebatch.multipart.HTTPResponse`."""
        info = {}
        for header, value in message.headers:
            if header in info:
                value = '%s, %s' % (info[header], value)
            info[header] = value
        info['status'] = str(message.status)

        # httplib2.Response lower cases the header names from a mapping.
        headers = httplib2.Response(info)
        headers.reason = message.message

        charset = _content_charset(headers.get('content-type'))
        try:
            text = message.data.decode(charset, 'replace')
        except LookupError:
            text = message.data.decode('utf-8', 'replace')

        return cls(message.status, headers, text, _content_id(message.request_id))


_CONTENT_ID = re.compile(r'(\d+)\s*>?\s*$')


def _content_id(value):
    if value is None:
        return None
    mo = _CONTENT_ID.search(value)
    if mo is None:
        raise ValueError('Invalid content-id: %r' % value)
    return int(mo.group(1))


def decode_batch(response, content):
    """Decodes a batch HTTP response into its list of `SubResponse` instances.

    Parameters `response` and `content` are the `httplib2.Response` instance
    representing the batch HTTP response information and its body bytes
    respectively.

    If the response is not a successful (2xx) HTTP response, a
    `NonBatchResponseError` is raised. If the response content cannot be
    decoded into its constituent subresponses, a `BatchFailure` is raised.
    Either way the exception carries the batch response.

    The subresponses are returned in the order of their ``content-id``
    headers when all parts have one, and in the order found otherwise.

    """
    # was the response okay?
    if not 200 <= response.status < 300:
        log.debug('Received non-batch response %d %s with content:\n%r',
            response.status, response.reason, content)
        raise NonBatchResponseError(response, content)

    content_type = response.get('content-type', '')
    try:
        parser = HTTPParser(content_type, content)
    except ParserError as exc:
        log.debug('RESPONSE: %s', response)
        log.debug('CONTENT: %r', content)
        raise BatchFailure('Could not decode batch response: %s' % exc,
            response, content)

    if parser.requests:
        raise BatchFailure('Batch response included a part that was not an '
            'HTTP response message', response, content)

    try:
        subresponses = [SubResponse.from_message(m) for m in parser.responses]
    except ValueError as exc:
        raise BatchFailure('Batch response included a part with an invalid '
            'content-id header: %s' % exc, response, content)

    request_ids = [r.request_id for r in subresponses]
    if all(i is None for i in request_ids):
        return subresponses
    if None in request_ids:
        raise BatchFailure('Batch response included a part with no '
            'content-id header', response, content)
    if sorted(request_ids) != list(range(1, len(request_ids) + 1)):
        raise BatchFailure('Batch response content-id headers %r do not '
            'match the batch' % (request_ids,), response, content)

    return sorted(subresponses, key=lambda r: r.request_id)


class BatchRequest(object):

    """A collection of JSON HTTP requests that should be performed in a
    batch as one request."""

    def __init__(self, subrequests=None):
        self.requests = list()
        self.responses = None
        for subrequest in subrequests or ():
            self.add(subrequest)

    def __len__(self):
        """Returns the number of subrequests there are to perform."""
        return len(self.requests)

    def add(self, url, body=None, headers=None, method='POST'):
        """Adds a new `SubRequest` to this `BatchRequest` instance.

        Parameter `url` can also be a ready-made `SubRequest` instance, or a
        mapping with ``url``, ``body`` and optionally ``headers`` and
        ``method`` keys.

        """
        if isinstance(url, SubRequest):
            subrequest = url
        elif isinstance(url, Mapping):
            subrequest = SubRequest(**url)
        else:
            subrequest = SubRequest(url, body, headers, method)
        self.requests.append(subrequest)

    def construct(self, common_headers=None):
        """Builds a batch HTTP request from the `BatchRequest` instance's
        constituent subrequests.

        The batch request is returned as a tuple containing a mapping of HTTP
        headers and the bytes of the request body. If there are no
        subrequests, an `InvalidBatchError` is raised.

        """
        if not len(self):
            raise InvalidBatchError('No requests were made for the batch')

        msg = MultipartHTTPMessage()
        for request_id, request in enumerate(self.requests, 1):
            msg.attach(request.as_message(request_id, common_headers))

        content = msg.as_bytes()
        headers = merge_headers(common_headers,
            {'Content-Type': msg.content_type})
        return headers, content

    def process(self, http, endpoint, common_headers=None):
        """Performs a batch request.

        Parameter `http` is an `httplib2.Http` instance to use for performing
        the actual batch HTTP request, and `endpoint` is the URL of the batch
        processor.

        The subresponses are returned, and also kept as `responses`.

        """
        headers, body = self.construct(common_headers)
        try:
            response, content = http.request(endpoint, method="POST",
                body=body, headers=headers)
        except (httplib2.HttpLib2Error, HTTPException, OSError) as exc:
            raise TransportError('Batch request to %s failed: %s' % (endpoint, exc))
        return self.handle_response(response, content)

    def handle_response(self, response, content):
        """Decodes the subresponses contained in the given batch HTTP
        response.

        If the batch response cannot be decoded into exactly one subresponse
        per subrequest, a `BatchFailure` is raised.

        """
        responses = decode_batch(response, content)
        if len(responses) != len(self):
            raise BatchFailure('Batch response contained %d subresponses for '
                '%d subrequests' % (len(responses), len(self)),
                response, content)
        self.responses = responses
        return responses


class BatchClient(httplib2.Http):

    """Sort of an HTTP client for performing a batch HTTP request."""

    def __init__(self, endpoint=None, common_headers=None,
                 timeout=DEFAULT_TIMEOUT, **kwargs):
        """Configures the `BatchClient` instance to use the given batch
        processor endpoint.

        Parameter `endpoint` is the URL of the batch processor to which to
        submit batch requests. Headers in `common_headers` are sent with the
        batch request and included in every subrequest. Parameter `timeout`
        is the socket timeout in seconds; other keyword arguments are passed
        on to `httplib2.Http`.

        """
        self.endpoint = endpoint
        self.common_headers = dict(common_headers or {})
        self.batchrequest = None
        super(BatchClient, self).__init__(timeout=timeout, **kwargs)

    def send(self, subrequests):
        """Sends the given subrequests as one batch request, returning a list
        with one `SubResponse` per subrequest, in the same order.

        Items of `subrequests` are `SubRequest` instances or mappings of their
        arguments. If the batch as a whole fails, a `BatchFailure` is raised.

        """
        return self._process(BatchRequest(subrequests))

    def _process(self, batchrequest):
        if not len(batchrequest):
            raise InvalidBatchError('No requests were made for the batch')
        if self.endpoint is None:
            raise BatchError("There's no batch processor endpoint to which to send a batch request")
        log.debug('Making batch request for %d items', len(batchrequest))
        return batchrequest.process(self, self.endpoint, self.common_headers)

    def batch_request(self):
        """Opens a batch request.

        If a batch request is already open, a `BatchError` is raised.

        You can use this method with the ``with`` statement::

        >>> with client.batch_request() as batch:
        ...     client.batch(url, {'name': 'value'})
        >>> batch.responses

        The batch request is then completed automatically at the end of the
        ``with`` block.

        """
        if self.batchrequest is not None:
            raise BatchError("There's already an open batch request")
        self.batchrequest = BatchRequest()

        # Return ourself so we can enter a "with" context.
        return self

    def complete_batch(self):
        """Closes a batch request, submitting it and returning the
        subresponses.

        If no batch request is open, a `BatchError` is raised.

        """
        if self.batchrequest is None:
            raise BatchError("There's no open batch request to complete")
        try:
            return self._process(self.batchrequest)
        finally:
            self.batchrequest = None

    def clear_batch(self):
        """Closes a batch request without performing it."""
        self.batchrequest = None

    def batch(self, url, body, headers=None, method='POST'):
        """Adds the given subrequest to the open batch request.

        If no batch request is open, a `BatchError` is raised.

        """
        if self.batchrequest is None:
            raise BatchError("There's no open batch request to add an object to")
        self.batchrequest.add(url, body, headers, method)

    def request(self, uri, method="GET", body=None, headers=None,
                redirections=httplib2.DEFAULT_MAX_REDIRECTS, connection_type=None):
        req_log = logging.getLogger('.'.join((__name__, 'request')))
        if req_log.isEnabledFor(logging.DEBUG):
            if headers is None:
                headeritems = ()
            else:
                headeritems = headers.items()
            req_log.debug('Making request:\n%s %s\n%s\n\n%r', method, uri,
                '\n'.join([
                    '%s: %s' % (k, v) for k, v in headeritems
                ]), body or b'')

        response, content = super(BatchClient, self).request(uri, method,
            body, headers, redirections, connection_type)

        resp_log = logging.getLogger('.'.join((__name__, 'response')))
        if resp_log.isEnabledFor(logging.DEBUG):
            resp_log.debug('Got response:\n%s\n\n%r',
                '\n'.join([
                    '%s: %s' % (k, v) for k, v in response.items()
                ]), content)

        return response, content

    def __enter__(self):
        return self.batchrequest

    def __exit__(self, exc_type, exc_value, traceback):
        if exc_type is not None:
            # Exception! Let's forget the whole thing.
            self.clear_batch()
        else:
            # Finished the context. Try to complete the request.
            self.complete_batch()
