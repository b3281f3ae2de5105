"""HTTP client for the relay action endpoint."""

import time
import uuid
from typing import Optional

import httpx

from cli.config import Config
from common.logging_config import get_logger
from common.types import AdmissionResult, ChunkMetadata

logger = get_logger(__name__)


class RelayClientError(Exception):
    """
    Raised when the relay answers a request with {ok: false}.
    """

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN",
        status_code: Optional[int] = None,
        reason: Optional[str] = None
    ):
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.reason = reason


class RelayClient:
    """HTTP client for the relay API with retry logic and error handling."""

    def __init__(self, config: Config):
        """
        Initialize relay client.

        Args:
            config: Configuration instance
        """
        self.config = config
        self.session = httpx.Client(
            base_url=config.get_base_url(),
            timeout=config.get_timeout()
        )
        self.request_id = None
        self.last_attempts = 0
        logger.info(f"Initialized RelayClient [base_url={config.get_base_url()}]")

    def close(self) -> None:
        self.session.close()

    def _auth_headers(self) -> dict:
        api_key = self.config.get_api_key()
        if not api_key:
            return {}
        return {'Authorization': f'Bearer {api_key}'}

    def _request_with_retry(
        self,
        method: str,
        endpoint: str,
        max_retries: Optional[int] = None,
        **kwargs
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic on 5xx errors and network failures.

        This is transport-level retry only; waiting for relay capacity or for a
        chunk to arrive is handled by RetryPolicy in the drivers.

        Args:
            method: HTTP method (GET, POST)
            endpoint: API endpoint path
            max_retries: Max retry attempts (uses config default if None)
            **kwargs: Additional arguments to pass to httpx request

        Returns:
            HTTP response object

        Raises:
            ConnectionError: If max retries exceeded or connection fails
        """
        retry_config = self.config.get_retry_config()
        max_retries = max_retries if max_retries is not None else retry_config['max_retries']
        backoff = retry_config['retry_backoff_multiplier']

        last_exception = None

        self.request_id = str(uuid.uuid4())
        headers = dict(kwargs.pop('headers', None) or {})
        headers.update(self._auth_headers())
        headers['X-Request-ID'] = self.request_id
        kwargs['headers'] = headers

        logger.debug(
            f"Making request: {method} {endpoint} [request_id={self.request_id}]"
        )

        self.last_attempts = 0
        for attempt in range(max_retries + 1):
            try:
                response = self.session.request(method, endpoint, **kwargs)

                logger.debug(
                    f"Response received: {method} {endpoint} status={response.status_code} [request_id={self.request_id}]"
                )

                if response.status_code >= 500 and attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Server error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} status={response.status_code}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue

                self.last_attempts = attempt + 1
                return response

            except (httpx.ConnectError, httpx.TimeoutException) as e:
                last_exception = e
                if attempt < max_retries:
                    delay = backoff ** attempt
                    logger.warning(
                        f"Network error (attempt {attempt + 1}/{max_retries + 1}): "
                        f"{method} {endpoint} error={type(e).__name__}, retrying in {delay}s [request_id={self.request_id}]"
                    )
                    time.sleep(delay)
                    continue
                logger.error(
                    f"Network error (max retries exceeded): {method} {endpoint} error={e} [request_id={self.request_id}]"
                )

        if isinstance(last_exception, httpx.TimeoutException):
            raise ConnectionError("Request timed out. Relay may be overloaded.")
        raise ConnectionError("Cannot connect to relay server. Is it running?")

    def _action(self, method: str, action: str, **kwargs) -> httpx.Response:
        params = dict(kwargs.pop('params', None) or {})
        params['action'] = action
        return self._request_with_retry(method, '/api', params=params, **kwargs)

    def _json_or_raise(self, response: httpx.Response) -> dict:
        """
        Decode a JSON response and raise RelayClientError unless it says ok.
        """
        try:
            data = response.json()
        except ValueError:
            raise RelayClientError(
                f"Unexpected response (HTTP {response.status_code})",
                status_code=response.status_code
            ) from None

        if not data.get('ok'):
            raise RelayClientError(
                self._format_error(response, data),
                code=data.get('code', 'UNKNOWN'),
                status_code=response.status_code,
                reason=data.get('reason')
            )
        return data

    def _format_error(self, response: httpx.Response, data: dict) -> str:
        """
        Map relay errors to user-friendly messages.
        """
        detail = data.get('error') or data.get('detail') or 'Unknown error'
        code = data.get('code', 'UNKNOWN')

        error_messages = {
            'INVALID_API_KEY': 'Not authenticated. Please run: login <password>',
            'INVALID_CREDENTIALS': 'Incorrect password.',
            'PASSWORD_NOT_SET': 'No password set on the relay yet. Please run: setup <password>',
            'PASSWORD_ALREADY_SET': 'The relay password is already set.',
            'INVALID_SESSION': 'Invalid session.',
            'CHUNK_NOT_FOUND': 'Chunk not found.',
            'METADATA_NOT_FOUND': 'Session has no file yet.',
            'STORAGE_ERROR': 'The relay failed to store or read a chunk.',
            'ALLOCATION_FAILED': 'The relay could not create a session.',
        }

        if code in error_messages:
            return error_messages[code]
        return f"{detail} (Code: {code})" if code != 'UNKNOWN' else f"{detail} (HTTP {response.status_code})"

    def setup_password(self, password: str) -> None:
        response = self._request_with_retry('POST', '/auth/setup', json={'password': password})
        self._json_or_raise(response)

    def login(self, password: str) -> str:
        """
        Log in and store the issued API key in the config.

        Returns:
            The new API key
        """
        response = self._request_with_retry('POST', '/auth/login', json={'password': password})
        api_key = self._json_or_raise(response)['api_key']
        self.config.set_api_key(api_key)
        return api_key

    def create_session(self) -> tuple[str, int]:
        """
        Returns:
            Tuple of (session_id, relay chunk size in bytes)
        """
        data = self._json_or_raise(self._action('POST', 'create_session'))
        return data['session_id'], int(data['chunk_size'])

    def ready(self, session_id: str) -> AdmissionResult:
        """
        Ask whether the relay accepts the next chunk.

        A rejection is a normal answer, not an error.
        """
        response = self._action('GET', 'ready', params={'session_id': session_id})
        try:
            data = response.json()
        except ValueError:
            raise RelayClientError(
                f"Unexpected response (HTTP {response.status_code})",
                status_code=response.status_code
            ) from None
        if data.get('ok'):
            return AdmissionResult.accept()
        if 'reason' in data:
            return AdmissionResult.reject(data['reason'])
        raise RelayClientError(
            self._format_error(response, data),
            code=data.get('code', 'UNKNOWN'),
            status_code=response.status_code
        )

    def _is_resend_echo(self, response: httpx.Response, status_code: int, code: str) -> bool:
        """
        Whether an error answers a request that was sent more than once.

        A request that times out may still have been applied by the relay, so
        a resend can see the effect of its own first attempt.

        Args:
            response: Final response of the request
            status_code: HTTP status the echo arrives with
            code: Error code the echo carries

        Returns:
            True if the error is explained by an earlier attempt of the same request
        """
        if self.last_attempts < 2 or response.status_code != status_code:
            return False
        try:
            return response.json().get('code') == code
        except ValueError:
            return False

    def upload_chunk(
        self,
        session_id: str,
        chunk_index: int,
        total_chunks: int,
        file_name: str,
        data: bytes
    ) -> None:
        form = {
            'session_id': session_id,
            'chunk_index': str(chunk_index),
            'total_chunks': str(total_chunks),
            'file_name': file_name,
        }
        files = {'chunk': (f"{file_name}.part{chunk_index}", data, 'application/octet-stream')}
        response = self._action('POST', 'upload_chunk', data=form, files=files)
        if self._is_resend_echo(response, 409, 'CHUNK_ALREADY_CONFIRMED'):
            logger.info(f"Chunk {chunk_index} was stored and confirmed before the resend [session_id={session_id}]")
            return
        self._json_or_raise(response)

    def get_meta(self, session_id: str) -> Optional[ChunkMetadata]:
        """
        Returns:
            ChunkMetadata, or None while chunk 0 has not been uploaded
        """
        response = self._action('GET', 'get_meta', params={'session_id': session_id})
        if response.status_code == 404:
            try:
                code = response.json().get('code')
            except ValueError:
                code = None
            if code == 'METADATA_NOT_FOUND':
                return None
        data = self._json_or_raise(response)
        return ChunkMetadata.from_dict(data)

    def get_chunk(self, session_id: str, chunk_index: int) -> Optional[bytes]:
        """
        Returns:
            Chunk bytes, or None if the chunk is not available (yet)
        """
        response = self._action(
            'GET', 'get_chunk', params={'session_id': session_id, 'chunk_index': str(chunk_index)}
        )
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            self._json_or_raise(response)
        return response.content

    def confirm_chunk(self, session_id: str, chunk_index: int) -> None:
        form = {'session_id': session_id, 'chunk_index': str(chunk_index)}
        response = self._action('POST', 'confirm_chunk', data=form)
        if self._is_resend_echo(response, 404, 'CHUNK_NOT_FOUND'):
            logger.info(f"Chunk {chunk_index} was confirmed before the resend [session_id={session_id}]")
            return
        self._json_or_raise(response)

    def status(self, session_id: str) -> dict:
        data = self._json_or_raise(self._action('GET', 'status', params={'session_id': session_id}))
        return {'state': data['state'], 'usage_bytes': data['usage_bytes']}
