"""Configuration constants for the dispatcher and its socket transport."""

HOST: str = "127.0.0.1"
PORT: int = 8080
SERVER_NAME: str = "stackwise/0.1"
BUFFER_SIZE: int = 1024
READ_CHUNK_SIZE: int = 8192
SOCKET_TIMEOUT_SECS: int = 5
KEEPALIVE_TIMEOUT_SECS: int = 5
MAX_KEEPALIVE_REQUESTS: int = 100
RESPONSE_TIMEOUT_SECS: float = 30.0
MAX_REQUEST_BYTES: int = 1_048_576
MAX_HEADER_BYTES: int = 16_384
MAX_BODY_BYTES: int = 524_288
MAX_TARGET_LENGTH: int = 8_192
WORKER_COUNT: int = 8
REQUEST_QUEUE_SIZE: int = 64
LOG_FORMAT: str = "plain"
STRICT_CONTINUATIONS: bool = False
