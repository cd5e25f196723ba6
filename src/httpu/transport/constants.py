# Header added to every parsed response, naming the local ip the reply came in on
LOCAL_ADDRESS_HEADER = "httpu-local-address"

# 2048 bytes covers typical discovery replies; longer datagrams are truncated
RECV_BUFFER_SIZE = 2048

SEND_PAUSE_S = 0.005
TEMPORARY_BACKOFF_S = 0.010

# how far into the past the deadline is pushed on cancellation
CANCEL_DEADLINE_OFFSET_S = 1.0

DEFAULT_METHOD = "GET"
HTTP_VERSION = "HTTP/1.1"

# used when neither the caller nor the client's settings give a value
DEFAULT_TIMEOUT_S = 2.0
DEFAULT_NUM_SENDS = 3
