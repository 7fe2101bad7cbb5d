import contextvars
from typing import Optional

# request id of the request being served, read by the log formatter and error handlers
request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)
