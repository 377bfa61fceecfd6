"""Shared configuration constants for the API service."""

from fastapi import status

SERVICE_NAME = "onevoice-api"

# Response headers for Server-Sent Events streams.
SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}

AUDIO_MEDIA_TYPE = "audio/mpeg"

# Starlette renamed the 422 constant. Keep runtime compatibility
# without breaking mypy on older/lagging stubs.
HTTP_422_UNPROCESSABLE: int = getattr(
    status, "HTTP_422_UNPROCESSABLE_CONTENT", status.HTTP_422_UNPROCESSABLE_ENTITY
)
