"""
Core middleware for request processing.
"""
import logging
import threading
import uuid
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.
    The request_id is added to the request object and to log records.
    """

    def process_request(self, request):
        """Generate and attach request_id to the request."""
        request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.request_id = request_id

        thread = threading.current_thread()
        thread.request_id = request_id
        # Cleared here because worker threads are reused across requests
        if hasattr(thread, 'actor_user_id'):
            del thread.actor_user_id

    def process_response(self, request, response):
        """Add request_id to response headers."""
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        return response


class LoggingFilter(logging.Filter):
    """
    Add request_id and actor_user_id to log records from thread-local storage.
    """

    def filter(self, record):
        thread = threading.current_thread()

        if not hasattr(record, 'request_id'):
            record.request_id = getattr(thread, 'request_id', '-')

        if hasattr(thread, 'actor_user_id') and not hasattr(record, 'actor_user_id'):
            record.actor_user_id = thread.actor_user_id

        return True
