"""
Middleware to track the current actor and IP for audit logging.

Stores the request user and IP in thread-local storage so signals can
access them. Scripts and the reconciliation store set the actor with
`audit_actor(...)` instead.
"""
import contextlib
import threading
from django.utils.deprecation import MiddlewareMixin


_thread_locals = threading.local()


def get_current_user():
    """Get the current user from thread-local storage"""
    return getattr(_thread_locals, 'user', None)


def get_current_ip():
    """Get the current IP from thread-local storage"""
    return getattr(_thread_locals, 'ip', None)


def get_current_actor():
    """Name recorded on audit rows: explicit actor, then logged-in user, then 'system'."""
    actor = getattr(_thread_locals, 'actor', None)
    if actor:
        return actor
    user = get_current_user()
    if user is not None and getattr(user, 'is_authenticated', False):
        return user.get_username()
    return 'system'


@contextlib.contextmanager
def audit_actor(name):
    """Attribute every change made inside the block to `name`."""
    previous = getattr(_thread_locals, 'actor', None)
    _thread_locals.actor = name
    try:
        yield
    finally:
        _thread_locals.actor = previous


class AuditMiddleware(MiddlewareMixin):
    """
    Middleware to capture current user and IP for audit logging.

    This allows signals to know WHO made the change and FROM WHERE.
    """

    def process_request(self, request):
        """Store request user and IP in thread-local storage"""
        _thread_locals.user = getattr(request, 'user', None)

        # Get client IP (handle proxy/load balancer)
        ip = request.META.get('HTTP_X_FORWARDED_FOR')
        if ip:
            ip = ip.split(',')[0].strip()
        else:
            ip = request.META.get('REMOTE_ADDR')

        _thread_locals.ip = ip

    def process_response(self, request, response):
        """Clean up thread-local storage"""
        if hasattr(_thread_locals, 'user'):
            del _thread_locals.user
        if hasattr(_thread_locals, 'ip'):
            del _thread_locals.ip

        return response
