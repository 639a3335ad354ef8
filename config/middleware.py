from django.db import close_old_connections, connection


class CloseDbConnectionsMiddleware:
    """
    Drops stale DB connections before each request so a worker that sat idle
    past the pooler's timeout reconnects instead of failing its first query.
    Connections inside an open transaction are left alone.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        if not connection.in_atomic_block:
            close_old_connections()
        return self.get_response(request)
