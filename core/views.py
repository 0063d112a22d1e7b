from django.db import DatabaseError, connection
from django.http import HttpResponse


def health_check(request):
    """Report ``ok`` when the database answers a trivial query."""
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
    except DatabaseError:
        return HttpResponse("database unavailable", status=503)
    return HttpResponse("ok")
