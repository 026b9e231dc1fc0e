import os

from django.core.asgi import get_asgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "venuepos.settings")

# Voice ordering is served by an async view; run under an ASGI server to keep it off the worker threads
application = get_asgi_application()
