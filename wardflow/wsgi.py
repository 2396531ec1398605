"""WSGI entry point; exposes ``application`` for gunicorn/uwsgi."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'wardflow.settings')

application = get_wsgi_application()
