import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "backend.pharmalink_backend.settings")

application = get_wsgi_application()
