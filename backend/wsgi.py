# backend/wsgi.py
from equatorial import create_app

app = create_app()
