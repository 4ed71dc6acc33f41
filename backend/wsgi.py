# backend/wsgi.py
from partsdesk import create_app

app = create_app()
