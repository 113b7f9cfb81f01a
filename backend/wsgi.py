# backend/wsgi.py
from cafepos import create_app

app = create_app()
