"""WSGI entry point for Gunicorn (gunicorn wsgi:app)."""
import os

from app import create_app

# APP_CONFIG selects the config object (dotted path)
app = create_app(os.getenv('APP_CONFIG', 'config.Config'))

if __name__ == "__main__":
    app.run(host=os.getenv('HOST', '127.0.0.1'), port=int(os.getenv('PORT', '5000')))
