"""WSGI entry point for Gunicorn (gunicorn wsgi:app)."""
import os

from marketplace import create_app

# CONFIG_OBJECT lets staging point at a different Config subclass
app = create_app(os.getenv('CONFIG_OBJECT', 'config.Config'))

if __name__ == "__main__":
    app.run(port=int(os.getenv('PORT', '5000')))
