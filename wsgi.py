"""
WSGI entry point, e.g. ``gunicorn wsgi:app``
"""
import os

from config import config
from notewise import create_app

env = os.environ.get("FLASK_ENV", "default")
app = create_app(env if env in config else "default")

if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.environ.get("PORT", 8000)))
