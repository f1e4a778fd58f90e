"""WSGI entry point for Gunicorn (cache read API and /metrics)."""
from pack_archive import create_app

# Create the application instance
app = create_app()

if __name__ == "__main__":
    app.run()
