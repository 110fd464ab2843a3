"""
WSGI entry point for the checkout API.

    <wsgi server> app:app
    python app.py          (development server)
"""
import os

from checkout import create_app

app = create_app(os.getenv("FLASK_ENV", "development"))


if __name__ == "__main__":
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "3000")), debug=app.config["DEBUG"])
