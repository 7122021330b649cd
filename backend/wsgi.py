# backend/wsgi.py
# FLASK_APP entry point: python -m flask --app wsgi run
from importdocs import create_app

app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
