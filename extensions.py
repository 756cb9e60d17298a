from flask_sqlalchemy import SQLAlchemy # ORM for database interactions.
from flask_login import LoginManager    # Manages administrator sessions for login and logout functionality.
from flask_migrate import Migrate       # Schema migrations for the relational store.

# Initialize SQLAlchemy.
# This instance will be further configured and associated with the Flask app
# in the application factory (create_app function in app.py) using db.init_app(app).
db = SQLAlchemy()

# Initialize Flask-Login's LoginManager.
# Only administrators log in through Flask-Login; customers identify themselves
# with an auth code kept in the session (see utils/decorators.py).
login_manager = LoginManager()

# Initialize Flask-Migrate. Bound to the app and db in create_app.
migrate = Migrate()
