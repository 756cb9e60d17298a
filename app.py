import logging # Standard library logging; Flask's app.logger is configured from LOG_LEVEL.
import click # Command line interface for the batch procedures (ships with Flask).
from flask import Flask, jsonify # The main Flask class and JSON responses.
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from config import Config # Import the application's configuration class.
from errors import CoreError, PermissionDeniedError
from extensions import db, login_manager, migrate # Import initialized extensions.
from models import AdminUser # Admin model, primarily for the user_loader.

# Application Factory Function
def create_app(config_class=Config):
    """
    Application factory for creating and configuring the Flask app.
    Tests pass their own configuration class (in-memory database, fixed Fernet key).
    """
    app = Flask(__name__, instance_relative_config=True)

    # Load configuration from the given class (defaults to config.Config).
    app.config.from_object(config_class)
    app.logger.setLevel(getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO))

    # --- Initialize Flask Extensions ---
    db.init_app(app) # SQLAlchemy ORM.
    migrate.init_app(app, db) # Flask-Migrate schema migrations.
    login_manager.init_app(app) # Administrator sessions.

    # --- Import and Register Blueprints ---
    from routes.auth import auth_bp
    from routes.catalog import catalog_bp
    from routes.currency import currency_bp
    from routes.cart import cart_bp
    from routes.subscriptions import subscriptions_bp
    from routes.admin import admin_bp

    app.register_blueprint(auth_bp)          # /auth/...
    app.register_blueprint(catalog_bp)       # /catalog/...
    app.register_blueprint(currency_bp)      # /currency/...
    app.register_blueprint(cart_bp)          # /cart/...
    app.register_blueprint(subscriptions_bp) # /me/...
    app.register_blueprint(admin_bp)         # /admin/...

    register_error_handlers(app)
    register_commands(app)

    # --- Flask-Login User Loader ---
    # Reloads the administrator from the id stored in the session on each request.
    @login_manager.user_loader
    def load_user(user_id):
        """Loads an administrator from the database given their ID."""
        return db.session.get(AdminUser, int(user_id))

    # JSON API: answer 403 instead of redirecting to a login page.
    @login_manager.unauthorized_handler
    def unauthorized():
        raise PermissionDeniedError("Administrator login required.")

    return app


def register_error_handlers(app):
    """Renders every failure as a `{"error": message}` JSON body."""

    @app.errorhandler(CoreError)
    def handle_core_error(e):
        return jsonify({'error': e.message}), e.status_code

    @app.errorhandler(StaleDataError)
    def handle_stale_data(e):
        # Concurrent flush of a row whose version changed underneath us.
        db.session.rollback()
        app.logger.warning(f"Concurrent modification detected: {e}")
        return jsonify({'error': "The record was modified by someone else. Reload and try again."}), 409

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        app.logger.error(f"Database error: {e}", exc_info=True)
        return jsonify({'error': "An unexpected database error occurred. Please try again later."}), 500

    @app.errorhandler(404)
    def handle_not_found(e):
        return jsonify({'error': "Not found."}), 404

    @app.errorhandler(405)
    def handle_method_not_allowed(e):
        return jsonify({'error': "Method not allowed."}), 405


def register_commands(app):
    """Flask CLI entry points for the scheduled batch procedures and admin bootstrapping."""
    from utils.maintenance import (recompute_subscription_statuses, backfill_analytics_from_subscriptions,
                                   repair_analytics_consistency)

    @app.cli.command('recompute-statuses')
    def recompute_statuses_command():
        """Re-derive the status of every non-cancelled subscription."""
        result = recompute_subscription_statuses()
        click.echo(f"Updated {result['updated_count']} subscriptions "
                   f"({result['active_count']} active, {result['expiring_soon_count']} expiring soon, "
                   f"{result['expired_count']} expired).")

    @app.cli.command('backfill-analytics')
    def backfill_analytics_command():
        """Create the analytics rows missing for existing subscriptions."""
        result = backfill_analytics_from_subscriptions()
        click.echo(f"Processed {result['processed_records']} subscriptions, "
                   f"created {result['created_analytics_records']} analytics records.")

    @app.cli.command('repair-analytics')
    def repair_analytics_command():
        """Rebuild every analytics row from subscriptions and completed refunds."""
        click.echo(repair_analytics_consistency())

    @app.cli.command('create-admin')
    @click.option('--email', prompt=True, help='Login email of the administrator.')
    @click.option('--full-name', default=None, help='Display name.')
    @click.password_option()
    def create_admin_command(email, full_name, password):
        """Create an administrator account."""
        email = email.strip().lower()
        if AdminUser.query.filter_by(email=email).first():
            raise click.ClickException(f"An administrator with email {email} already exists.")
        admin = AdminUser(email=email, full_name=full_name)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        app.logger.info(f"Administrator {email} created from the command line.")
        click.echo(f"Administrator {email} created.")


# This block allows running the Flask development server directly using `python app.py`.
if __name__ == '__main__':
    app = create_app()
    app.run(debug=True)
