from flask import Flask, jsonify
from flask_migrate import Migrate
from flask_login import LoginManager
from werkzeug.exceptions import HTTPException
from eggmart.extensions import db
from eggmart.config import Config
from eggmart.middleware import setup_auth_middleware
from eggmart.services.errors import ServiceError, error_response
import logging
import os

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('app.log'),
        logging.StreamHandler()
    ]
)

logger = logging.getLogger(__name__)

migrate = Migrate()
login_manager = LoginManager()


def register_error_handlers(app):

    @app.errorhandler(ServiceError)
    def handle_service_error(e):
        return error_response(e)

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return jsonify({'error': e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        logger.error(
            "Unhandled error on request: %s", e, exc_info=True)
        return jsonify({
            'error': 'Internal server error',
            'details': str(e),
        }), 500


def create_app(config_class=Config):
    static_dir = os.path.abspath(
        os.path.join(
            os.path.dirname(__file__),
            "..",
            "static"))
    app = Flask(
        __name__,
        static_folder=static_dir,
        static_url_path="/static",
    )
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    from eggmart.auth_tokens import decode_token
    from eggmart.models import User

    # Sessions are stateless: the signed cookie is decoded on every request.
    @login_manager.request_loader
    def load_user_from_request(request):
        token = request.cookies.get(app.config['AUTH_COOKIE_NAME'])
        if not token:
            return None
        payload = decode_token(token)
        if not payload:
            return None
        return db.session.get(User, payload.get('sub'))

    # Register blueprints
    from eggmart.blueprints import (
        admin,
        auth,
        cart,
        favorites,
        notifications,
        orders,
        products,
        ratings,
        sales,
        uploads,
    )

    # Every blueprint declares absolute routes.
    app.register_blueprint(auth.bp, url_prefix='/')
    app.register_blueprint(products.bp, url_prefix='/')
    app.register_blueprint(cart.bp, url_prefix='/')
    app.register_blueprint(favorites.bp, url_prefix='/')
    app.register_blueprint(orders.bp, url_prefix='/')
    app.register_blueprint(ratings.bp, url_prefix='/')
    app.register_blueprint(notifications.bp, url_prefix='/')
    app.register_blueprint(sales.bp, url_prefix='/')
    app.register_blueprint(uploads.bp, url_prefix='/')
    app.register_blueprint(admin.bp, url_prefix='/')

    # Resolve the caller once per request and guard /api/
    setup_auth_middleware(app)
    register_error_handlers(app)

    # Note: Database tables are managed via Flask-Migrate
    # Use 'flask db upgrade' to create/update tables

    logger.info("Flask application initialized")
    return app
