import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or (
        'dev-secret-key-change-in-production'
    )
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or (
        'sqlite:///eggmart.db'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Signed session token carried in a cookie.
    AUTH_COOKIE_NAME = 'auth_token'
    AUTH_TOKEN_MAX_AGE = 60 * 60 * 24 * 7
    AUTH_COOKIE_SECURE = (
        os.environ.get('AUTH_COOKIE_SECURE', 'false').lower() == 'true'
    )

    # Checkout pricing
    DELIVERY_FEE = 50
    FREE_DELIVERY_THRESHOLD = 500

    # New products are listed as active only above this stock level.
    PRODUCT_ACTIVE_STOCK_THRESHOLD = 10

    MAX_RATING_IMAGES = 3

    # Admin dashboard buckets
    LOW_STOCK_THRESHOLD = 20
    LOW_STOCK_LIMIT = 10
    LOW_STOCK_OVERVIEW_THRESHOLD = 10
    LOW_STOCK_OVERVIEW_LIMIT = 4
    NEW_ORDER_WINDOW_HOURS = 24
    ORDER_REMINDER_WINDOW_DAYS = 7

    NOTIFICATION_FEED_LIMIT = 50
    SALE_NOTIFICATION_LIMIT = 10

    # Uploads land in <static>/uploads unless UPLOAD_FOLDER is set;
    # either way they are served at /uploads/<name>.
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or None
    UPLOAD_SUBDIR = 'uploads'
    ALLOWED_IMAGE_EXTENSIONS = ('jpg', 'jpeg', 'png', 'webp', 'gif')

    STORE_INFO = {
        'name': 'EggMart Store',
        'address': '123 Farm Road, Agriculture District',
        'phone': '+63 912 345 6789',
        'email': 'info@eggmart.com',
    }
