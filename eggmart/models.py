from eggmart.extensions import db
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash
from datetime import datetime
from sqlalchemy import CheckConstraint, UniqueConstraint
import enum
import json


class UserRole(enum.Enum):
    USER = 'user'
    ADMIN = 'admin'


class ProductStatus(enum.Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class SaleStatus(enum.Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    EXPIRED = 'expired'


class OrderStatus(enum.Enum):
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    PROCESSING = 'processing'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


class NotificationType(enum.Enum):
    FAVORITE = 'favorite'
    CART = 'cart'
    ORDER = 'order'
    ORDER_STATUS = 'order_status'
    SALE = 'sale'


class User(UserMixin, db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(30), nullable=True)
    address = db.Column(db.Text, nullable=True)
    role = db.Column(
        db.Enum(UserRole),
        nullable=False,
        default=UserRole.USER)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    last_login_at = db.Column(db.DateTime, nullable=True)

    orders = db.relationship('Order', backref='user', lazy='dynamic')
    cart_items = db.relationship(
        'CartItem',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan')
    favorites = db.relationship(
        'Favorite',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan')
    notifications = db.relationship(
        'Notification',
        backref='user',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f'<User {self.email}>'


class Category(db.Model):
    __tablename__ = 'categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False)
    description = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    products = db.relationship('Product', backref='category', lazy='dynamic')

    def __repr__(self):
        return f'<Category {self.name}>'


class Product(db.Model):
    __tablename__ = 'products'

    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(
        db.Integer,
        db.ForeignKey('categories.id'),
        nullable=False,
        index=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Numeric(10, 2), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    # Listing flag chosen by the admin; stock changes never touch it.
    status = db.Column(
        db.Enum(ProductStatus),
        default=ProductStatus.ACTIVE,
        nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    images = db.relationship(
        'ProductImage',
        backref='product',
        order_by='ProductImage.sort_order',
        cascade='all, delete-orphan')
    sales = db.relationship(
        'Sale',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')
    cart_items = db.relationship(
        'CartItem',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')
    favorites = db.relationship(
        'Favorite',
        backref='product',
        lazy='dynamic',
        cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint('stock >= 0', name='check_product_stock_non_negative'),
        CheckConstraint('price >= 0', name='check_product_price_non_negative'),
    )

    @property
    def primary_image(self):
        for image in self.images:
            if image.is_primary:
                return image.image_url
        return None

    def __repr__(self):
        return f'<Product {self.name}>'


class ProductImage(db.Model):
    __tablename__ = 'product_images'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    # Relative path like "/static/uploads/abc.jpg" or an absolute URL
    image_url = db.Column(db.String(500), nullable=False)
    alt_text = db.Column(db.String(200), nullable=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return f'<ProductImage {self.id} for product {self.product_id}>'


class Sale(db.Model):
    __tablename__ = 'sales'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    original_price = db.Column(db.Numeric(10, 2), nullable=False)
    sale_price = db.Column(db.Numeric(10, 2), nullable=False)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False)
    quantity_available = db.Column(db.Integer, nullable=False)
    quantity_sold = db.Column(db.Integer, nullable=False, default=0)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False, index=True)
    status = db.Column(
        db.Enum(SaleStatus),
        default=SaleStatus.ACTIVE,
        nullable=False,
        index=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint(
            'quantity_sold >= 0',
            name='check_sale_quantity_sold_non_negative'),
        CheckConstraint(
            'quantity_available > 0',
            name='check_sale_quantity_available_positive'),
    )

    @property
    def remaining_quantity(self):
        return (self.quantity_available or 0) - (self.quantity_sold or 0)

    def __repr__(self):
        return f'<Sale {self.id} product={self.product_id} status={self.status}>'


class Order(db.Model):
    __tablename__ = 'orders'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    order_number = db.Column(db.String(20), unique=True, nullable=False)
    # Customer snapshot taken at checkout; never re-synced from the profile.
    customer_name = db.Column(db.String(100), nullable=False)
    customer_email = db.Column(db.String(120), nullable=False)
    customer_phone = db.Column(db.String(30), nullable=False)
    customer_address = db.Column(db.Text, nullable=True)
    delivery_method = db.Column(db.String(20), nullable=False)
    payment_method = db.Column(db.String(50), nullable=True)
    subtotal = db.Column(db.Numeric(10, 2), nullable=False)
    delivery_fee = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(10, 2), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(
        db.Enum(OrderStatus),
        default=OrderStatus.PENDING,
        nullable=False,
        index=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    items = db.relationship(
        'OrderItem',
        backref='order',
        order_by='OrderItem.id',
        cascade='all, delete-orphan')
    ratings = db.relationship(
        'OrderRating',
        backref='order',
        lazy='dynamic',
        cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Order {self.order_number} status={self.status}>'


class OrderItem(db.Model):
    __tablename__ = 'order_items'

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    # Nulled when the product is deleted; name and price are snapshots.
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='SET NULL'),
        nullable=True,
        index=True)
    product_name = db.Column(db.String(200), nullable=False)
    product_price = db.Column(db.Numeric(10, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    total_price = db.Column(db.Numeric(10, 2), nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    product = db.relationship('Product')

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_order_quantity_positive'),
    )

    def __repr__(self):
        return (
            f"<OrderItem {self.id} order={self.order_id} "
            f"product={self.product_id}>"
        )


class OrderRating(db.Model):
    __tablename__ = 'order_ratings'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    rating = db.Column(db.Integer, nullable=False)
    review_text = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    user = db.relationship('User')
    images = db.relationship(
        'OrderRatingImage',
        backref='order_rating',
        order_by='OrderRatingImage.id',
        cascade='all, delete-orphan')

    __table_args__ = (
        CheckConstraint(
            'rating >= 1 AND rating <= 5',
            name='check_rating_range'),
        UniqueConstraint(
            'user_id',
            'order_id',
            name='uq_user_order_rating'),
    )

    def __repr__(self):
        return f'<OrderRating {self.id} for order {self.order_id}>'


class OrderRatingImage(db.Model):
    __tablename__ = 'order_rating_images'

    id = db.Column(db.Integer, primary_key=True)
    order_rating_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'order_ratings.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    image_url = db.Column(db.String(500), nullable=False)
    image_name = db.Column(db.String(255), nullable=False)
    image_size = db.Column(db.Integer, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return f'<OrderRatingImage {self.id} rating={self.order_rating_id}>'


class Notification(db.Model):
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    type = db.Column(db.Enum(NotificationType), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    message = db.Column(db.Text, nullable=False)
    product_id = db.Column(db.Integer, nullable=True)
    product_name = db.Column(db.String(200), nullable=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'orders.id',
            ondelete='SET NULL'),
        nullable=True)
    is_read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    def __repr__(self):
        return f'<Notification {self.id} type={self.type}>'


class CartItem(db.Model):
    __tablename__ = 'cart_items'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)
    updated_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        onupdate=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='check_quantity_positive'),
        UniqueConstraint('user_id', 'product_id', name='uq_cart_user_product'),
    )

    def __repr__(self):
        return (
            f"<CartItem user={self.user_id} product={self.product_id} "
            f"qty={self.quantity}>"
        )


class Favorite(db.Model):
    __tablename__ = 'favorites'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='CASCADE'),
        nullable=False,
        index=True)
    product_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'products.id',
            ondelete='CASCADE'),
        nullable=False)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False)

    __table_args__ = (
        UniqueConstraint(
            'user_id',
            'product_id',
            name='uq_favorite_user_product'),
    )

    def __repr__(self):
        return f'<Favorite user={self.user_id} product={self.product_id}>'


class AuditLog(db.Model):
    __tablename__ = 'audit_logs'

    id = db.Column(db.Integer, primary_key=True)
    actor_id = db.Column(
        db.Integer,
        db.ForeignKey(
            'users.id',
            ondelete='SET NULL'),
        nullable=True)
    actor_role = db.Column(db.String(20), nullable=False)
    # e.g., ORDER_CREATE, ORDER_STATUS_UPDATE, RATING_CREATE
    action = db.Column(db.String(100), nullable=False)
    # ORDER, PRODUCT, SALE, ORDER_RATING, USER
    target_type = db.Column(db.String(50), nullable=True)
    target_id = db.Column(db.Integer, nullable=True)
    ip = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    # JSON format key field snapshot
    payload_json = db.Column(db.Text, nullable=True)
    created_at = db.Column(
        db.DateTime,
        default=datetime.utcnow,
        nullable=False,
        index=True)

    def set_payload(self, data):
        self.payload_json = json.dumps(data, ensure_ascii=False, default=str)

    def get_payload(self):
        if self.payload_json:
            return json.loads(self.payload_json)
        return {}

    def __repr__(self):
        return f'<AuditLog {self.id} action={self.action}>'
