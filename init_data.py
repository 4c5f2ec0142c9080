from datetime import datetime, timedelta
from decimal import Decimal
from eggmart import create_app
from eggmart.extensions import db
from eggmart.models import (
    Category,
    Product,
    ProductImage,
    ProductStatus,
    Sale,
    SaleStatus,
    User,
    UserRole,
)

app = create_app()

with app.app_context():
    db.create_all()

    # Create initial categories
    categories_data = [
        {"name": "Eggs", "description": "Fresh table and hatching eggs"},
        {"name": "Chicks", "description": "Day-old and started chicks"},
    ]

    categories_dict = {}
    for cat_data in categories_data:
        existing = Category.query.filter_by(name=cat_data["name"]).first()
        if not existing:
            category = Category(
                name=cat_data["name"], description=cat_data["description"]
            )
            db.session.add(category)
            db.session.flush()
            categories_dict[cat_data["name"]] = category
            print(f"Created category: {cat_data['name']}")
        else:
            categories_dict[cat_data["name"]] = existing

    # Create admin account (if not exists)
    admin_email = "admin@eggmart.com"
    admin = User.query.filter_by(email=admin_email).first()
    if not admin:
        admin = User(
            name="Store Admin",
            email=admin_email,
            phone="+63 912 345 6789",
            address="123 Farm Road, Agriculture District",
            role=UserRole.ADMIN,
        )
        admin.set_password("admin123")
        db.session.add(admin)
        print(f"Created admin account: {admin_email} / admin123")

    customer_email = "customer@eggmart.com"
    if not User.query.filter_by(email=customer_email).first():
        customer = User(
            name="Juan Dela Cruz",
            email=customer_email,
            phone="+63 917 000 1111",
            address="45 Barangay Street, Quezon City",
            role=UserRole.USER,
        )
        customer.set_password("customer123")
        db.session.add(customer)
        print(f"Created customer account: {customer_email} / customer123")

    products_data = [
        {
            "name": "Brown Eggs (Tray of 30)",
            "category": "Eggs",
            "price": Decimal("240.00"),
            "stock": 120,
            "description": "Farm-fresh large brown eggs.",
            "image": "/static/uploads/brown-eggs.jpg",
        },
        {
            "name": "Duck Eggs (Dozen)",
            "category": "Eggs",
            "price": Decimal("180.00"),
            "stock": 40,
            "description": "Rich duck eggs, ideal for baking.",
            "image": "/static/uploads/duck-eggs.jpg",
        },
        {
            "name": "Quail Eggs (Pack of 50)",
            "category": "Eggs",
            "price": Decimal("95.00"),
            "stock": 8,
            "description": "Bite-sized quail eggs.",
            "image": "/static/uploads/quail-eggs.jpg",
        },
        {
            "name": "Day-old Broiler Chicks",
            "category": "Chicks",
            "price": Decimal("45.00"),
            "stock": 300,
            "description": "Vaccinated day-old broiler chicks.",
            "image": "/static/uploads/broiler-chicks.jpg",
        },
    ]

    for p_data in products_data:
        if Product.query.filter_by(name=p_data["name"]).first():
            continue
        threshold = app.config["PRODUCT_ACTIVE_STOCK_THRESHOLD"]
        product = Product(
            name=p_data["name"],
            category=categories_dict[p_data["category"]],
            price=p_data["price"],
            stock=p_data["stock"],
            description=p_data["description"],
            status=(
                ProductStatus.ACTIVE if p_data["stock"] > threshold
                else ProductStatus.INACTIVE
            ),
        )
        product.images = [
            ProductImage(
                image_url=p_data["image"],
                alt_text=p_data["name"],
                sort_order=0,
                is_primary=True,
            )
        ]
        db.session.add(product)
        print(f"Created product: {p_data['name']}")

    db.session.flush()

    # One running sale so the storefront has something to promote
    promo = Product.query.filter_by(name="Brown Eggs (Tray of 30)").first()
    if promo and not promo.sales.count():
        now = datetime.utcnow()
        db.session.add(Sale(
            product_id=promo.id,
            original_price=promo.price,
            sale_price=Decimal("199.00"),
            discount_percentage=Decimal("17.08"),
            quantity_available=30,
            quantity_sold=0,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=6),
            status=SaleStatus.ACTIVE,
        ))
        print(f"Created sale for: {promo.name}")

    db.session.commit()
    print("Seed data ready.")
