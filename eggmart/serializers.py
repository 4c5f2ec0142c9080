"""Explicit mappings from ORM rows to the JSON shapes the API returns."""
from eggmart.services.sale_service import effective_price
from eggmart.utils import isoformat, money

PLACEHOLDER_IMAGE = '/placeholder.svg'


def serialize_user(user):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'phone': user.phone,
        'address': user.address,
        'role': user.role.value,
    }


def serialize_category(category):
    return {
        'id': category.id,
        'name': category.name,
        'description': category.description,
    }


def serialize_sale_brief(sale):
    return {
        'id': sale.id,
        'discountPercentage': money(sale.discount_percentage),
        'quantityAvailable': sale.quantity_available,
        'quantitySold': sale.quantity_sold,
        'remainingQuantity': sale.remaining_quantity,
        'startDate': isoformat(sale.start_date),
        'endDate': isoformat(sale.end_date),
    }


def serialize_sale(sale):
    product = sale.product
    return {
        'id': sale.id,
        'productId': product.id,
        'productName': product.name,
        'productStock': product.stock,
        'categoryName': product.category.name,
        'productImage': product.primary_image or PLACEHOLDER_IMAGE,
        'originalPrice': money(sale.original_price),
        'salePrice': money(sale.sale_price),
        'discountPercentage': money(sale.discount_percentage),
        'quantityAvailable': sale.quantity_available,
        'quantitySold': sale.quantity_sold,
        'remainingQuantity': sale.remaining_quantity,
        'startDate': isoformat(sale.start_date),
        'endDate': isoformat(sale.end_date),
        'status': sale.status.value,
        'createdAt': isoformat(sale.created_at),
        'updatedAt': isoformat(sale.updated_at),
    }


def serialize_product(product, sale=None, rating=None):
    rating = rating or {}
    on_sale = sale is not None
    return {
        'id': product.id,
        'name': product.name,
        'category': product.category.name,
        'price': money(product.price),
        'stock': product.stock,
        'status': product.status.value,
        'description': product.description,
        'image': product.primary_image,
        'inStock': product.stock > 0,
        'isOnSale': on_sale,
        'originalPrice': money(sale.original_price) if on_sale else None,
        'salePrice': money(sale.sale_price) if on_sale else None,
        'sale': serialize_sale_brief(sale) if on_sale else None,
        'averageRating': round(rating.get('avg', 0.0), 2),
        'totalRatings': rating.get('count', 0),
    }


def serialize_product_detail(product, sale=None, rating=None):
    rating = rating or {}
    on_sale = sale is not None
    images = product.images
    return {
        'id': product.id,
        'name': product.name,
        'price': money(sale.sale_price if on_sale else product.price),
        'originalPrice': money(sale.original_price) if on_sale else None,
        'stock': product.stock,
        'status': product.status.value,
        'description': product.description,
        'category': product.category.name,
        'image': images[0].image_url if images else None,
        'images': [{
            'url': image.image_url,
            'alt': image.alt_text,
            'isPrimary': image.is_primary,
        } for image in images],
        'inStock': product.stock > 0,
        'isOnSale': on_sale,
        'saleInfo': {
            'id': sale.id,
            'discountPercentage': money(sale.discount_percentage),
            'saleQuantity': sale.quantity_available,
            'remainingQuantity': sale.remaining_quantity,
            'startDate': isoformat(sale.start_date),
            'endDate': isoformat(sale.end_date),
        } if on_sale else None,
        'averageRating': round(rating.get('avg', 0.0), 2),
        'totalRatings': rating.get('count', 0),
    }


def serialize_order(order):
    return {
        'id': order.id,
        'orderNumber': order.order_number,
        'status': order.status.value,
        'customerName': order.customer_name,
        'customerEmail': order.customer_email,
        'customerPhone': order.customer_phone,
        'customerAddress': order.customer_address,
        'deliveryMethod': order.delivery_method,
        'paymentMethod': order.payment_method,
        'subtotal': money(order.subtotal),
        'deliveryFee': money(order.delivery_fee),
        'totalAmount': money(order.total_amount),
        'notes': order.notes,
        'itemCount': len(order.items),
        'createdAt': isoformat(order.created_at),
        'updatedAt': isoformat(order.updated_at),
    }


def serialize_order_item(item):
    product = item.product
    return {
        'id': item.id,
        'productId': item.product_id,
        'productName': item.product_name,
        'productPrice': money(item.product_price),
        'quantity': item.quantity,
        'totalPrice': money(item.total_price),
        'productImage': (
            product.primary_image if product is not None else None
        ) or PLACEHOLDER_IMAGE,
    }


def items_summary(order):
    if not order.items:
        return 'No items'
    return ', '.join(
        f'{item.quantity}x {item.product_name}' for item in order.items)


def serialize_rating_image(image):
    return {
        'id': image.id,
        'imageUrl': image.image_url,
        'imageName': image.image_name,
        'imageSize': image.image_size,
        'createdAt': isoformat(image.created_at),
    }


def serialize_rating(rating):
    return {
        'id': rating.id,
        'orderId': rating.order_id,
        'userId': rating.user_id,
        'userName': rating.user.name if rating.user else None,
        'rating': rating.rating,
        'reviewText': rating.review_text,
        'createdAt': isoformat(rating.created_at),
        'updatedAt': isoformat(rating.updated_at),
        'images': [serialize_rating_image(image) for image in rating.images],
    }


def serialize_cart_item(item, sale=None):
    product = item.product
    unit_price = effective_price(product, sale)
    return {
        'id': item.id,
        'productId': product.id,
        'name': product.name,
        'category': product.category.name,
        'image': product.primary_image or PLACEHOLDER_IMAGE,
        'quantity': item.quantity,
        'stock': product.stock,
        'price': money(unit_price),
        'originalPrice': money(product.price),
        'isOnSale': sale is not None,
        'lineTotal': money(unit_price * item.quantity),
    }


def serialize_favorite(favorite):
    product = favorite.product
    return {
        'id': favorite.id,
        'productId': product.id,
        'name': product.name,
        'category': product.category.name,
        'price': money(product.price),
        'image': product.primary_image or PLACEHOLDER_IMAGE,
        'stock': product.stock,
        'createdAt': isoformat(favorite.created_at),
    }
