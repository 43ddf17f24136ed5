from app.models.category import Category
from app.models.product import Product
from app.models.user import User

from .payloads import hash_password_field
from .service import ResourceController

product_controller = ResourceController(Product, resource="products")
category_controller = ResourceController(Category, resource="categories")
user_controller = ResourceController(
    User,
    resource="users",
    before_persist=hash_password_field,
    protected_fields={"password_hash"},
)
