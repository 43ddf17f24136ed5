from fastapi import APIRouter
from app.api import auth
from app.api.crud_modules.resources import category_controller, product_controller, user_controller
from app.api.crud_modules.router import build_crud_router

router = APIRouter()
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(build_crud_router(user_controller), prefix="/users", tags=["Users"])
router.include_router(build_crud_router(product_controller), prefix="/products", tags=["Products"])
router.include_router(build_crud_router(category_controller), prefix="/categories", tags=["Categories"])
