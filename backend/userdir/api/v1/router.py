from fastapi import APIRouter

from userdir.api.v1 import import_routes, users

api_router = APIRouter()

# Import routes first so /users/import is never read as a user id.
api_router.include_router(import_routes.router, prefix="/users/import", tags=["import"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
