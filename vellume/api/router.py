from fastapi import APIRouter
from vellume.api.routes import auth, users, subscriptions, webhooks, images, entries

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(users.router, prefix="/user", tags=["user"])
api_router.include_router(subscriptions.router, prefix="/subscription", tags=["subscription"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
api_router.include_router(images.router, prefix="/images", tags=["images"])
api_router.include_router(entries.router, prefix="/entries", tags=["entries"])
api_router.include_router(entries.router, prefix="/journals", tags=["entries"])
