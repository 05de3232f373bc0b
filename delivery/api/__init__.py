from delivery.api.verify import router as verify_router

__all__ = ["verify_router"]
