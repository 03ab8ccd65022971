from detail_scheduler.api.app import create_app

__all__ = ["create_app"]
