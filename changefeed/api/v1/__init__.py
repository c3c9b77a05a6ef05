from changefeed.api.v1 import internal, repositories

__all__ = ["internal", "repositories"]
