from . import admin, purls

__all__ = ["admin", "purls"]
