from .apps import RelayerServer, create_app

__all__ = [
    "RelayerServer",
    "create_app",
]
