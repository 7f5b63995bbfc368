from chaindeploy.backends.base import DeployBackend

__all__ = ["DeployBackend"]
