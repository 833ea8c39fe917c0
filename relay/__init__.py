"""Push-to-deploy relay: registry/CI webhooks -> Kubernetes image updates -> Telegram."""

__version__ = "1.0.0"
