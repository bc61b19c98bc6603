"""Sequential provisioner for the POC Azure deployment."""

__version__ = "0.1.0"
