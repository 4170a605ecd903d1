"""HTTP service for provisioning PostgreSQL databases, roles and login users."""

__version__ = "1.0.0"
