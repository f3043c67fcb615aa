"""authdb: async PostgreSQL data access for the authentication subsystem."""

__version__ = "0.1.0"
