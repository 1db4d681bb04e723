"""loginwatch: detects successful logins and reports hashed credential fingerprints."""

__version__ = "0.1.0"
