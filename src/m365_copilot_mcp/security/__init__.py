"""Security components: authentication and secure-store helpers."""
