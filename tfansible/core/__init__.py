"""Core provisioning pipeline: trust, credentials, inventory and plays."""
