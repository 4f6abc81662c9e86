"""Users vertical — read-only view of the identity provider's directory."""
