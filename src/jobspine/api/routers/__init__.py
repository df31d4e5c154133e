"""HTTP routers mounted under the API prefix."""
