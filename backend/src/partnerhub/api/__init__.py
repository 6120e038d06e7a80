"""HTTP API for PartnerHub."""
