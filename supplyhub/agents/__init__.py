"""Outbound service clients: transactional email and the catalog vision model."""
