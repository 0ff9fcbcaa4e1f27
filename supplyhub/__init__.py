"""
SupplyHub — Medical Supplies RFQ Marketplace

Packages:
    api/           Flask blueprint, identity middleware, JSON routes
    core/          Database, identity, domain operations, config, logging
    agents/        External service calls (transactional email, vision model)
    integrations/  QuickBooks-compatible CSV export
    seed_data/     Default categories loaded by `flask seed`
"""

__version__ = "1.4.0"
