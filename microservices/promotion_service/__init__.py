"""
Promotion Service

Discount campaign engine providing:
- Campaign lifecycle (draft, submit, activate, deactivate, delete)
- Scope resolution over explicit products and category subtrees
- Conflict superseding so each variant carries one campaign's pricing
- Product index synchronization with full reindex recovery
- Periodic sweep applying and expiring campaigns
"""

__version__ = "1.0.0"
__service__ = "promotion_service"
