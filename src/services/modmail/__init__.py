"""
Courier - Modmail Package
=========================

Multi-guild modmail: routing, thread lifecycle, idle sweep and the
persistent components staff and users click.

Structure:
    - constants.py: Emojis, custom_id prefixes, channel naming
    - models.py: Direction, InboundMessage, ThreadDeliveryError
    - router.py: RouterMixin (DM and channel routing)
    - handlers.py: InboundMixin (acts on routing decisions)
    - service.py: ModmailService (create, relay, close)
    - auto_close.py: AutoCloseMixin (idle warning and close)
    - embeds.py: Embed builders
    - views.py: DynamicItem buttons and selects
    - modals.py: Reply and close modals
    - transcript.py: Text transcripts

Author: Courier Maintainers
"""

from .models import Direction, InboundMessage, ThreadDeliveryError
from .router import RouteAction, RouteDecision, RouteOption
from .service import ModmailService
from .views import setup_modmail_views


__all__ = [
    "ModmailService",
    "Direction",
    "InboundMessage",
    "ThreadDeliveryError",
    "RouteAction",
    "RouteDecision",
    "RouteOption",
    "setup_modmail_views",
]
