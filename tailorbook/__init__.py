"""
TailorBook - Shop Core

The business core of a tailoring shop: orders and their production
stages, customers and measurements, piece-rate workers, expenses and
money accounts, shared by several staff members over one backend store.

DESIGN PRINCIPLES:
1. Every figure is derived from transactions, never stored
2. Users only ever see what their permissions allow
3. Nothing is persisted before the shop data has loaded
4. Failures are reported, never silent
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "TailorBook Team"
