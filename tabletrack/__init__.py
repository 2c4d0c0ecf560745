"""
                    Table Tracking Service

Links restaurant tables to kitchen orders: customers pair their order
with a table by QR code, staff follow it through to delivery.
"""

__version__ = "1.0.0"
