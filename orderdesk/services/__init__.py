"""
                        Services Module

Business logic behind the HTTP surface.

Services:
    - order_lifecycle: order state machine and status updates
    - menu_catalog: menu CRUD and spreadsheet import
    - voice: Vapi webhook ingestion and assistant sync
    - realtime: order change fan-out to dashboards
"""
