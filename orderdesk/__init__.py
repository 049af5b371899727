"""
                Restaurant Order Desk

Order dashboard for an AI phone-ordering assistant: Vapi.ai webhook
ingestion, staff order triage with live updates, and menu management
synced back to the assistant.

Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
