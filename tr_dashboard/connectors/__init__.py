"""
Backend connectors.
"""

from .supabase_connector import SupabaseConnector

__all__ = ['SupabaseConnector']
