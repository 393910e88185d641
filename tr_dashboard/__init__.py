"""TR warranty dashboard: CSV ingestion into Supabase and KPI aggregation."""

__version__ = '1.0.0'
