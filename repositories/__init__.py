"""Persistence: Supabase and in-memory stores for sales and payments."""
