"""Supabase persistence for leads, sales, users and counters."""
