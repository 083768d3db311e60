"""
Lead Enrichment Engine
======================
A six-step pipeline that turns a minimal lead into a scored, enriched record:
  1. Fetch Website Technology
  2. Fetch Social Media Presence
  3. Fetch & Enrich Company Info (with contact backfill)
  4. Check WhatsApp Business API
  5. Normalize Data
  6. AI Lead Scoring (deterministic fallback)
"""

__version__ = "1.0.0"
__author__ = "Lead Enrichment Team"
