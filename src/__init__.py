"""Cruise Contract Parser.

A deterministic, rule-based pipeline that turns cruise confirmation text
into structured booking data: base currency, priced cabin inventory and
key dates, with no guessing on currency or money fields.
"""
