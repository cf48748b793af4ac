"""
Converts records to and from JSON. ObjectIds are written as MongoDB extended JSON (``{"$oid": ...}``), and datetimes
with one of two fixed text formats. Extra per-type codecs can be supplied, and take precedence over the built-in ones.
"""
