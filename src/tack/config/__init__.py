"""Configuration layers for tack.

- target_defs: record types (Target, TargetOverride, Upsert, Action, ConfigLayer)
- ini_parser: the declarative tack.ini format
- tackfile: config providers (tackfile.c / tackfile.py) that generate a document
- layers: priority merge of all layers into a Config
"""
