"""
Structural codecs shared by the format handlers.

- paths: flat key <-> nested tree mapping (JSON, YAML, generic XML)
- tabular: CSV/TSV tokenizing, dialects and column-role inference
- plural: gettext context/plural keys and plural selector evaluation
- markup: XML dialect detection, flattening and reconstruction
"""
