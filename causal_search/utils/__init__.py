"""
Utility subpackage for CSE:
- config_loader   → YAML loader, defaults & overrides
- io              → tables, graph and knowledge file formats
- logging_utils   → unified logger setup
"""
