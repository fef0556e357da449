"""
infrastructure - Concrete implementations of domain ports.

Contains all vendor-specific code: LangChain models, SQLite, HTTP APIs.
Depends on domain/ only (implements ports). Never imported by application/.
"""
