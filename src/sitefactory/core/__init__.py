"""
sitefactory core: logging, errors, configuration and the ORM layer.
"""
